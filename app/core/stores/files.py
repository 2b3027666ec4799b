"""File-backed graph and credential stores.

Graphs are loaded from a directory where each ``.yaml``/``.yml``/``.json``
file holds one workflow (the graph id defaults to the file name). Credentials
are loaded from a single YAML or JSON file holding a list under
``credentials``. Both stores scan once at construction; ``reload()`` rescans.
"""

import json
import os
from typing import (
    Any,
    Dict,
    List,
    Optional,
)

import yaml
from pydantic import ValidationError

from app.core.logging import logger
from app.core.stores.base import (
    CredentialStore,
    GraphStore,
)
from app.core.stores.schema import Credential
from app.core.workflow.schema import WorkflowGraph

_SUPPORTED_EXTENSIONS = (".yaml", ".yml", ".json")


def _read_document(filepath: str) -> Any:
    with open(filepath, "r", encoding="utf-8") as f:
        if filepath.endswith(".json"):
            return json.load(f)
        return yaml.safe_load(f)


class FileGraphStore(GraphStore):
    """Graph store over a directory of workflow definition files."""

    def __init__(self, directory: str):
        """Initialize and load all graphs from ``directory``."""
        self.directory = directory
        self._graphs: Dict[str, WorkflowGraph] = {}
        self.reload()

    def reload(self) -> None:
        """Rescan the directory and replace the loaded graphs."""
        graphs: Dict[str, WorkflowGraph] = {}

        if not os.path.isdir(self.directory):
            logger.warning("workflows_dir_not_found", path=self.directory)
            self._graphs = graphs
            return

        for filename in sorted(os.listdir(self.directory)):
            if not filename.endswith(_SUPPORTED_EXTENSIONS):
                continue

            filepath = os.path.join(self.directory, filename)
            try:
                graph = self._parse_graph(filepath)
            except (OSError, ValueError, yaml.YAMLError) as e:
                logger.exception("workflow_definition_parse_failed", file=filename, error=str(e))
                continue

            if graph is None:
                logger.warning("workflow_definition_skipped", file=filename)
                continue
            graphs[graph.id] = graph
            logger.info(
                "workflow_definition_loaded",
                graph_id=graph.id,
                step_count=len(graph.steps),
                link_count=len(graph.links),
            )

        self._graphs = graphs

    def _parse_graph(self, filepath: str) -> Optional[WorkflowGraph]:
        """Parse one definition file into a graph."""
        data = _read_document(filepath)
        if not isinstance(data, dict):
            return None

        if "id" not in data and "_id" not in data:
            data["id"] = os.path.splitext(os.path.basename(filepath))[0]
        elif "id" not in data:
            data["id"] = str(data["_id"])
        return WorkflowGraph.model_validate(data)

    async def get_graph(self, graph_id: str) -> Optional[WorkflowGraph]:
        """Return the graph with ``graph_id`` if it was loaded."""
        return self._graphs.get(graph_id)

    def list_graphs(self) -> List[Dict[str, Any]]:
        """List loaded graphs with their titles and enabled flags."""
        return [{"id": g.id, "title": g.title, "enabled": g.enabled} for g in self._graphs.values()]


class FileCredentialStore(CredentialStore):
    """Credential store over a single YAML/JSON file."""

    def __init__(self, filepath: str):
        """Initialize and load credentials from ``filepath``."""
        self.filepath = filepath
        self._credentials: Dict[str, Credential] = {}
        self.reload()

    def reload(self) -> None:
        """Re-read the credentials file."""
        credentials: Dict[str, Credential] = {}

        if not os.path.isfile(self.filepath):
            logger.info("credentials_file_not_found", path=self.filepath)
            self._credentials = credentials
            return

        try:
            data = _read_document(self.filepath) or {}
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.exception("credentials_file_load_failed", path=self.filepath, error=str(e))
            self._credentials = credentials
            return

        entries = data.get("credentials", []) if isinstance(data, dict) else data
        for entry in entries or []:
            try:
                credential = Credential.model_validate(entry)
            except ValidationError as e:
                logger.warning("credential_entry_invalid", error=str(e))
                continue
            credentials[credential.id] = credential

        logger.info("credentials_loaded", path=self.filepath, count=len(credentials))
        self._credentials = credentials

    async def get_credential(self, credential_id: str) -> Optional[Credential]:
        """Return the credential with ``credential_id`` if it was loaded."""
        return self._credentials.get(credential_id)
