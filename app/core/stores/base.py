"""Collaborator interfaces consumed by the workflow engine.

The engine never persists anything itself. Graph definitions, credentials
and agent conversation memory are owned by these stores; any backend that
implements the interface can be plugged into the scheduler.
"""

from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    List,
    Optional,
)

from app.core.stores.schema import (
    Credential,
    MemoryTurn,
)
from app.core.workflow.schema import WorkflowGraph

DEFAULT_MAX_TURNS = 50


class GraphStore(ABC):
    """Source of workflow graph definitions."""

    @abstractmethod
    async def get_graph(self, graph_id: str) -> Optional[WorkflowGraph]:
        """Return the graph with ``graph_id`` or None if it does not exist."""


class CredentialStore(ABC):
    """Source of platform credentials."""

    @abstractmethod
    async def get_credential(self, credential_id: str) -> Optional[Credential]:
        """Return the credential with ``credential_id`` or None if it does not exist."""


class MemoryStore(ABC):
    """Bounded per-session conversation history for agent steps.

    Implementations keep at most ``max_turns`` turns per session, dropping the
    oldest ones first.
    """

    def __init__(self, max_turns: int = DEFAULT_MAX_TURNS):
        """Initialize the store.

        Args:
            max_turns: Number of most recent turns retained per session.
        """
        self.max_turns = max_turns

    @abstractmethod
    async def get_turns(self, session_id: str, limit: int) -> List[MemoryTurn]:
        """Return up to ``limit`` turns for the session, most recent first."""

    @abstractmethod
    async def append_turn(self, session_id: str, turn: MemoryTurn) -> None:
        """Append a turn and trim the session to ``max_turns``."""

    async def close(self) -> None:
        """Optional cleanup hook. Override if needed."""
