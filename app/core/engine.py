"""Assembly of the workflow engine from settings.

``build_engine`` wires the collaborator stores, the shared HTTP client, the
sandbox client, the handler registry and the scheduler together. The API
layer builds one engine at startup and closes it on shutdown.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from app.core.config import settings
from app.core.logging import logger
from app.core.sandbox.client import SandboxClient
from app.core.stores import (
    CredentialStore,
    FileCredentialStore,
    FileGraphStore,
    GraphStore,
    InMemoryMemoryStore,
    MemoryStore,
    RedisMemoryStore,
)
from app.core.workflow.registry import create_default_registry
from app.core.workflow.scheduler import WorkflowScheduler


@dataclass
class WorkflowEngine:
    """The running engine and the resources it owns."""

    scheduler: WorkflowScheduler
    graph_store: GraphStore
    credential_store: CredentialStore
    memory_store: MemoryStore
    sandbox: SandboxClient
    http_client: httpx.AsyncClient

    async def aclose(self) -> None:
        """Release network resources."""
        await self.sandbox.close()
        await self.memory_store.close()
        await self.http_client.aclose()
        logger.info("workflow_engine_closed")


def create_memory_store(backend: Optional[str] = None) -> MemoryStore:
    """Build the agent memory store selected by ``MEMORY_BACKEND``."""
    backend = (backend or settings.MEMORY_BACKEND).lower()
    if backend == "redis":
        return RedisMemoryStore(settings.REDIS_URL, max_turns=settings.MEMORY_MAX_TURNS)
    if backend != "memory":
        logger.warning("unknown_memory_backend", backend=backend, fallback="memory")
    return InMemoryMemoryStore(max_turns=settings.MEMORY_MAX_TURNS)


def build_engine(
    graph_store: Optional[GraphStore] = None,
    credential_store: Optional[CredentialStore] = None,
    memory_store: Optional[MemoryStore] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    sandbox: Optional[SandboxClient] = None,
) -> WorkflowEngine:
    """Build a workflow engine, defaulting every collaborator from settings.

    Args:
        graph_store: Source of graphs; defaults to ``WORKFLOWS_DIR`` files.
        credential_store: Source of credentials; defaults to ``CREDENTIALS_FILE``.
        memory_store: Agent memory; defaults to ``MEMORY_BACKEND``.
        http_client: Shared outbound HTTP client.
        sandbox: Code execution client; defaults to one sharing ``http_client``.

    Returns:
        WorkflowEngine: The assembled engine.
    """
    http_client = http_client or httpx.AsyncClient()
    graph_store = graph_store or FileGraphStore(settings.WORKFLOWS_DIR)
    credential_store = credential_store or FileCredentialStore(settings.CREDENTIALS_FILE)
    memory_store = memory_store or create_memory_store()
    sandbox = sandbox or SandboxClient(client=http_client)

    registry = create_default_registry(
        credential_store=credential_store,
        memory_store=memory_store,
        sandbox=sandbox,
        http_client=http_client,
        max_subworkflow_depth=settings.MAX_SUBWORKFLOW_DEPTH,
    )
    scheduler = WorkflowScheduler(
        registry,
        graph_store=graph_store,
        max_subworkflow_depth=settings.MAX_SUBWORKFLOW_DEPTH,
    )

    logger.info(
        "workflow_engine_built",
        graph_store=graph_store.__class__.__name__,
        memory_store=memory_store.__class__.__name__,
        join_mode=scheduler.join_mode.value,
    )
    return WorkflowEngine(
        scheduler=scheduler,
        graph_store=graph_store,
        credential_store=credential_store,
        memory_store=memory_store,
        sandbox=sandbox,
        http_client=http_client,
    )
