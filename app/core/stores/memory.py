"""In-process store implementations, used when no external backend is configured."""

from collections import deque
from typing import (
    Deque,
    Dict,
    Iterable,
    List,
    Optional,
)

from app.core.stores.base import (
    DEFAULT_MAX_TURNS,
    CredentialStore,
    GraphStore,
    MemoryStore,
)
from app.core.stores.schema import (
    Credential,
    MemoryTurn,
)
from app.core.workflow.schema import WorkflowGraph


class InMemoryGraphStore(GraphStore):
    """Graphs held in a dict keyed by id."""

    def __init__(self, graphs: Optional[Iterable[WorkflowGraph]] = None):
        """Initialize with an optional set of graphs."""
        self._graphs: Dict[str, WorkflowGraph] = {}
        for graph in graphs or []:
            self.add(graph)

    def add(self, graph: WorkflowGraph) -> None:
        """Register or replace a graph."""
        self._graphs[graph.id] = graph

    async def get_graph(self, graph_id: str) -> Optional[WorkflowGraph]:
        """Return the graph with ``graph_id`` if present."""
        return self._graphs.get(graph_id)


class InMemoryCredentialStore(CredentialStore):
    """Credentials held in a dict keyed by id."""

    def __init__(self, credentials: Optional[Iterable[Credential]] = None):
        """Initialize with an optional set of credentials."""
        self._credentials: Dict[str, Credential] = {}
        for credential in credentials or []:
            self.add(credential)

    def add(self, credential: Credential) -> None:
        """Register or replace a credential."""
        self._credentials[credential.id] = credential

    async def get_credential(self, credential_id: str) -> Optional[Credential]:
        """Return the credential with ``credential_id`` if present."""
        return self._credentials.get(credential_id)


class InMemoryMemoryStore(MemoryStore):
    """Conversation turns kept in bounded deques, newest on the left."""

    def __init__(self, max_turns: int = DEFAULT_MAX_TURNS):
        """Initialize an empty store."""
        super().__init__(max_turns)
        self._sessions: Dict[str, Deque[MemoryTurn]] = {}

    async def get_turns(self, session_id: str, limit: int) -> List[MemoryTurn]:
        """Return up to ``limit`` turns, most recent first."""
        turns = self._sessions.get(session_id)
        if not turns or limit <= 0:
            return []
        return list(turns)[:limit]

    async def append_turn(self, session_id: str, turn: MemoryTurn) -> None:
        """Push a turn to the front, dropping the oldest beyond ``max_turns``."""
        turns = self._sessions.setdefault(session_id, deque(maxlen=self.max_turns))
        turns.appendleft(turn)
