"""Storage collaborators for graphs, credentials and agent memory.

Provides the abstract store interfaces plus in-memory, file-backed and
Redis-backed implementations.
"""

from app.core.stores.base import (
    CredentialStore,
    GraphStore,
    MemoryStore,
)
from app.core.stores.files import (
    FileCredentialStore,
    FileGraphStore,
)
from app.core.stores.memory import (
    InMemoryCredentialStore,
    InMemoryGraphStore,
    InMemoryMemoryStore,
)
from app.core.stores.redis_memory import RedisMemoryStore
from app.core.stores.schema import (
    Credential,
    MemoryTurn,
)

__all__ = [
    "Credential",
    "CredentialStore",
    "FileCredentialStore",
    "FileGraphStore",
    "GraphStore",
    "InMemoryCredentialStore",
    "InMemoryGraphStore",
    "InMemoryMemoryStore",
    "MemoryStore",
    "MemoryTurn",
    "RedisMemoryStore",
]
