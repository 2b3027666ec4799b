"""Redis-backed conversation memory.

Each session is a Redis list ``chat:<session_id>`` of JSON-encoded turns,
newest at the head (LPUSH) and trimmed with LTRIM after every append.
"""

import json
from typing import (
    List,
    Optional,
)

import redis.asyncio as redis

from app.core.config import settings
from app.core.logging import logger
from app.core.stores.base import (
    DEFAULT_MAX_TURNS,
    MemoryStore,
)
from app.core.stores.schema import MemoryTurn


class RedisMemoryStore(MemoryStore):
    """Memory store on a Redis list per session.

    Args:
        url: Redis connection URL (defaults to ``settings.REDIS_URL``).
        max_turns: Number of most recent turns kept per session.
        client: Optional pre-built client (used by tests).
    """

    key_prefix = "chat:"

    def __init__(
        self,
        url: Optional[str] = None,
        max_turns: int = DEFAULT_MAX_TURNS,
        client: Optional[redis.Redis] = None,
    ):
        """Initialize the store; the connection is created lazily."""
        super().__init__(max_turns)
        self.url = url or settings.REDIS_URL
        self._client = client

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(self.url, decode_responses=True)
            logger.info("redis_memory_client_created", url=self.url)
        return self._client

    def _key(self, session_id: str) -> str:
        return f"{self.key_prefix}{session_id}"

    async def get_turns(self, session_id: str, limit: int) -> List[MemoryTurn]:
        """Return up to ``limit`` turns, most recent first."""
        if limit <= 0:
            return []
        raw_turns = await self._get_client().lrange(self._key(session_id), 0, limit - 1)

        turns = []
        for raw in raw_turns:
            try:
                turns.append(MemoryTurn.model_validate(json.loads(raw)))
            except ValueError:
                logger.warning("redis_memory_turn_unreadable", session_id=session_id)
        return turns

    async def append_turn(self, session_id: str, turn: MemoryTurn) -> None:
        """LPUSH the turn and trim the list to ``max_turns``."""
        key = self._key(session_id)
        client = self._get_client()
        await client.lpush(key, turn.model_dump_json())
        await client.ltrim(key, 0, self.max_turns - 1)

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
