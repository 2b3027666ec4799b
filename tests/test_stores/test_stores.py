"""Unit tests for graph, credential and memory stores."""

import json
from unittest.mock import AsyncMock

import pytest

from app.core.stores import (
    FileCredentialStore,
    FileGraphStore,
    InMemoryMemoryStore,
    MemoryTurn,
    RedisMemoryStore,
)


class TestFileGraphStore:
    """Tests for loading graphs from a directory."""

    @pytest.mark.asyncio
    async def test_loads_yaml_and_json(self, tmp_path):
        """Test YAML and JSON definitions are loaded and ids default to the file name."""
        (tmp_path / "welcome.yaml").write_text(
            "title: Welcome\n"
            "nodes:\n"
            "  - id: t\n"
            "    type: manualTrigger\n"
            "connections: []\n",
            encoding="utf-8",
        )
        (tmp_path / "other.json").write_text(
            json.dumps({"_id": "abc123", "enabled": False, "nodes": [], "connections": []}),
            encoding="utf-8",
        )
        (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

        store = FileGraphStore(str(tmp_path))

        welcome = await store.get_graph("welcome")
        assert welcome.title == "Welcome"
        assert welcome.find_trigger().id == "t"
        assert (await store.get_graph("abc123")).enabled is False
        assert {g["id"] for g in store.list_graphs()} == {"welcome", "abc123"}

    @pytest.mark.asyncio
    async def test_invalid_file_is_skipped(self, tmp_path):
        """Test a malformed file does not prevent loading the others."""
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
        (tmp_path / "ok.json").write_text(json.dumps({"nodes": []}), encoding="utf-8")

        store = FileGraphStore(str(tmp_path))

        assert await store.get_graph("ok") is not None
        assert await store.get_graph("broken") is None

    @pytest.mark.asyncio
    async def test_missing_directory(self, tmp_path):
        """Test a missing directory yields an empty store."""
        store = FileGraphStore(str(tmp_path / "missing"))
        assert store.list_graphs() == []


class TestFileCredentialStore:
    """Tests for loading credentials from a file."""

    @pytest.mark.asyncio
    async def test_loads_credentials(self, tmp_path):
        """Test credentials are keyed by id."""
        path = tmp_path / "credentials.yaml"
        path.write_text(
            "credentials:\n"
            "  - id: mail\n"
            "    platform: email\n"
            "    data:\n"
            "      email: bot@example.com\n"
            "      appPassword: secret\n",
            encoding="utf-8",
        )

        store = FileCredentialStore(str(path))

        credential = await store.get_credential("mail")
        assert credential.platform == "email"
        assert credential.data["appPassword"] == "secret"
        assert await store.get_credential("other") is None


class TestInMemoryMemoryStore:
    """Tests for the bounded in-process memory store."""

    @pytest.mark.asyncio
    async def test_most_recent_first_and_trimmed(self):
        """Test turns come back newest first and the oldest are dropped."""
        store = InMemoryMemoryStore(max_turns=3)
        for i in range(5):
            await store.append_turn("s", MemoryTurn(role="human", content=str(i)))

        assert [t.content for t in await store.get_turns("s", 10)] == ["4", "3", "2"]
        assert [t.content for t in await store.get_turns("s", 2)] == ["4", "3"]
        assert await store.get_turns("unknown", 10) == []


class TestRedisMemoryStore:
    """Tests for the Redis list-backed memory store."""

    @pytest.mark.asyncio
    async def test_append_pushes_and_trims(self):
        """Test append uses LPUSH then LTRIM on the chat key."""
        client = AsyncMock()
        store = RedisMemoryStore(url="redis://unused", max_turns=50, client=client)

        await store.append_turn("abc", MemoryTurn(role="ai", content="hi"))

        client.lpush.assert_awaited_once()
        assert client.lpush.call_args.args[0] == "chat:abc"
        assert json.loads(client.lpush.call_args.args[1]) == {"role": "ai", "content": "hi"}
        client.ltrim.assert_awaited_once_with("chat:abc", 0, 49)

    @pytest.mark.asyncio
    async def test_get_turns_reads_range(self):
        """Test get_turns reads the first ``limit`` entries and skips unreadable ones."""
        client = AsyncMock()
        client.lrange.return_value = [json.dumps({"role": "human", "content": "q"}), "garbage"]
        store = RedisMemoryStore(url="redis://unused", client=client)

        turns = await store.get_turns("abc", 10)

        client.lrange.assert_awaited_once_with("chat:abc", 0, 9)
        assert [t.content for t in turns] == ["q"]
