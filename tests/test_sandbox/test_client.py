"""Unit tests for the Judge0 submit-then-poll client."""

import json
from typing import (
    Callable,
    List,
)
from unittest.mock import (
    AsyncMock,
    patch,
)

import httpx
import pytest

from app.core.sandbox.client import SandboxClient
from app.core.sandbox.schema import (
    AsyncJob,
    JobStatus,
)
from app.core.workflow.errors import (
    SandboxError,
    SandboxTimeoutError,
    StepConfigurationError,
    UnsupportedLanguageError,
)


def _client(respond: Callable[[httpx.Request], httpx.Response], **kwargs) -> SandboxClient:
    options = {
        "api_key": "key",
        "base_url": "https://judge0.test",
        "host": "judge0.test",
        "max_attempts": 3,
        "base_delay": 1.0,
        "delay_step": 0.5,
    }
    options.update(kwargs)
    return SandboxClient(client=httpx.AsyncClient(transport=httpx.MockTransport(respond)), **options)


class TestSandboxClient:
    """Tests for SandboxClient.execute()."""

    @pytest.mark.asyncio
    async def test_inline_result(self):
        """Test a wait=true submission that returns a result is used directly."""
        requests: List[httpx.Request] = []

        def respond(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"stdout": "hi\n", "status": {"id": 3, "description": "Accepted"}})

        result = await _client(respond).execute("Python", "print('hi')")

        assert result.stdout == "hi\n"
        assert result.status == "Accepted"
        assert result.language == "python"
        assert len(requests) == 1
        assert requests[0].url.params["wait"] == "true"
        assert requests[0].headers["X-RapidAPI-Key"] == "key"
        assert json.loads(requests[0].content)["language_id"] == 71

    @pytest.mark.asyncio
    async def test_submit_then_poll(self):
        """Test the token is polled until a terminal status."""
        statuses = iter([{"id": 2, "description": "Processing"}, {"id": 6, "description": "Compilation Error"}])

        def respond(request: httpx.Request) -> httpx.Response:
            if request.method == "POST" and request.url.params.get("wait") == "true":
                return httpx.Response(200, json={})
            if request.method == "POST":
                return httpx.Response(201, json={"token": "tok-1"})
            assert request.url.path == "/submissions/tok-1"
            return httpx.Response(200, json={"status": next(statuses), "compile_output": "bad"})

        with patch("app.core.sandbox.client.asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await _client(respond).execute("javascript", "x(")

        assert result.status_id == 6
        assert result.to_dict()["compileOutput"] == "bad"
        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 1.5]

    @pytest.mark.asyncio
    async def test_polling_is_bounded(self):
        """Test polling stops after max_attempts with a timeout error."""
        polls = []

        def respond(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(201, json={"token": "tok-2"})
            polls.append(request)
            return httpx.Response(200, json={"status": {"id": 1, "description": "In Queue"}})

        client = _client(respond)
        with patch("app.core.sandbox.client.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(SandboxTimeoutError):
                await client.execute("python", "while True: pass")

        assert len(polls) == 3
        assert client.max_wait_seconds == 1.0 + 1.5 + 2.0

    @pytest.mark.asyncio
    async def test_unsupported_language(self):
        """Test unknown languages fail without any request."""
        respond = AsyncMock()
        with pytest.raises(UnsupportedLanguageError, match="Unsupported language: ruby"):
            await _client(respond).execute("ruby", "puts 1")

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        """Test a missing API key is a configuration error."""
        with pytest.raises(StepConfigurationError):
            await _client(lambda request: httpx.Response(200), api_key="").execute("python", "print(1)")

    @pytest.mark.asyncio
    async def test_transport_error_carries_body(self):
        """Test HTTP errors are reported with the response body."""

        def respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"message": "quota exceeded"})

        with pytest.raises(SandboxError, match="Code execution failed: .*quota exceeded"):
            await _client(respond).execute("python", "print(1)")

    @pytest.mark.asyncio
    async def test_missing_token(self):
        """Test a submission without a token fails."""

        def respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={})

        with pytest.raises(SandboxError, match="no token"):
            await _client(respond).execute("python", "print(1)")


class TestAsyncJob:
    """Tests for the polled job state machine."""

    def test_observe_transitions(self):
        """Test queued -> processing -> terminal."""
        job = AsyncJob(token="t")
        job.observe({"status": {"id": 1}}, "python")
        assert job.status == JobStatus.QUEUED
        job.observe({"status": {"id": 2}}, "python")
        assert job.status == JobStatus.PROCESSING
        job.observe({"status": {"id": 11, "description": "Runtime Error (NZEC)"}, "stderr": "boom"}, "python")
        assert job.is_terminal
        assert job.outcome.stderr == "boom"
