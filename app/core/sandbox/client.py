"""Judge0 client implementing submit-then-poll code execution.

A job is first submitted with ``wait=true`` so short programs come back
inline. If that response carries no result, the job is submitted again
without waiting and its token is polled with an increasing delay until the
status is terminal or the attempt budget runs out. The poller never waits
indefinitely.
"""

import asyncio
import json
from typing import (
    Any,
    Dict,
    Optional,
)

import httpx

from app.core.config import settings
from app.core.logging import logger
from app.core.metrics import sandbox_poll_attempts
from app.core.sandbox.schema import (
    LANGUAGE_IDS,
    AsyncJob,
    SandboxResult,
)
from app.core.workflow.errors import (
    SandboxError,
    SandboxTimeoutError,
    StepConfigurationError,
    UnsupportedLanguageError,
)


def _describe_http_error(error: Exception) -> str:
    """Extract the richest message available from an httpx error."""
    if isinstance(error, httpx.HTTPStatusError):
        try:
            return json.dumps(error.response.json())
        except ValueError:
            return error.response.text or str(error)
    return str(error) or error.__class__.__name__


class SandboxClient:
    """Runs code in a Judge0-compatible sandbox.

    Args:
        api_key: RapidAPI key for the Judge0 endpoint.
        base_url: Base URL of the Judge0 API.
        host: Value for the ``X-RapidAPI-Host`` header.
        max_attempts: Maximum number of status polls.
        base_delay: Seconds slept before the first poll.
        delay_step: Extra seconds added per subsequent attempt.
        client: Optional pre-built ``httpx.AsyncClient`` (used by tests).
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        host: Optional[str] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        delay_step: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the sandbox client from arguments or settings."""
        self.api_key = api_key if api_key is not None else settings.JUDGE0_API_KEY
        self.base_url = (base_url or settings.JUDGE0_BASE_URL).rstrip("/")
        self.host = host or settings.JUDGE0_HOST
        self.max_attempts = max_attempts if max_attempts is not None else settings.SANDBOX_MAX_POLL_ATTEMPTS
        self.base_delay = base_delay if base_delay is not None else settings.SANDBOX_POLL_BASE_DELAY
        self.delay_step = delay_step if delay_step is not None else settings.SANDBOX_POLL_DELAY_STEP
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    def _headers(self, json_body: bool = True) -> Dict[str, str]:
        headers = {"X-RapidAPI-Key": self.api_key, "X-RapidAPI-Host": self.host}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def poll_delay(self, attempt: int) -> float:
        """Seconds to sleep before poll number ``attempt`` (zero-based)."""
        return self.base_delay + attempt * self.delay_step

    @property
    def max_wait_seconds(self) -> float:
        """Upper bound on time spent sleeping while polling one job."""
        return sum(self.poll_delay(n) for n in range(self.max_attempts))

    async def execute(self, language: str, code: str, stdin: str = "") -> SandboxResult:
        """Execute ``code`` and return its terminal result.

        Args:
            language: ``python`` or ``javascript`` (case-insensitive).
            code: Source code to run.
            stdin: Standard input passed to the program.

        Returns:
            SandboxResult: The terminal result of the job.

        Raises:
            UnsupportedLanguageError: If the language has no sandbox runtime.
            StepConfigurationError: If no API key is configured.
            SandboxTimeoutError: If polling exhausted its attempt budget.
            SandboxError: On any transport failure at submit or poll time.
        """
        language = (language or "").lower()
        language_id = LANGUAGE_IDS.get(language)
        if language_id is None:
            raise UnsupportedLanguageError(f"Unsupported language: {language}")
        if not self.api_key:
            raise StepConfigurationError("Judge0 API key not configured (JUDGE0_API_KEY)")

        submission = {"source_code": code, "language_id": language_id, "stdin": stdin or ""}

        try:
            inline = await self._submit(submission, wait=True)
            if inline and any(key in inline for key in ("stdout", "stderr", "status")):
                logger.info("sandbox_inline_result", language=language)
                return SandboxResult.from_payload(inline, language)

            submitted = await self._submit(submission, wait=False)
            token = (submitted or {}).get("token")
            if not token:
                raise SandboxError("Code execution failed: submission returned no token")

            job = AsyncJob(token=token)
            return await self._poll(job, language)
        except httpx.HTTPError as e:
            logger.warning("sandbox_transport_failed", language=language, error=str(e))
            raise SandboxError(f"Code execution failed: {_describe_http_error(e)}") from e
        except ValueError as e:
            raise SandboxError(f"Code execution failed: invalid response from sandbox ({e})") from e

    async def _submit(self, submission: Dict[str, Any], wait: bool) -> Dict[str, Any]:
        params = {"base64_encoded": "false"}
        if wait:
            params["wait"] = "true"
        response = await self._get_client().post(
            f"{self.base_url}/submissions",
            params=params,
            json=submission,
            headers=self._headers(),
            timeout=settings.SANDBOX_SUBMIT_TIMEOUT,
        )
        response.raise_for_status()
        return response.json() or {}

    async def _poll(self, job: AsyncJob, language: str) -> SandboxResult:
        while job.attempts < self.max_attempts:
            await asyncio.sleep(self.poll_delay(job.attempts))

            response = await self._get_client().get(
                f"{self.base_url}/submissions/{job.token}",
                params={"base64_encoded": "false"},
                headers=self._headers(json_body=False),
                timeout=settings.SANDBOX_POLL_TIMEOUT,
            )
            response.raise_for_status()
            job.attempts += 1
            job.observe(response.json() or {}, language)

            if job.is_terminal:
                sandbox_poll_attempts.observe(job.attempts)
                logger.info(
                    "sandbox_job_completed",
                    token=job.token,
                    attempts=job.attempts,
                    status=job.outcome.status,
                )
                return job.outcome

        logger.warning("sandbox_poll_budget_exhausted", token=job.token, attempts=job.attempts)
        raise SandboxTimeoutError(
            f"Code execution did not finish after {job.attempts} status checks (last status: {job.status.value})"
        )

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
