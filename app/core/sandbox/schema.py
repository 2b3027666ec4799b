"""Types for sandboxed code execution jobs."""

from dataclasses import (
    asdict,
    dataclass,
)
from enum import Enum
from typing import (
    Any,
    Dict,
    Optional,
)

# Judge0 language ids
LANGUAGE_IDS: Dict[str, int] = {
    "javascript": 63,
    "python": 71,
}

# Judge0 status ids: 1 = In Queue, 2 = Processing, >= 3 = finished/compile error/runtime error
STATUS_IN_QUEUE = 1
STATUS_PROCESSING = 2
FIRST_TERMINAL_STATUS = 3


class JobStatus(str, Enum):
    """Lifecycle of a submitted sandbox job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    TERMINAL = "terminal"


@dataclass
class SandboxResult:
    """Terminal outcome of a sandbox execution."""

    status: str
    status_id: Optional[int] = None
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    compile_output: Optional[str] = None
    time: Optional[str] = None
    memory: Optional[Any] = None
    language: str = ""

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], language: str) -> "SandboxResult":
        """Build a result from a Judge0 submission payload."""
        status = payload.get("status") or {}
        return cls(
            status=status.get("description") or "unknown",
            status_id=status.get("id"),
            stdout=payload.get("stdout"),
            stderr=payload.get("stderr"),
            compile_output=payload.get("compile_output"),
            time=payload.get("time"),
            memory=payload.get("memory"),
            language=language,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the camelCase keys step outputs expose."""
        raw = asdict(self)
        return {
            "status": raw["status"],
            "statusId": raw["status_id"],
            "stdout": raw["stdout"],
            "stderr": raw["stderr"],
            "compileOutput": raw["compile_output"],
            "time": raw["time"],
            "memory": raw["memory"],
            "language": raw["language"],
        }


@dataclass
class AsyncJob:
    """A submitted job tracked while polling; never outlives one invocation."""

    token: str
    status: JobStatus = JobStatus.QUEUED
    attempts: int = 0
    outcome: Optional[SandboxResult] = None

    def observe(self, payload: Dict[str, Any], language: str) -> None:
        """Advance the state machine from a polled payload."""
        status_id = (payload.get("status") or {}).get("id")
        if status_id is not None and status_id >= FIRST_TERMINAL_STATUS:
            self.status = JobStatus.TERMINAL
            self.outcome = SandboxResult.from_payload(payload, language)
        elif status_id == STATUS_PROCESSING:
            self.status = JobStatus.PROCESSING
        else:
            self.status = JobStatus.QUEUED

    @property
    def is_terminal(self) -> bool:
        """Return True once the job has a terminal outcome."""
        return self.status == JobStatus.TERMINAL
