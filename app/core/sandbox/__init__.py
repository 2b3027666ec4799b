"""Sandboxed code execution via a submit-then-poll job protocol."""

from app.core.sandbox.client import SandboxClient
from app.core.sandbox.schema import (
    LANGUAGE_IDS,
    AsyncJob,
    JobStatus,
    SandboxResult,
)

__all__ = [
    "SandboxClient",
    "SandboxResult",
    "AsyncJob",
    "JobStatus",
    "LANGUAGE_IDS",
]
