"""This file contains the schemas for the application."""

from app.schemas.execution import (
    ExecuteRequest,
    ExecutionResponse,
)

__all__ = [
    "ExecuteRequest",
    "ExecutionResponse",
]
