"""Request and response schemas for workflow execution endpoints."""

from typing import (
    Any,
    Dict,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)
from pydantic.alias_generators import to_camel

from app.core.workflow.schema import RunResult


class ExecuteRequest(BaseModel):
    """Body of a manual execution request.

    Attributes:
        trigger_data: Payload handed to the trigger step.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    trigger_data: Dict[str, Any] = Field(default_factory=dict)


class ExecutionResponse(BaseModel):
    """Response of a manual or webhook execution.

    Attributes:
        message: Human-readable summary.
        execution: The run result.
    """

    message: str
    execution: RunResult
