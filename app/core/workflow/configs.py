"""Typed configuration for each step type.

``Step.config`` is a free-form mapping as stored by the editor. Handlers call
``parse_step_config`` at dispatch time to obtain the concrete model for the
step's type; traversal never looks at configuration.
"""

from typing import (
    Any,
    Dict,
    Optional,
    Type,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
)
from pydantic.alias_generators import to_camel

from app.core.workflow.errors import StepConfigurationError
from app.core.workflow.schema import (
    Step,
    StepType,
)


class StepConfig(BaseModel):
    """Base for per-type step configuration (camelCase keys, extra keys ignored)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


class TriggerConfig(StepConfig):
    """Manual and webhook triggers."""

    title: Optional[str] = None
    path: Optional[str] = None
    method: Optional[str] = None
    secret: Optional[str] = None


class EmailActionConfig(StepConfig):
    """Send an email through an ``email`` credential."""

    credential_id: Optional[str] = None
    to: Optional[str] = None
    subject: Optional[str] = None
    body: Optional[str] = None


class TelegramActionConfig(StepConfig):
    """Send a chat message through a ``telegram`` credential."""

    credential_id: Optional[str] = None
    chat_id: Optional[str] = None
    message: Optional[str] = None


class HttpToolConfig(StepConfig):
    """Issue one HTTP request."""

    url: Optional[str] = None
    method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Any] = None


class CodeToolConfig(StepConfig):
    """Run a code snippet in the sandbox."""

    language: Optional[str] = None
    code: Optional[str] = None
    stdin: Optional[str] = None


class WorkflowToolConfig(StepConfig):
    """Run another workflow graph."""

    workflow_id: Optional[str] = None
    trigger_data: Dict[str, Any] = Field(default_factory=dict)
    input: Optional[str] = None


class AiAgentConfig(StepConfig):
    """AI agent step; capabilities arrive via inbound links."""

    system_prompt: Optional[str] = None
    max_iterations: Optional[int] = Field(default=None, ge=1)


class ModelConfig(StepConfig):
    """Chat model capability (Gemini or OpenAI)."""

    api_key: Optional[str] = None
    model: Optional[str] = None
    temperature: float = 0.0
    max_tokens: Optional[int] = None


class MemoryConfig(StepConfig):
    """Conversation memory capability."""

    session_id: Optional[str] = None
    max_history: int = Field(default=10, ge=1)


STEP_CONFIG_MODELS: Dict[str, Type[StepConfig]] = {
    StepType.MANUAL_TRIGGER.value: TriggerConfig,
    StepType.WEBHOOK_TRIGGER.value: TriggerConfig,
    StepType.EMAIL_ACTION.value: EmailActionConfig,
    StepType.TELEGRAM_ACTION.value: TelegramActionConfig,
    StepType.HTTP_TOOL.value: HttpToolConfig,
    StepType.CODE_TOOL.value: CodeToolConfig,
    StepType.WORKFLOW_TOOL.value: WorkflowToolConfig,
    StepType.AI_AGENT.value: AiAgentConfig,
    StepType.GEMINI_MODEL.value: ModelConfig,
    StepType.OPENAI_MODEL.value: ModelConfig,
    StepType.REDIS_MEMORY.value: MemoryConfig,
}


def parse_step_config(step: Step) -> StepConfig:
    """Validate ``step.config`` against the model registered for its type.

    Args:
        step: The step being dispatched.

    Returns:
        StepConfig: The concrete configuration model.

    Raises:
        StepConfigurationError: If the type is unknown or the config is invalid.
    """
    model = STEP_CONFIG_MODELS.get(step.type)
    if model is None:
        raise StepConfigurationError(f"Unknown step type '{step.type}'")

    try:
        return model.model_validate(step.config or {})
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in e.errors()
        )
        raise StepConfigurationError(f"Invalid configuration for step '{step.id}' ({step.type}): {problems}") from e
