"""Model and memory steps reached through ordinary flow links."""

from typing import (
    Any,
    Dict,
)

from app.core.workflow.configs import (
    MemoryConfig,
    ModelConfig,
    parse_step_config,
)
from app.core.workflow.handlers.base import StepHandler
from app.core.workflow.schema import (
    MEMORY_STEP_TYPES,
    ExecutionContext,
    Step,
    StepType,
)


class CapabilityStepHandler(StepHandler):
    """Describes the capability without using it; API keys are never echoed."""

    step_types = (
        StepType.GEMINI_MODEL.value,
        StepType.OPENAI_MODEL.value,
        StepType.REDIS_MEMORY.value,
    )

    async def execute(self, step: Step, ctx: ExecutionContext) -> Dict[str, Any]:
        """Return a description of the model or memory configuration."""
        if step.type in MEMORY_STEP_TYPES:
            memory: MemoryConfig = parse_step_config(step)
            return {
                "message": "Memory is used by a connected AI Agent",
                "capability": "memory",
                "maxHistory": memory.max_history,
            }

        model: ModelConfig = parse_step_config(step)
        return {
            "message": "Model is used by a connected AI Agent",
            "capability": "model",
            "provider": step.type,
            "model": model.model,
            "configured": bool(model.api_key),
        }
