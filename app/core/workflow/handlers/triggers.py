"""Trigger step handlers."""

from typing import Any

from app.core.workflow.handlers.base import StepHandler
from app.core.workflow.schema import (
    ExecutionContext,
    Step,
    StepType,
)


class TriggerHandler(StepHandler):
    """Manual and webhook triggers: the trigger input becomes the step output."""

    step_types = (StepType.MANUAL_TRIGGER.value, StepType.WEBHOOK_TRIGGER.value)

    async def execute(self, step: Step, ctx: ExecutionContext) -> Any:
        """Pass the run's trigger input through unchanged."""
        return ctx.trigger_input
