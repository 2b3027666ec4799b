"""Code execution step handler backed by the sandbox poller."""

from typing import (
    Any,
    Dict,
)

from app.core.logging import logger
from app.core.sandbox.client import SandboxClient
from app.core.workflow.configs import (
    CodeToolConfig,
    parse_step_config,
)
from app.core.workflow.errors import StepConfigurationError
from app.core.workflow.handlers.base import StepHandler
from app.core.workflow.schema import (
    ExecutionContext,
    Step,
    StepType,
)
from app.core.workflow.templating import resolve


class CodeExecutionHandler(StepHandler):
    """Runs the configured snippet; ``stdin`` is templated.

    A program that compiles or runs with errors still completes the step: the
    sandbox status and stderr are part of the output.
    """

    step_types = (StepType.CODE_TOOL.value,)

    def __init__(self, sandbox: SandboxClient):
        """Initialize the handler with a sandbox client."""
        self.sandbox = sandbox

    async def execute(self, step: Step, ctx: ExecutionContext) -> Dict[str, Any]:
        """Execute the code and return the sandbox result."""
        config: CodeToolConfig = parse_step_config(step)
        if not config.language or not config.code:
            raise StepConfigurationError("No language or code configured in code tool")

        result = await self.sandbox.execute(config.language, config.code, resolve(config.stdin, ctx))
        logger.info("code_step_completed", step_id=step.id, language=result.language, status=result.status)
        return result.to_dict()
