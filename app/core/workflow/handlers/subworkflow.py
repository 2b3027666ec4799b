"""Sub-workflow step handler and the call guard shared with the agent tool adapter."""

import json
from typing import (
    Any,
    Dict,
    Optional,
)

from app.core.config import settings
from app.core.logging import logger
from app.core.workflow.configs import (
    WorkflowToolConfig,
    parse_step_config,
)
from app.core.workflow.errors import (
    EngineError,
    StepConfigurationError,
    SubWorkflowCycleError,
)
from app.core.workflow.handlers.base import (
    StepHandler,
    utc_now_iso,
)
from app.core.workflow.schema import (
    ExecutionContext,
    RunResult,
    Step,
    StepType,
)
from app.core.workflow.templating import (
    resolve,
    resolve_value,
)


def parse_workflow_input(base: Optional[Dict[str, Any]], raw_input: Optional[str]) -> Dict[str, Any]:
    """Build the child trigger input from static trigger data and free-form input.

    A JSON object is merged over ``base``; any other non-empty text is passed
    as ``{"message": text}``.
    """
    payload = dict(base or {})
    if raw_input is None or raw_input == "":
        return payload

    try:
        parsed = json.loads(raw_input)
    except ValueError:
        parsed = None

    if isinstance(parsed, dict):
        payload.update(parsed)
    else:
        payload["message"] = raw_input
    return payload


async def run_subworkflow(
    ctx: ExecutionContext,
    workflow_id: str,
    payload: Dict[str, Any],
    max_depth: Optional[int] = None,
) -> RunResult:
    """Run ``workflow_id`` as a child of the current run.

    Args:
        ctx: The parent run's execution context.
        workflow_id: Graph id of the child workflow.
        payload: Trigger input for the child run.
        max_depth: Maximum number of nested runs, parent included.

    Returns:
        RunResult: The child run's result.

    Raises:
        SubWorkflowCycleError: If the child is already on the call stack or
            the nesting depth would be exceeded.
        StepConfigurationError: If the context has no scheduler to run with.
    """
    if not max_depth:
        max_depth = ctx.scheduler.max_subworkflow_depth if ctx.scheduler else settings.MAX_SUBWORKFLOW_DEPTH

    if workflow_id in ctx.call_stack:
        chain = " -> ".join(ctx.call_stack + (workflow_id,))
        raise SubWorkflowCycleError(f"Sub-workflow cycle detected: {chain}")
    if len(ctx.call_stack) >= max_depth:
        raise SubWorkflowCycleError(f"Sub-workflow depth limit of {max_depth} exceeded")
    if ctx.scheduler is None:
        raise StepConfigurationError("Sub-workflow execution is not available in this context")

    logger.info(
        "subworkflow_started",
        parent_run_id=ctx.run_id,
        workflow_id=workflow_id,
        depth=len(ctx.call_stack),
    )
    return await ctx.scheduler.run_by_id(workflow_id, payload, call_stack=ctx.call_stack)


def first_error(result: RunResult) -> str:
    """Error message of the first failed step of a run."""
    for step_result in result.results:
        if not step_result.success:
            return step_result.error or f"step '{step_result.step_id}' failed"
    return "unknown error"


class SubWorkflowHandler(StepHandler):
    """Runs another workflow by id; succeeds only if the child run succeeds."""

    step_types = (StepType.WORKFLOW_TOOL.value,)

    def __init__(self, max_depth: Optional[int] = None):
        """Initialize the handler."""
        self.max_depth = max_depth

    async def execute(self, step: Step, ctx: ExecutionContext) -> Dict[str, Any]:
        """Run the child workflow and return its step results."""
        config: WorkflowToolConfig = parse_step_config(step)
        if not config.workflow_id:
            raise StepConfigurationError("No workflow selected in workflow tool")

        payload = parse_workflow_input(resolve_value(config.trigger_data, ctx), resolve(config.input, ctx))
        result = await run_subworkflow(ctx, config.workflow_id, payload, self.max_depth)

        if not result.success:
            raise EngineError(f"Sub-workflow '{config.workflow_id}' failed: {first_error(result)}")

        return {
            "message": "Workflow executed successfully",
            "workflowId": config.workflow_id,
            "runId": result.run_id,
            "results": [r.model_dump(by_alias=True) for r in result.results],
            "executedAt": utc_now_iso(),
        }
