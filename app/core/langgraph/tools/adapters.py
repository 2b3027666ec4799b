"""Adapters that expose tool steps to the agent as LangChain tools.

Engine errors raised while a tool runs are re-raised as ``ToolException`` so
the model receives the error text as the tool result and can react to it
instead of the whole agent step failing.
"""

import json
from typing import (
    Awaitable,
    Callable,
    List,
    Optional,
)

import httpx
from langchain_core.tools import (
    BaseTool,
    Tool,
    ToolException,
)

from app.core.logging import logger
from app.core.metrics import agent_tool_calls_total
from app.core.sandbox.client import SandboxClient
from app.core.workflow.configs import (
    CodeToolConfig,
    HttpToolConfig,
    WorkflowToolConfig,
    parse_step_config,
)
from app.core.workflow.errors import (
    EngineError,
    StepConfigurationError,
)
from app.core.workflow.handlers.http import send_http_request
from app.core.workflow.handlers.subworkflow import (
    parse_workflow_input,
    run_subworkflow,
)
from app.core.workflow.schema import (
    ExecutionContext,
    Step,
    StepType,
)
from app.core.workflow.templating import (
    resolve,
    resolve_value,
)

HTTP_TOOL_DESCRIPTION = (
    "Use this tool to fetch data from external APIs, websites, or any internet source. "
    "Use for JSON data, API calls, or external information."
)
CODE_TOOL_DESCRIPTION = (
    "Execute code to perform calculations, solve algorithms, or process data. "
    "Use this tool when users ask for mathematical operations, code execution, or computational tasks. "
    "Automatically use numbers from user requests. This tool supports JavaScript and Python."
)
WORKFLOW_TOOL_DESCRIPTION = (
    "Execute another workflow to perform complex tasks. "
    "Use this tool when you need to run a different workflow that contains multiple steps or specialized logic. "
    "Pass data as JSON or simple text."
)


def _as_tool(step: Step, name: str, description: str, run: Callable[[str], Awaitable[str]]) -> BaseTool:
    """Wrap ``run`` as a single-string-input tool that reports engine errors to the model."""

    async def _invoke(tool_input: str) -> str:
        agent_tool_calls_total.labels(tool_type=step.type).inc()
        logger.info("agent_tool_invoked", tool=name, step_id=step.id)
        try:
            return await run(tool_input or "")
        except EngineError as e:
            logger.warning("agent_tool_failed", tool=name, step_id=step.id, error=str(e))
            raise ToolException(str(e)) from e

    return Tool.from_function(
        func=None,
        coroutine=_invoke,
        name=name,
        description=description,
        handle_tool_error=True,
    )


def _http_tool(step: Step, ctx: ExecutionContext, http_client: httpx.AsyncClient) -> BaseTool:
    async def run(tool_input: str) -> str:
        config: HttpToolConfig = parse_step_config(step)
        url = resolve(config.url, ctx)
        if not url:
            raise StepConfigurationError("No URL configured in HTTP tool")

        method = (config.method or "GET").upper()
        if method == "GET":
            result = await send_http_request(
                http_client,
                method,
                url,
                params={"query": tool_input},
                headers=resolve_value(config.headers, ctx) or None,
            )
        else:
            result = await send_http_request(
                http_client,
                method,
                url,
                content=tool_input,
                headers=resolve_value(config.headers, ctx) or None,
            )

        return json.dumps(
            {
                "status": result["status"],
                "data": result["data"],
                "message": f"HTTP {method} request successful",
            },
            default=str,
        )

    return _as_tool(step, f"http_{step.id}", HTTP_TOOL_DESCRIPTION, run)


def _code_tool(step: Step, sandbox: SandboxClient) -> BaseTool:
    async def run(tool_input: str) -> str:
        config: CodeToolConfig = parse_step_config(step)
        if not config.language or not config.code:
            raise StepConfigurationError("No language or code configured in code tool")

        result = await sandbox.execute(config.language, config.code, tool_input)
        return json.dumps(result.to_dict(), default=str)

    return _as_tool(step, f"code_{step.id}", CODE_TOOL_DESCRIPTION, run)


def _workflow_tool(step: Step, ctx: ExecutionContext, max_depth: Optional[int]) -> BaseTool:
    async def run(tool_input: str) -> str:
        config: WorkflowToolConfig = parse_step_config(step)
        if not config.workflow_id:
            raise StepConfigurationError("No workflow ID configured in workflow tool")

        payload = parse_workflow_input(resolve_value(config.trigger_data, ctx), tool_input)
        result = await run_subworkflow(ctx, config.workflow_id, payload, max_depth)
        return json.dumps(
            {
                "success": result.success,
                "runId": result.run_id,
                "results": [r.model_dump(by_alias=True) for r in result.results],
                "message": f"Workflow executed with {len(result.results)} steps",
            },
            default=str,
        )

    return _as_tool(step, f"workflow_{step.id}", WORKFLOW_TOOL_DESCRIPTION, run)


def build_agent_tool(
    step: Step,
    ctx: ExecutionContext,
    *,
    http_client: httpx.AsyncClient,
    sandbox: SandboxClient,
    max_subworkflow_depth: Optional[int] = None,
) -> BaseTool:
    """Build the LangChain tool for one tool step.

    Args:
        step: An ``httpTool``, ``codeTool`` or ``workflowTool`` step.
        ctx: The execution context of the running agent step.
        http_client: Shared client for HTTP tools.
        sandbox: Code execution client for code tools.
        max_subworkflow_depth: Nesting limit for workflow tools.

    Returns:
        BaseTool: A tool named ``<kind>_<step id>``.

    Raises:
        StepConfigurationError: If the step is not a tool step.
    """
    if step.type == StepType.HTTP_TOOL.value:
        return _http_tool(step, ctx, http_client)
    if step.type == StepType.CODE_TOOL.value:
        return _code_tool(step, sandbox)
    if step.type == StepType.WORKFLOW_TOOL.value:
        return _workflow_tool(step, ctx, max_subworkflow_depth)
    raise StepConfigurationError(f"Unknown tool type: {step.type}")


def build_agent_tools(
    steps: List[Step],
    ctx: ExecutionContext,
    *,
    http_client: httpx.AsyncClient,
    sandbox: SandboxClient,
    max_subworkflow_depth: Optional[int] = None,
) -> List[BaseTool]:
    """Build one tool per tool step, in link order."""
    return [
        build_agent_tool(
            step,
            ctx,
            http_client=http_client,
            sandbox=sandbox,
            max_subworkflow_depth=max_subworkflow_depth,
        )
        for step in steps
    ]
