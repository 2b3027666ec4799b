"""Workflow execution endpoints.

Provides manual execution of a stored workflow and a webhook endpoint that
accepts any HTTP method and runs the workflow with the request envelope as
its trigger input.
"""

import json
from typing import (
    Any,
    Dict,
)

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Request,
)

from app.core.config import settings
from app.core.engine import WorkflowEngine
from app.core.limiter import limiter
from app.core.logging import logger
from app.core.workflow.configs import (
    TriggerConfig,
    parse_step_config,
)
from app.core.workflow.errors import StepConfigurationError
from app.core.workflow.handlers.base import utc_now_iso
from app.core.workflow.schema import (
    StepType,
    WorkflowGraph,
)
from app.schemas import (
    ExecuteRequest,
    ExecutionResponse,
)

router = APIRouter()

WEBHOOK_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def get_engine(request: Request) -> WorkflowEngine:
    """Return the engine built at application startup."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Workflow engine is not initialized")
    return engine


async def _load_enabled_graph(engine: WorkflowEngine, graph_id: str) -> WorkflowGraph:
    graph = await engine.graph_store.get_graph(graph_id)
    if graph is None:
        raise HTTPException(status_code=404, detail="Workflow not found")
    if not graph.enabled:
        raise HTTPException(status_code=400, detail="Workflow is disabled")
    return graph


async def _read_body(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        return raw.decode("utf-8", errors="replace")


@router.post("/workflows/{graph_id}/execute", response_model=ExecutionResponse)
@limiter.limit(settings.RATE_LIMIT_ENDPOINTS["execute"][0])
async def execute_workflow(
    request: Request,
    graph_id: str,
    payload: ExecuteRequest,
    engine: WorkflowEngine = Depends(get_engine),
):
    """Run a workflow with the given trigger data.

    Args:
        request: The FastAPI request object for rate limiting.
        graph_id: Id of the workflow to run.
        payload: Request body carrying ``triggerData``.
        engine: The application's workflow engine.

    Returns:
        ExecutionResponse: The run result.
    """
    graph = await _load_enabled_graph(engine, graph_id)

    logger.info("manual_execution_requested", graph_id=graph_id)
    result = await engine.scheduler.run(graph, payload.trigger_data)
    return ExecutionResponse(message="Workflow executed successfully", execution=result)


@router.api_route("/webhooks/{graph_id}", methods=WEBHOOK_METHODS, response_model=ExecutionResponse)
@limiter.limit(settings.RATE_LIMIT_ENDPOINTS["webhook"][0])
async def execute_webhook(
    graph_id: str,
    request: Request,
    engine: WorkflowEngine = Depends(get_engine),
):
    """Run a workflow from an incoming webhook call.

    The workflow's webhook trigger step decides which HTTP method is accepted
    and, when it has a ``secret``, the caller must send the same value in a
    ``secret`` header or query parameter.

    Args:
        graph_id: Id of the workflow to run.
        request: The incoming request.
        engine: The application's workflow engine.

    Returns:
        ExecutionResponse: The run result.
    """
    graph = await _load_enabled_graph(engine, graph_id)

    trigger = graph.find_trigger()
    if trigger is None or trigger.type != StepType.WEBHOOK_TRIGGER.value:
        raise HTTPException(status_code=404, detail="Webhook not found")

    try:
        trigger_config: TriggerConfig = parse_step_config(trigger)
    except StepConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    expected_method = (trigger_config.method or "POST").upper()
    if expected_method != request.method.upper():
        raise HTTPException(
            status_code=405,
            detail=f"Method not allowed. Expected {expected_method}, got {request.method}",
        )

    if trigger_config.secret:
        provided = request.headers.get("secret") or request.query_params.get("secret")
        if provided != trigger_config.secret:
            logger.warning("webhook_secret_rejected", graph_id=graph_id)
            raise HTTPException(status_code=401, detail="Invalid webhook secret")

    envelope: Dict[str, Any] = {
        "method": request.method,
        "path": request.url.path,
        "headers": dict(request.headers),
        "query": dict(request.query_params),
        "body": await _read_body(request),
        "timestamp": utc_now_iso(),
    }

    logger.info("webhook_execution_requested", graph_id=graph_id, method=request.method)
    result = await engine.scheduler.run(graph, envelope)
    return ExecutionResponse(message="Webhook executed successfully", execution=result)
