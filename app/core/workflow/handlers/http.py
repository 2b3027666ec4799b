"""HTTP call step handler."""

from typing import (
    Any,
    Dict,
    Optional,
)

import httpx

from app.core.config import settings
from app.core.logging import logger
from app.core.workflow.configs import (
    HttpToolConfig,
    parse_step_config,
)
from app.core.workflow.errors import (
    StepConfigurationError,
    TransportError,
)
from app.core.workflow.handlers.base import (
    StepHandler,
    utc_now_iso,
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


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


async def send_http_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    content: Optional[str] = None,
    json_body: Any = None,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Issue one request and return its status and decoded body.

    Args:
        client: Shared async HTTP client.
        method: HTTP method (any case).
        url: Absolute request URL.
        params: Optional query parameters.
        content: Optional raw request body.
        json_body: Optional JSON request body (ignored when ``content`` is set).
        headers: Optional request headers.

    Returns:
        Dict[str, Any]: ``{"status": int, "data": Any}``.

    Raises:
        TransportError: On connection errors and non-2xx responses.
    """
    try:
        response = await client.request(
            method.upper(),
            url,
            params=params,
            content=content,
            json=json_body if content is None else None,
            headers=headers,
            timeout=settings.HTTP_TOOL_TIMEOUT,
        )
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise TransportError(f"HTTP request failed: {str(e) or e.__class__.__name__}") from e

    return {"status": response.status_code, "data": _response_body(response)}


class HttpRequestHandler(StepHandler):
    """Issues the configured request; URL, headers and body are templated."""

    step_types = (StepType.HTTP_TOOL.value,)

    def __init__(self, http_client: httpx.AsyncClient):
        """Initialize the handler with a shared HTTP client."""
        self.http_client = http_client

    async def execute(self, step: Step, ctx: ExecutionContext) -> Dict[str, Any]:
        """Send the request and return its status and body."""
        config: HttpToolConfig = parse_step_config(step)

        url = resolve(config.url, ctx)
        if not url:
            raise StepConfigurationError("URL is required for HTTP Tool")

        method = (config.method or "GET").upper()
        headers = resolve_value(config.headers, ctx) or None

        content = None
        json_body = None
        if method != "GET" and config.body is not None:
            if isinstance(config.body, str):
                content = resolve(config.body, ctx)
            else:
                json_body = resolve_value(config.body, ctx)

        result = await send_http_request(
            self.http_client,
            method,
            url,
            content=content,
            json_body=json_body,
            headers=headers,
        )

        logger.info("http_step_completed", step_id=step.id, method=method, status=result["status"])
        return {
            "message": "HTTP request executed successfully",
            "status": result["status"],
            "data": result["data"],
            "executedAt": utc_now_iso(),
        }
