"""Step handlers, one class per family of step types."""

from app.core.workflow.handlers.base import StepHandler
from app.core.workflow.handlers.capability import CapabilityStepHandler
from app.core.workflow.handlers.code import CodeExecutionHandler
from app.core.workflow.handlers.http import (
    HttpRequestHandler,
    send_http_request,
)
from app.core.workflow.handlers.messaging import (
    EmailActionHandler,
    TelegramActionHandler,
)
from app.core.workflow.handlers.subworkflow import (
    SubWorkflowHandler,
    parse_workflow_input,
    run_subworkflow,
)
from app.core.workflow.handlers.triggers import TriggerHandler

__all__ = [
    "CapabilityStepHandler",
    "CodeExecutionHandler",
    "EmailActionHandler",
    "HttpRequestHandler",
    "StepHandler",
    "SubWorkflowHandler",
    "TelegramActionHandler",
    "TriggerHandler",
    "parse_workflow_input",
    "run_subworkflow",
    "send_http_request",
]
