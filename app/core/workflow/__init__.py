"""Workflow execution engine.

Walks a graph of typed steps from its trigger, layer by layer, dispatching
every step to a registered handler and threading outputs between steps
through ``{{path}}`` interpolation.

Key components:
- WorkflowGraph / Step / Link: the immutable graph model
- resolve: placeholder interpolation against an ExecutionContext
- WorkflowScheduler (``app.core.workflow.scheduler``): layered traversal
- StepHandlerRegistry (``app.core.workflow.registry``): step type -> handler
"""

from app.core.workflow.errors import (
    AgentBudgetExceeded,
    CredentialError,
    EngineError,
    GraphDisabledError,
    GraphNotFoundError,
    NoTriggerStepError,
    SandboxError,
    SandboxTimeoutError,
    StepConfigurationError,
    SubWorkflowCycleError,
    TransportError,
    TraversalError,
    UnsupportedLanguageError,
)
from app.core.workflow.schema import (
    ExecutionContext,
    Link,
    RunResult,
    Step,
    StepResult,
    StepType,
    WorkflowGraph,
)
from app.core.workflow.templating import resolve

__all__ = [
    "AgentBudgetExceeded",
    "CredentialError",
    "EngineError",
    "ExecutionContext",
    "GraphDisabledError",
    "GraphNotFoundError",
    "Link",
    "NoTriggerStepError",
    "RunResult",
    "SandboxError",
    "SandboxTimeoutError",
    "Step",
    "StepConfigurationError",
    "StepResult",
    "StepType",
    "SubWorkflowCycleError",
    "TransportError",
    "TraversalError",
    "UnsupportedLanguageError",
    "WorkflowGraph",
    "resolve",
]
