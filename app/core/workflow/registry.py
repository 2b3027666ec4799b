"""Step type to handler registry."""

from typing import (
    Dict,
    List,
    Optional,
)

import httpx

from app.core.langgraph.agent import AgentOrchestrator
from app.core.logging import logger
from app.core.sandbox.client import SandboxClient
from app.core.stores.base import (
    CredentialStore,
    MemoryStore,
)
from app.core.workflow.handlers import (
    CapabilityStepHandler,
    CodeExecutionHandler,
    EmailActionHandler,
    HttpRequestHandler,
    StepHandler,
    SubWorkflowHandler,
    TelegramActionHandler,
    TriggerHandler,
)


class StepHandlerRegistry:
    """Maps step type tags to the handler that executes them.

    Built once at startup and handed to the scheduler; lookups of unknown
    types return None so the scheduler can fail just that step.
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._handlers: Dict[str, StepHandler] = {}

    def register(self, handler: StepHandler) -> None:
        """Register ``handler`` for every type in its ``step_types``.

        Args:
            handler: The handler to register. A later registration for the
                same type replaces the earlier one.
        """
        for step_type in handler.step_types:
            if step_type in self._handlers:
                logger.warning(
                    "step_handler_replaced",
                    step_type=step_type,
                    previous=repr(self._handlers[step_type]),
                )
            self._handlers[step_type] = handler

    def get(self, step_type: str) -> Optional[StepHandler]:
        """Return the handler for ``step_type`` or None."""
        return self._handlers.get(step_type)

    @property
    def step_types(self) -> List[str]:
        """All registered step types."""
        return sorted(self._handlers)


def create_default_registry(
    credential_store: CredentialStore,
    memory_store: MemoryStore,
    sandbox: SandboxClient,
    http_client: httpx.AsyncClient,
    max_subworkflow_depth: Optional[int] = None,
) -> StepHandlerRegistry:
    """Build a registry with a handler for every built-in step type.

    Args:
        credential_store: Source of email and Telegram credentials.
        memory_store: Conversation memory for agent steps.
        sandbox: Code execution client shared by code steps and agent tools.
        http_client: Shared client for Telegram and HTTP calls.
        max_subworkflow_depth: Nesting limit for sub-workflow calls.

    Returns:
        StepHandlerRegistry: The populated registry.
    """
    registry = StepHandlerRegistry()
    registry.register(TriggerHandler())
    registry.register(EmailActionHandler(credential_store))
    registry.register(TelegramActionHandler(credential_store, http_client))
    registry.register(HttpRequestHandler(http_client))
    registry.register(CodeExecutionHandler(sandbox))
    registry.register(SubWorkflowHandler(max_subworkflow_depth))
    registry.register(CapabilityStepHandler())
    registry.register(
        AgentOrchestrator(
            memory_store=memory_store,
            sandbox=sandbox,
            http_client=http_client,
            max_subworkflow_depth=max_subworkflow_depth,
        )
    )

    logger.info("step_handler_registry_created", step_types=registry.step_types)
    return registry
