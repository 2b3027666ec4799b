"""Base interface for step handlers."""

from abc import (
    ABC,
    abstractmethod,
)
from datetime import (
    datetime,
    timezone,
)
from typing import (
    Any,
    Optional,
    Tuple,
)

from app.core.stores.base import CredentialStore
from app.core.stores.schema import Credential
from app.core.workflow.errors import CredentialError
from app.core.workflow.schema import (
    ExecutionContext,
    Step,
)


class StepHandler(ABC):
    """Executes steps of one or more step types.

    Handlers return the step's output data on success and raise an
    ``EngineError`` subclass on failure. The scheduler wraps every call in a
    failure boundary, so a raised exception only fails the step it came from.

    Attributes:
        step_types: The step type tags this handler is registered for.
    """

    step_types: Tuple[str, ...] = ()

    @abstractmethod
    async def execute(self, step: Step, ctx: ExecutionContext) -> Any:
        """Run ``step`` within ``ctx`` and return its output data.

        Args:
            step: The step to execute.
            ctx: The execution context of the current run.

        Returns:
            Any: Output stored under ``step.id`` for downstream steps.
        """

    def __repr__(self) -> str:
        """Return a string representation of the handler."""
        return f"<{self.__class__.__name__} step_types={list(self.step_types)!r}>"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def first_present(*values: Any) -> Any:
    """Return the first value that is neither None nor an empty string."""
    for value in values:
        if value is not None and value != "":
            return value
    return None


def trigger_field(ctx: ExecutionContext, key: str) -> Any:
    """Value of ``key`` at the top of the trigger input, then under its ``body`` envelope."""
    trigger = ctx.trigger_input if isinstance(ctx.trigger_input, dict) else {}
    body = trigger.get("body") if isinstance(trigger.get("body"), dict) else {}
    return first_present(trigger.get(key), body.get(key))


async def load_credential(
    store: CredentialStore,
    credential_id: Optional[str],
    platform: str,
    label: str,
) -> Credential:
    """Fetch a credential and check it belongs to ``platform``.

    Args:
        store: Credential store to read from.
        credential_id: Id configured on the step.
        platform: Platform the handler requires.
        label: Human-readable platform name used in error messages.

    Returns:
        Credential: The matching credential.

    Raises:
        CredentialError: If no id is configured, the credential does not
            exist, or it belongs to another platform.
    """
    if not credential_id:
        raise CredentialError(f"No {label} credential selected")

    credential = await store.get_credential(credential_id)
    if credential is None or credential.platform != platform:
        raise CredentialError(f"{label} credential not found")
    return credential
