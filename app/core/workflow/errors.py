"""Exception hierarchy for the workflow execution engine.

Configuration and transport errors are raised by step handlers and converted
into failed step results by the scheduler. Traversal errors are converted
into a one-entry failed run result. Nothing here escapes ``run``/``run_by_id``.
"""


class EngineError(Exception):
    """Base class for all engine errors."""


class StepConfigurationError(EngineError):
    """A step is missing required configuration or has invalid values."""


class CredentialError(StepConfigurationError):
    """A referenced credential is absent, incomplete or for another platform."""


class TransportError(EngineError):
    """An outbound call to an external system failed."""


class TraversalError(EngineError):
    """The graph cannot be traversed at all."""


class GraphNotFoundError(TraversalError):
    """The requested workflow graph does not exist."""


class GraphDisabledError(TraversalError):
    """The requested workflow graph is disabled."""


class NoTriggerStepError(TraversalError):
    """The graph has no trigger step to start from."""


class SubWorkflowCycleError(EngineError):
    """A sub-workflow call would re-enter a graph already on the call stack."""


class AgentBudgetExceeded(EngineError):
    """The agent reasoning loop exceeded its iteration budget."""


class SandboxError(TransportError):
    """The code execution sandbox failed to run a job."""


class UnsupportedLanguageError(SandboxError):
    """The sandbox has no runtime for the requested language."""


class SandboxTimeoutError(SandboxError):
    """The sandbox job did not reach a terminal status within the poll budget."""
