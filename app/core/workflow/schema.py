"""Graph model and per-run result types for the workflow engine.

A ``WorkflowGraph`` is received by value for one run and never mutated.
Graphs exported by the visual editor use ``nodes``/``connections`` with
``source``/``target``/``data`` keys; both spellings are accepted.
"""

from dataclasses import (
    dataclass,
    field,
)
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    List,
    Optional,
    Tuple,
)

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
)
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from app.core.workflow.scheduler import WorkflowScheduler


class StepType(str, Enum):
    """Closed set of step type tags understood by the engine."""

    MANUAL_TRIGGER = "manualTrigger"
    WEBHOOK_TRIGGER = "webhookTrigger"
    EMAIL_ACTION = "emailAction"
    TELEGRAM_ACTION = "telegramAction"
    HTTP_TOOL = "httpTool"
    CODE_TOOL = "codeTool"
    WORKFLOW_TOOL = "workflowTool"
    AI_AGENT = "aiAgent"
    GEMINI_MODEL = "geminiModel"
    OPENAI_MODEL = "openaiModel"
    REDIS_MEMORY = "redisMemory"


# Sets hold plain strings: a str-Enum member hashes by name, not value.
TRIGGER_STEP_TYPES = frozenset({StepType.MANUAL_TRIGGER.value, StepType.WEBHOOK_TRIGGER.value})
TOOL_STEP_TYPES = frozenset({StepType.HTTP_TOOL.value, StepType.CODE_TOOL.value, StepType.WORKFLOW_TOOL.value})
MODEL_STEP_TYPES = frozenset({StepType.GEMINI_MODEL.value, StepType.OPENAI_MODEL.value})
MEMORY_STEP_TYPES = frozenset({StepType.REDIS_MEMORY.value})


class CapabilityPort(str, Enum):
    """Target handles on an agent step that attach a capability instead of data flow."""

    MODEL = "model"
    MEMORY = "memory"
    TOOL = "tool"


CAPABILITY_PORTS = frozenset(port.value for port in CapabilityPort)


class Step(BaseModel):
    """One typed node of a workflow graph."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    type: str
    config: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("config", "data"),
    )


class Link(BaseModel):
    """A directed edge between two steps, optionally bound to named ports."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source_id: str = Field(
        validation_alias=AliasChoices("source_id", "sourceId", "source"),
        serialization_alias="sourceId",
    )
    target_id: str = Field(
        validation_alias=AliasChoices("target_id", "targetId", "target"),
        serialization_alias="targetId",
    )
    source_handle: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("source_handle", "sourceHandle"),
        serialization_alias="sourceHandle",
    )
    target_handle: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("target_handle", "targetHandle"),
        serialization_alias="targetHandle",
    )

    @property
    def is_capability(self) -> bool:
        """Return True if this link attaches a model/memory/tool to an agent."""
        return self.target_handle in CAPABILITY_PORTS


class WorkflowGraph(BaseModel):
    """Immutable in-memory representation of a workflow."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    title: str = ""
    enabled: bool = True
    steps: List[Step] = Field(
        default_factory=list,
        validation_alias=AliasChoices("steps", "nodes"),
    )
    links: List[Link] = Field(
        default_factory=list,
        validation_alias=AliasChoices("links", "connections"),
    )

    def get_step(self, step_id: str) -> Optional[Step]:
        """Look up a step by id."""
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def find_trigger(self) -> Optional[Step]:
        """Return the first step whose type is a trigger type."""
        for step in self.steps:
            if step.type in TRIGGER_STEP_TYPES:
                return step
        return None

    def successors(self, step_id: str) -> List[Step]:
        """Steps reachable over outgoing flow links; dangling and capability links are skipped."""
        result = []
        for link in self.links:
            if link.source_id != step_id or link.is_capability:
                continue
            target = self.get_step(link.target_id)
            if target is not None:
                result.append(target)
        return result

    def inbound(self, step_id: str) -> List[Tuple[Link, Step]]:
        """Links that target ``step_id`` paired with their (existing) source step."""
        result = []
        for link in self.links:
            if link.target_id != step_id:
                continue
            source = self.get_step(link.source_id)
            if source is not None:
                result.append((link, source))
        return result


class StepResult(BaseModel):
    """Outcome of dispatching one step."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    step_id: str
    step_type: str
    success: bool
    data: Any = None
    error: Optional[str] = None


class RunResult(BaseModel):
    """Outcome of one workflow run."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    run_id: str
    success: bool
    results: List[StepResult] = Field(default_factory=list)


@dataclass
class ExecutionContext:
    """Per-run mutable state shared by the scheduler and the step handlers.

    ``outputs`` is written at most once per step id, which is what makes
    concurrent handlers within one layer safe without locking.

    Attributes:
        graph: The graph being executed.
        trigger_input: Payload the run was started with.
        outputs: Successful step outputs keyed by step id.
        run_id: Locally unique run token.
        call_stack: Graph ids of this run and every parent sub-workflow run.
        scheduler: The scheduler driving this run, used for sub-workflow calls.
    """

    graph: WorkflowGraph
    trigger_input: Any = field(default_factory=dict)
    outputs: Dict[str, Any] = field(default_factory=dict)
    run_id: str = ""
    call_stack: Tuple[str, ...] = ()
    scheduler: Optional["WorkflowScheduler"] = None
