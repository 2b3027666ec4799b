"""Shared test fixtures for the test suite."""

import asyncio
import os
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
)

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("RATE_LIMIT_WEBHOOK", "5 per minute")

import pytest  # noqa: E402

from app.core.stores import (  # noqa: E402
    Credential,
    InMemoryCredentialStore,
    InMemoryMemoryStore,
)
from app.core.workflow.errors import TransportError  # noqa: E402
from app.core.workflow.handlers import (  # noqa: E402
    StepHandler,
    TriggerHandler,
)
from app.core.workflow.registry import StepHandlerRegistry  # noqa: E402
from app.core.workflow.schema import (  # noqa: E402
    ExecutionContext,
    Step,
    WorkflowGraph,
)


class RecordingHandler(StepHandler):
    """Test handler that records every call and fails selected step ids."""

    def __init__(self, step_types: Sequence[str], fail_ids: Iterable[str] = ()):
        self.step_types = tuple(step_types)
        self.fail_ids = set(fail_ids)
        self.calls: List[str] = []

    async def execute(self, step: Step, ctx: ExecutionContext) -> Dict[str, Any]:
        self.calls.append(step.id)
        await asyncio.sleep(0)
        if step.id in self.fail_ids:
            raise TransportError(f"{step.id} failed")
        return {"id": step.id, "seen": sorted(ctx.outputs)}


def build_graph(
    steps: Sequence[tuple],
    links: Sequence[tuple] = (),
    graph_id: str = "wf",
    enabled: bool = True,
) -> WorkflowGraph:
    """Build a graph from ``(id, type[, config])`` steps and ``(source, target[, handle])`` links."""
    return WorkflowGraph.model_validate(
        {
            "id": graph_id,
            "enabled": enabled,
            "nodes": [
                {"id": s[0], "type": s[1], "data": s[2] if len(s) > 2 else {}}
                for s in steps
            ],
            "connections": [
                {"source": link[0], "target": link[1], "targetHandle": link[2] if len(link) > 2 else None}
                for link in links
            ],
        }
    )


@pytest.fixture
def make_graph() -> Callable[..., WorkflowGraph]:
    """Factory fixture for compact graph definitions."""
    return build_graph


@pytest.fixture
def make_context() -> Callable[..., ExecutionContext]:
    """Factory fixture for execution contexts."""

    def _make(
        trigger_input: Optional[Any] = None,
        outputs: Optional[Dict[str, Any]] = None,
        graph: Optional[WorkflowGraph] = None,
    ) -> ExecutionContext:
        return ExecutionContext(
            graph=graph or WorkflowGraph(id="wf"),
            trigger_input=trigger_input if trigger_input is not None else {},
            outputs=outputs or {},
            run_id="exec_test",
            call_stack=((graph.id,) if graph else ("wf",)),
        )

    return _make


@pytest.fixture
def recording_handler() -> RecordingHandler:
    """Recording handler registered for the generic step types used in traversal tests."""
    return RecordingHandler(["httpTool", "codeTool", "emailAction", "aiAgent"])


@pytest.fixture
def recording_registry(recording_handler) -> StepHandlerRegistry:
    """Registry with real triggers and the recording handler for everything else."""
    registry = StepHandlerRegistry()
    registry.register(TriggerHandler())
    registry.register(recording_handler)
    return registry


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    """Credential store holding one email and one Telegram credential."""
    return InMemoryCredentialStore(
        [
            Credential(
                id="cred-email",
                platform="email",
                title="Work mail",
                data={"email": "bot@example.com", "appPassword": "app-pass"},
            ),
            Credential(
                id="cred-telegram",
                platform="telegram",
                title="Bot",
                data={"botToken": "123:abc"},
            ),
        ]
    )


@pytest.fixture
def memory_store() -> InMemoryMemoryStore:
    """Empty in-memory conversation store."""
    return InMemoryMemoryStore()
