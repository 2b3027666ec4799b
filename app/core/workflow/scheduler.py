"""Layered traversal of a workflow graph.

Execution starts at the trigger step and proceeds in layers: every step that
is ready runs concurrently, and only once the whole layer has finished are
the successors of its successful steps queued for the next layer. A failed
step never stops the run; its successors simply never become ready.
"""

import asyncio
import secrets
import time
from collections import deque
from enum import Enum
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Optional,
    Set,
    Tuple,
)

from app.core.config import settings
from app.core.logging import logger
from app.core.metrics import (
    workflow_runs_total,
    workflow_step_duration_seconds,
    workflow_step_executions_total,
)
from app.core.stores.base import GraphStore
from app.core.workflow.errors import (
    EngineError,
    GraphDisabledError,
    GraphNotFoundError,
    NoTriggerStepError,
    StepConfigurationError,
    TraversalError,
)
from app.core.workflow.registry import StepHandlerRegistry
from app.core.workflow.schema import (
    ExecutionContext,
    RunResult,
    Step,
    StepResult,
    WorkflowGraph,
)

WORKFLOW_STEP_ID = "__workflow__"
WORKFLOW_STEP_TYPE = "workflow"


class JoinMode(str, Enum):
    """When a step with several inbound flow links becomes ready.

    Attributes:
        FIRST_ARRIVAL: As soon as any predecessor has succeeded.
        ALL_PREDECESSORS: Once every predecessor reachable from the trigger
            has succeeded. A failed predecessor keeps the step from running.
    """

    FIRST_ARRIVAL = "first_arrival"
    ALL_PREDECESSORS = "all_predecessors"


def new_run_id() -> str:
    """Return a locally unique run id of the form ``exec_<millis>_<hex>``."""
    return f"exec_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def _reachable(graph: WorkflowGraph, start_id: str) -> Set[str]:
    """Ids of all steps reachable from ``start_id`` over flow links, itself included."""
    seen = {start_id}
    queue = deque([start_id])
    while queue:
        for successor in graph.successors(queue.popleft()):
            if successor.id not in seen:
                seen.add(successor.id)
                queue.append(successor.id)
    return seen


def pending_predecessors(graph: WorkflowGraph, trigger_id: str) -> Dict[str, Set[str]]:
    """Collect, per step, the predecessors that must succeed before it runs.

    Only links from steps reachable from the trigger are counted, and links
    that close a cycle back onto an ancestor are ignored. Steps whose inbound
    links are all ignored are absent from the result.

    Args:
        graph: The graph being executed.
        trigger_id: Id of the trigger step the run starts from.

    Returns:
        Dict[str, Set[str]]: Outstanding predecessor ids keyed by step id.
    """
    reachable = _reachable(graph, trigger_id)
    pending: Dict[str, Set[str]] = {}
    for source_id in reachable:
        for target in graph.successors(source_id):
            if source_id in _reachable(graph, target.id):
                continue
            pending.setdefault(target.id, set()).add(source_id)
    return pending


class WorkflowScheduler:
    """Runs workflow graphs against a step handler registry.

    Args:
        registry: Handlers for every executable step type.
        graph_store: Source of graphs for ``run_by_id`` and sub-workflows.
        join_mode: Readiness rule for steps with several predecessors.
        max_subworkflow_depth: Nesting limit recorded for sub-workflow calls.
    """

    def __init__(
        self,
        registry: StepHandlerRegistry,
        graph_store: Optional[GraphStore] = None,
        join_mode: Optional[JoinMode] = None,
        max_subworkflow_depth: Optional[int] = None,
    ):
        """Initialize the scheduler."""
        self.registry = registry
        self.graph_store = graph_store
        self.join_mode = JoinMode(join_mode or settings.WORKFLOW_JOIN_MODE)
        self.max_subworkflow_depth = max_subworkflow_depth or settings.MAX_SUBWORKFLOW_DEPTH

    async def run_by_id(
        self,
        graph_id: str,
        trigger_input: Any = None,
        call_stack: Tuple[str, ...] = (),
    ) -> RunResult:
        """Load a graph from the graph store and run it.

        Never raises: a missing store, a missing graph or a store failure is
        reported as a failed run.

        Args:
            graph_id: Id of the graph to run.
            trigger_input: Payload the trigger step passes on.
            call_stack: Graph ids of the calling runs, outermost first.

        Returns:
            RunResult: The outcome of the run.
        """
        try:
            if self.graph_store is None:
                raise GraphNotFoundError(f"No graph store configured to load workflow '{graph_id}'")
            graph = await self.graph_store.get_graph(graph_id)
            if graph is None:
                raise GraphNotFoundError(f"Workflow '{graph_id}' not found")
        except TraversalError as e:
            logger.warning("workflow_not_found", graph_id=graph_id, error=str(e))
            return self._failed_run(new_run_id(), e)
        except Exception as e:
            logger.exception("workflow_load_failed", graph_id=graph_id, error=str(e))
            return self._failed_run(new_run_id(), e)

        return await self.run(graph, trigger_input, call_stack=call_stack)

    async def run(
        self,
        graph: WorkflowGraph,
        trigger_input: Any = None,
        call_stack: Tuple[str, ...] = (),
    ) -> RunResult:
        """Execute ``graph`` from its trigger step.

        Args:
            graph: The graph to execute.
            trigger_input: Payload the trigger step passes on.
            call_stack: Graph ids of the calling runs, outermost first.

        Returns:
            RunResult: Per-step results in execution order; ``success`` is
                True only if every executed step succeeded.
        """
        run_id = new_run_id()
        trigger = graph.find_trigger()

        if not graph.enabled:
            logger.info("workflow_run_skipped_disabled", run_id=run_id, graph_id=graph.id)
            return self._failed_run(run_id, GraphDisabledError(f"Workflow '{graph.id}' is disabled"), trigger)
        if trigger is None:
            logger.warning("workflow_run_no_trigger", run_id=run_id, graph_id=graph.id)
            return self._failed_run(run_id, NoTriggerStepError("No trigger step found in workflow"))

        ctx = ExecutionContext(
            graph=graph,
            trigger_input=trigger_input if trigger_input is not None else {},
            run_id=run_id,
            call_stack=tuple(call_stack) + (graph.id,),
            scheduler=self,
        )

        logger.info(
            "workflow_run_started",
            run_id=run_id,
            graph_id=graph.id,
            trigger_id=trigger.id,
            join_mode=self.join_mode.value,
            depth=len(ctx.call_stack),
        )

        try:
            results = await self._traverse(ctx, trigger)
        except Exception as e:
            logger.exception("workflow_run_failed", run_id=run_id, graph_id=graph.id, error=str(e))
            return self._failed_run(run_id, e, trigger)

        success = bool(results) and all(result.success for result in results)
        workflow_runs_total.labels(status="success" if success else "failure").inc()
        logger.info(
            "workflow_run_completed",
            run_id=run_id,
            graph_id=graph.id,
            success=success,
            steps_executed=len(results),
        )
        return RunResult(run_id=run_id, success=success, results=results)

    async def _traverse(self, ctx: ExecutionContext, trigger: Step) -> List[StepResult]:
        graph = ctx.graph
        executed: Set[str] = set()
        ready: List[Step] = [trigger]
        results: List[StepResult] = []
        pending = (
            pending_predecessors(graph, trigger.id) if self.join_mode == JoinMode.ALL_PREDECESSORS else None
        )

        while ready:
            batch, ready = ready, []
            executed.update(step.id for step in batch)

            batch_results = await asyncio.gather(*(self._execute_step(step, ctx) for step in batch))
            results.extend(batch_results)

            for step, result in zip(batch, batch_results):
                if not result.success:
                    continue
                for successor in self._unlocked(graph, step, pending):
                    if successor.id in executed or any(queued.id == successor.id for queued in ready):
                        continue
                    ready.append(successor)

        return results

    def _unlocked(
        self,
        graph: WorkflowGraph,
        step: Step,
        pending: Optional[Dict[str, Set[str]]],
    ) -> Iterable[Step]:
        """Successors of a succeeded ``step`` that are now ready under the join mode."""
        for successor in graph.successors(step.id):
            if pending is not None and successor.id in pending:
                # Ignored back edges never release a join step.
                pending[successor.id].discard(step.id)
                if pending[successor.id]:
                    continue
            yield successor

    async def _execute_step(self, step: Step, ctx: ExecutionContext) -> StepResult:
        """Run one step inside the failure boundary and record its output."""
        start = time.perf_counter()
        logger.info("step_execution_started", run_id=ctx.run_id, step_id=step.id, step_type=step.type)

        try:
            handler = self.registry.get(step.type)
            if handler is None:
                raise StepConfigurationError(f"No handler registered for step type '{step.type}'")
            data = await handler.execute(step, ctx)
        except EngineError as e:
            result = StepResult(step_id=step.id, step_type=step.type, success=False, error=str(e))
            logger.warning(
                "step_execution_failed",
                run_id=ctx.run_id,
                step_id=step.id,
                step_type=step.type,
                error=str(e),
            )
        except Exception as e:
            result = StepResult(
                step_id=step.id,
                step_type=step.type,
                success=False,
                error=str(e) or e.__class__.__name__,
            )
            logger.exception(
                "step_execution_crashed",
                run_id=ctx.run_id,
                step_id=step.id,
                step_type=step.type,
                error=str(e),
            )
        else:
            ctx.outputs[step.id] = data
            result = StepResult(step_id=step.id, step_type=step.type, success=True, data=data)
            logger.info("step_execution_completed", run_id=ctx.run_id, step_id=step.id, step_type=step.type)

        workflow_step_executions_total.labels(
            step_type=step.type,
            status="success" if result.success else "failure",
        ).inc()
        workflow_step_duration_seconds.labels(step_type=step.type).observe(time.perf_counter() - start)
        return result

    def _failed_run(self, run_id: str, error: Exception, step: Optional[Step] = None) -> RunResult:
        """A failed run carrying one synthetic result for ``step`` (or the workflow itself)."""
        workflow_runs_total.labels(status="failure").inc()
        return RunResult(
            run_id=run_id,
            success=False,
            results=[
                StepResult(
                    step_id=step.id if step else WORKFLOW_STEP_ID,
                    step_type=step.type if step else WORKFLOW_STEP_TYPE,
                    success=False,
                    error=str(error) or error.__class__.__name__,
                )
            ],
        )
