"""AI agent step: a LangChain ``create_agent`` loop assembled per run.

The agent's capabilities come from the steps linked into it. Exactly one
model step, any number of tool steps and at most one memory step are
collected from the inbound links, turned into a chat model, LangChain tools
and prior conversation turns, and handed to ``create_agent`` for a bounded
tool-calling loop.
"""

import json
from dataclasses import (
    dataclass,
    field,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
)

import httpx
from langchain.agents import create_agent
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    ToolMessage,
)
from langfuse.langchain import CallbackHandler as LangfuseCallbackHandler
from langgraph.errors import GraphRecursionError

from app.core.config import settings
from app.core.langgraph.models import create_chat_model
from app.core.langgraph.prompts import build_system_prompt
from app.core.langgraph.tools import build_agent_tools
from app.core.logging import logger
from app.core.sandbox.client import SandboxClient
from app.core.stores.base import MemoryStore
from app.core.stores.schema import MemoryTurn
from app.core.workflow.configs import (
    AiAgentConfig,
    MemoryConfig,
    ModelConfig,
    parse_step_config,
)
from app.core.workflow.errors import (
    AgentBudgetExceeded,
    EngineError,
    StepConfigurationError,
    TransportError,
)
from app.core.workflow.handlers.base import (
    StepHandler,
    utc_now_iso,
)
from app.core.workflow.schema import (
    MEMORY_STEP_TYPES,
    MODEL_STEP_TYPES,
    TOOL_STEP_TYPES,
    CapabilityPort,
    ExecutionContext,
    Step,
    StepType,
    WorkflowGraph,
)
from app.core.workflow.templating import resolve

TASK_INSTRUCTION = "Execute the task as specified in the system prompt. Available data: {data}"


@dataclass
class AgentNeighbors:
    """Capability steps linked into an agent step."""

    model: Optional[Step] = None
    tools: List[Step] = field(default_factory=list)
    memory: Optional[Step] = None


def find_agent_neighbors(graph: WorkflowGraph, agent_id: str) -> AgentNeighbors:
    """Partition the steps feeding into ``agent_id`` into model, tools and memory.

    Links attached to a capability port are classified by the port, any
    other inbound link by the source step's type. A source whose type does
    not match the port it is attached to is ignored.

    Args:
        graph: The graph being executed.
        agent_id: Id of the agent step.

    Returns:
        AgentNeighbors: The first model, all tools and the first memory step.
    """
    neighbors = AgentNeighbors()
    for link, source in graph.inbound(agent_id):
        port = link.target_handle

        if source.type in MODEL_STEP_TYPES and port in (None, "", CapabilityPort.MODEL.value):
            if neighbors.model is None:
                neighbors.model = source
            else:
                logger.warning("agent_extra_model_ignored", agent_id=agent_id, step_id=source.id)
        elif source.type in TOOL_STEP_TYPES and port in (None, "", CapabilityPort.TOOL.value):
            neighbors.tools.append(source)
        elif source.type in MEMORY_STEP_TYPES and port in (None, "", CapabilityPort.MEMORY.value):
            if neighbors.memory is None:
                neighbors.memory = source
    return neighbors


def _message_text(message: BaseMessage) -> str:
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


def _turns_to_messages(turns: List[MemoryTurn]) -> List[BaseMessage]:
    """Convert stored turns (most recent first) into chronological chat messages."""
    messages: List[BaseMessage] = []
    for turn in reversed(turns):
        if turn.role == "human":
            messages.append(HumanMessage(content=turn.content))
        else:
            messages.append(AIMessage(content=turn.content))
    return messages


class AgentOrchestrator(StepHandler):
    """Runs ``aiAgent`` steps.

    Args:
        memory_store: Conversation memory backing ``redisMemory`` steps.
        sandbox: Code execution client for code tools.
        http_client: Shared client for HTTP tools.
        max_subworkflow_depth: Nesting limit for workflow tools.
        model_factory: Builds the chat model from a model step's config.
    """

    step_types = (StepType.AI_AGENT.value,)

    def __init__(
        self,
        memory_store: MemoryStore,
        sandbox: SandboxClient,
        http_client: httpx.AsyncClient,
        max_subworkflow_depth: Optional[int] = None,
        model_factory: Callable[[str, ModelConfig], BaseChatModel] = create_chat_model,
    ):
        """Initialize the orchestrator."""
        self.memory_store = memory_store
        self.sandbox = sandbox
        self.http_client = http_client
        self.max_subworkflow_depth = max_subworkflow_depth
        self.model_factory = model_factory

    async def execute(self, step: Step, ctx: ExecutionContext) -> Dict[str, Any]:
        """Assemble the agent from its linked steps and run it to a final answer.

        Args:
            step: The ``aiAgent`` step.
            ctx: The execution context of the current run.

        Returns:
            Dict[str, Any]: ``message``, ``output``, ``toolsUsed``, ``memoryUsed``
                and ``timestamp``.

        Raises:
            StepConfigurationError: If no usable model step is connected.
            AgentBudgetExceeded: If the loop needs more than ``maxIterations``.
            TransportError: If the model provider call fails.
        """
        config: AiAgentConfig = parse_step_config(step)
        neighbors = find_agent_neighbors(ctx.graph, step.id)

        if neighbors.model is None:
            raise StepConfigurationError("No model step connected to AI Agent")
        model_config: ModelConfig = parse_step_config(neighbors.model)
        if not model_config.api_key:
            raise StepConfigurationError("No API key configured in model step")

        llm = self.model_factory(neighbors.model.type, model_config)
        tools = build_agent_tools(
            neighbors.tools,
            ctx,
            http_client=self.http_client,
            sandbox=self.sandbox,
            max_subworkflow_depth=self.max_subworkflow_depth,
        )

        session_id = ""
        history: List[BaseMessage] = []
        if neighbors.memory is not None:
            memory_config: MemoryConfig = parse_step_config(neighbors.memory)
            session_id = resolve(memory_config.session_id, ctx)
            if session_id:
                try:
                    turns = await self.memory_store.get_turns(session_id, memory_config.max_history)
                    history = _turns_to_messages(turns)
                except Exception as e:
                    logger.exception(
                        "agent_memory_read_failed", run_id=ctx.run_id, session_id=session_id, error=str(e)
                    )

        system_prompt = build_system_prompt(resolve(config.system_prompt, ctx))
        task = TASK_INSTRUCTION.format(data=json.dumps(ctx.trigger_input, default=str))
        max_iterations = config.max_iterations or settings.AGENT_MAX_ITERATIONS

        logger.info(
            "agent_run_started",
            run_id=ctx.run_id,
            step_id=step.id,
            provider=neighbors.model.type,
            tool_names=[tool.name for tool in tools],
            history_turns=len(history),
            max_iterations=max_iterations,
        )

        agent = create_agent(model=llm, tools=tools, system_prompt=system_prompt)
        run_config: Dict[str, Any] = {
            # Each iteration is one model call plus one tool call.
            "recursion_limit": 2 * max_iterations + 1,
            "metadata": {
                "run_id": ctx.run_id,
                "step_id": step.id,
                "environment": settings.ENVIRONMENT.value,
            },
        }
        if settings.LANGFUSE_TRACING_ENABLED:
            run_config["callbacks"] = [LangfuseCallbackHandler()]

        try:
            response = await agent.ainvoke({"messages": history + [HumanMessage(content=task)]}, config=run_config)
        except GraphRecursionError as e:
            logger.warning("agent_budget_exceeded", run_id=ctx.run_id, step_id=step.id, max_iterations=max_iterations)
            raise AgentBudgetExceeded(f"AI Agent exceeded its budget of {max_iterations} iterations") from e
        except EngineError:
            raise
        except Exception as e:
            logger.exception("agent_run_failed", run_id=ctx.run_id, step_id=step.id, error=str(e))
            raise TransportError(f"AI Agent execution failed: {e}") from e

        messages: List[BaseMessage] = response.get("messages", [])
        output = ""
        for message in reversed(messages):
            if isinstance(message, AIMessage):
                output = _message_text(message)
                break
        tools_used = sum(1 for message in messages if isinstance(message, ToolMessage))

        if session_id:
            try:
                await self.memory_store.append_turn(session_id, MemoryTurn(role="human", content=task))
                await self.memory_store.append_turn(session_id, MemoryTurn(role="ai", content=output))
            except Exception as e:
                logger.exception(
                    "agent_memory_write_failed", run_id=ctx.run_id, session_id=session_id, error=str(e)
                )

        logger.info("agent_run_completed", run_id=ctx.run_id, step_id=step.id, tools_used=tools_used)
        return {
            "message": "AI Agent executed successfully",
            "output": output,
            "toolsUsed": tools_used,
            "memoryUsed": neighbors.memory is not None,
            "timestamp": utc_now_iso(),
        }
