"""Tools assembled at run time from the tool steps wired into an AI agent.

Each connected ``httpTool``, ``codeTool`` or ``workflowTool`` step becomes one
LangChain tool named ``<kind>_<step id>`` that takes a single string input.
"""

from app.core.langgraph.tools.adapters import (
    build_agent_tool,
    build_agent_tools,
)

__all__ = [
    "build_agent_tool",
    "build_agent_tools",
]
