"""Prometheus metrics for workflow runs, steps and agent invocations."""

from prometheus_client import (
    Counter,
    Histogram,
)

workflow_runs_total = Counter(
    "workflow_runs_total",
    "Total number of workflow runs",
    ["status"],
)

workflow_step_executions_total = Counter(
    "workflow_step_executions_total",
    "Total number of executed workflow steps",
    ["step_type", "status"],
)

workflow_step_duration_seconds = Histogram(
    "workflow_step_duration_seconds",
    "Time spent executing a single workflow step",
    ["step_type"],
    buckets=[0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

agent_tool_calls_total = Counter(
    "agent_tool_calls_total",
    "Tool calls made by AI agent steps",
    ["tool_type"],
)

sandbox_poll_attempts = Histogram(
    "sandbox_poll_attempts",
    "Poll attempts needed before a sandbox job reached a terminal status",
    buckets=[0, 1, 2, 3, 5, 8, 12, 15],
)
