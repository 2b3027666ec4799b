"""``{{path}}`` placeholder resolution against the execution context.

Lookup order for a placeholder:
    1. ``trigger_input[path]``
    2. ``trigger_input["body"][path]`` (webhook payloads arrive under ``body``)
    3. ``<step_id>.<field>`` against prior step outputs, where ``field`` may
       itself be a dotted path into the output.

A placeholder that cannot be resolved is left in the text verbatim so the
operator sees it instead of an empty string.
"""

import json
import re
from typing import (
    Any,
    Mapping,
    Optional,
)

from app.core.workflow.schema import ExecutionContext

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")

_MISSING = object()


def _lookup_key(container: Any, key: str) -> Any:
    if isinstance(container, Mapping):
        return container.get(key, _MISSING)
    if isinstance(container, (list, tuple)) and key.isdigit():
        index = int(key)
        return container[index] if index < len(container) else _MISSING
    return _MISSING


def _walk(value: Any, dotted: str) -> Any:
    for key in dotted.split("."):
        value = _lookup_key(value, key)
        if value is _MISSING or value is None:
            return _MISSING
    return value


def stringify(value: Any) -> str:
    """Render a resolved value the way it should appear inside text."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def lookup_path(path: str, ctx: ExecutionContext) -> Any:
    """Resolve one placeholder path to its raw value.

    Args:
        path: The trimmed placeholder contents.
        ctx: The execution context of the current run.

    Returns:
        The resolved value, or None if nothing matched.
    """
    trigger = ctx.trigger_input

    value = _lookup_key(trigger, path)
    if value is not _MISSING and value is not None:
        return value

    value = _lookup_key(_lookup_key(trigger, "body"), path)
    if value is not _MISSING and value is not None:
        return value

    step_id, _, field = path.partition(".")
    if step_id and field and step_id in ctx.outputs:
        value = _walk(ctx.outputs[step_id], field)
        if value is not _MISSING:
            return value

    return None


def resolve(template: Optional[str], ctx: ExecutionContext) -> str:
    """Replace every ``{{path}}`` in ``template`` with its resolved value.

    Never raises. Text without placeholders is returned unchanged.

    Args:
        template: Text that may contain placeholders.
        ctx: The execution context of the current run.

    Returns:
        str: The interpolated text.
    """
    if template is None:
        return ""
    if not isinstance(template, str):
        return stringify(template)

    def _replace(match: re.Match) -> str:
        try:
            value = lookup_path(match.group(1).strip(), ctx)
        except Exception:
            return match.group(0)
        return match.group(0) if value is None else stringify(value)

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def resolve_value(value: Any, ctx: ExecutionContext) -> Any:
    """Recursively resolve placeholders inside strings of a nested structure."""
    if isinstance(value, str):
        return resolve(value, ctx)
    if isinstance(value, dict):
        return {k: resolve_value(v, ctx) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_value(v, ctx) for v in value]
    return value
