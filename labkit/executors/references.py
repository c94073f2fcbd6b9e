"""
Run-time references between plan steps.

A step parameter may refer to the output of an earlier step with
``${step_id.field}`` (nested fields use further dots). References are resolved
by the executor immediately before the step runs. A string that is exactly one
reference keeps the referenced value's type; a reference embedded in a longer
string is interpolated as text.
"""

import re
from typing import Any, Dict, List, Set

REFERENCE_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)((?:\.[A-Za-z0-9_]+)+)\}")


class StepReferenceError(Exception):
    """Raised when a reference cannot be resolved."""


def find_references(value: Any) -> Set[str]:
    """Return the ids of every step referenced anywhere inside ``value``."""
    found: Set[str] = set()
    if isinstance(value, str):
        found.update(m.group(1) for m in REFERENCE_PATTERN.finditer(value))
    elif isinstance(value, dict):
        for item in value.values():
            found |= find_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            found |= find_references(item)
    return found


def _lookup(outputs: Dict[str, Any], step_id: str, path: List[str]) -> Any:
    if step_id not in outputs:
        raise StepReferenceError(f"Step '{step_id}' has not produced any output")

    current = outputs[step_id]
    if current is None:
        # Skipped steps resolve to None all the way down
        return None
    for part in path:
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            raise StepReferenceError(
                f"Output of step '{step_id}' has no field '{'.'.join(path)}'"
            )
    return current


def resolve_references(value: Any, outputs: Dict[str, Any]) -> Any:
    """
    Replace ``${step_id.field}`` references in ``value``.

    Args:
        value: Parameter value (string, dict, list or scalar)
        outputs: Step outputs keyed by step id; skipped steps map to ``None``

    Returns:
        A copy of ``value`` with references substituted

    Raises:
        StepReferenceError: If a referenced step or field does not exist
    """
    if isinstance(value, dict):
        return {k: resolve_references(v, outputs) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_references(v, outputs) for v in value]
    if not isinstance(value, str):
        return value

    whole = REFERENCE_PATTERN.fullmatch(value)
    if whole:
        return _lookup(outputs, whole.group(1), whole.group(2)[1:].split("."))

    def replace(match: "re.Match[str]") -> str:
        resolved = _lookup(outputs, match.group(1), match.group(2)[1:].split("."))
        return "" if resolved is None else str(resolved)

    return REFERENCE_PATTERN.sub(replace, value)


def evaluate_condition(condition: Any, outputs: Dict[str, Any]) -> bool:
    """
    Evaluate a ``run_if``/``skip_if`` condition.

    Conditions are booleans or references; a leading ``!`` negates a
    reference. Strings ``"false"``, ``"0"`` and ``""`` are false.
    """
    if isinstance(condition, str):
        text = condition.strip()
        if text.startswith("!"):
            return not evaluate_condition(text[1:], outputs)
        resolved = resolve_references(text, outputs)
        if isinstance(resolved, str):
            return resolved.strip().lower() not in ("", "false", "0", "no", "none")
        return bool(resolved)
    return bool(condition)
