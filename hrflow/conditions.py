"""Condition evaluation over instance context data.

Conditions in one list are ANDed. There is no OR operator; a step that
should be reachable under alternative conditions needs one successor per
alternative.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from .contracts import Condition
from .exceptions import TypeMismatchError

logger = logging.getLogger(__name__)


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _equals(actual: Any, expected: Any) -> bool:
    left, right = _to_number(actual), _to_number(expected)
    if left is not None and right is not None:
        return left == right
    if actual is None or expected is None:
        return actual is expected
    return _as_string(actual) == _as_string(expected)


def _as_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _ordered(condition: Condition, actual: Any) -> tuple[float, float]:
    left, right = _to_number(actual), _to_number(condition.value)
    if left is None or right is None:
        raise TypeMismatchError(
            f"Cannot compare {actual!r} with {condition.value!r} using "
            f"'{condition.operator}'",
            field=condition.field,
        )
    return left, right


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, (list, tuple, set)):
        return any(_equals(item, expected) for item in actual)
    if isinstance(actual, str) and isinstance(expected, str):
        return expected in actual
    return False


def evaluate_condition(condition: Condition, context: Mapping[str, Any]) -> bool:
    """Evaluate a single predicate.

    Raises:
        TypeMismatchError: ``greater_than``/``less_than`` on a non-numeric
            operand.
    """
    actual = context.get(condition.field)
    op = condition.operator
    if op == "equals":
        return _equals(actual, condition.value)
    if op == "not_equals":
        return not _equals(actual, condition.value)
    if op == "greater_than":
        left, right = _ordered(condition, actual)
        return left > right
    if op == "less_than":
        left, right = _ordered(condition, actual)
        return left < right
    if op == "contains":
        return _contains(actual, condition.value)
    raise ValueError(f"Unsupported operator: {op}")


def evaluate(conditions: Iterable[Condition], context: Mapping[str, Any]) -> bool:
    """Return ``True`` when every condition holds. Empty lists pass."""
    return all(evaluate_condition(c, context) for c in conditions)


def safe_evaluate(conditions: Iterable[Condition], context: Mapping[str, Any]) -> bool:
    """Like :func:`evaluate` but a type mismatch counts as ``False``."""
    try:
        return evaluate(conditions, context)
    except TypeMismatchError as exc:
        logger.info(f"Condition on '{exc.field}' treated as false: {exc}")
        return False
