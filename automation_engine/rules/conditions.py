"""
Condition evaluation.

Each condition field maps to a typed accessor that returns one of four value
kinds. Operators are looked up per kind, so a field/operator pairing that has
no meaning (e.g. greaterThan on tags) is simply absent from the table and
evaluates to False. Evaluation never raises: a malformed condition must not
make a rule match, nor crash dispatch of the remaining rules.
"""

import logging
from datetime import datetime, date
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, List

from automation_engine.rules.models import (
    AutomationCondition,
    ConditionField,
    ConditionOperator,
)
from automation_engine.tasks.models import Priority, TaskSnapshot, as_utc

logger = logging.getLogger(__name__)


class FieldKind(str, Enum):
    TEXT = "text"
    TEXT_SET = "text_set"
    DATE = "date"
    ORDINAL = "ordinal"


# field -> (kind, accessor)
_ACCESSORS: Dict[ConditionField, Tuple[FieldKind, Callable[[TaskSnapshot], Any]]] = {
    ConditionField.PRIORITY: (FieldKind.ORDINAL, lambda t: t.priority),
    ConditionField.ASSIGNEE: (FieldKind.TEXT_SET, lambda t: t.assignee_ids),
    ConditionField.TAGS: (FieldKind.TEXT_SET, lambda t: list(t.tags)),
    ConditionField.DUE_DATE: (FieldKind.DATE, lambda t: t.due_date),
    ConditionField.TITLE: (FieldKind.TEXT, lambda t: t.title),
    ConditionField.DESCRIPTION: (FieldKind.TEXT, lambda t: t.description or ""),
}


def parse_date(value: Any) -> Optional[datetime]:
    """Parse an ISO date/datetime string (or date object) into an aware UTC datetime."""
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return as_utc(datetime(value.year, value.month, value.day))
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return as_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
    except ValueError:
        return None


# -----------------------------------------------------------------------------
# Per-kind operators
# -----------------------------------------------------------------------------

def _text_equals(actual: str, expected: Any) -> bool:
    return isinstance(expected, str) and actual == expected


def _text_contains(actual: str, expected: Any) -> bool:
    return isinstance(expected, str) and expected.lower() in actual.lower()


def _text_starts(actual: str, expected: Any) -> bool:
    return isinstance(expected, str) and actual.lower().startswith(expected.lower())


def _text_ends(actual: str, expected: Any) -> bool:
    return isinstance(expected, str) and actual.lower().endswith(expected.lower())


def _set_equals(actual: List[str], expected: Any) -> bool:
    return expected in actual


def _set_contains(actual: List[str], expected: Any) -> bool:
    if not isinstance(expected, str):
        return False
    needle = expected.lower()
    return any(needle in item.lower() for item in actual)


def _date_compare(compare: Callable[[datetime, datetime], bool]):
    def op(actual: Optional[datetime], expected: Any) -> bool:
        if actual is None:
            return False
        other = parse_date(expected)
        if other is None:
            return False
        return compare(actual, other)
    return op


def _rank_compare(compare: Callable[[int, int], bool]):
    def op(actual: Priority, expected: Any) -> bool:
        try:
            other = Priority(str(expected).lower())
        except ValueError:
            return False
        return compare(actual.rank, other.rank)
    return op


def _on_priority_text(text_op: Callable[[str, Any], bool]):
    return lambda actual, expected: text_op(actual.value, expected)


_OPERATORS: Dict[FieldKind, Dict[ConditionOperator, Callable[[Any, Any], bool]]] = {
    FieldKind.TEXT: {
        ConditionOperator.EQUALS: _text_equals,
        ConditionOperator.CONTAINS: _text_contains,
        ConditionOperator.STARTS_WITH: _text_starts,
        ConditionOperator.ENDS_WITH: _text_ends,
    },
    FieldKind.TEXT_SET: {
        ConditionOperator.EQUALS: _set_equals,
        ConditionOperator.CONTAINS: _set_contains,
    },
    FieldKind.DATE: {
        ConditionOperator.EQUALS: _date_compare(lambda a, b: a.date() == b.date()),
        ConditionOperator.GREATER_THAN: _date_compare(lambda a, b: a > b),
        ConditionOperator.LESS_THAN: _date_compare(lambda a, b: a < b),
    },
    FieldKind.ORDINAL: {
        ConditionOperator.EQUALS: _on_priority_text(_text_equals),
        ConditionOperator.CONTAINS: _on_priority_text(_text_contains),
        ConditionOperator.STARTS_WITH: _on_priority_text(_text_starts),
        ConditionOperator.ENDS_WITH: _on_priority_text(_text_ends),
        ConditionOperator.GREATER_THAN: _rank_compare(lambda a, b: a > b),
        ConditionOperator.LESS_THAN: _rank_compare(lambda a, b: a < b),
    },
}


def evaluate_condition(task: TaskSnapshot, condition: AutomationCondition) -> bool:
    """
    Check whether a task satisfies a single condition.

    Unknown fields, unknown operators and unsupported field/operator pairs
    all return False.
    """
    try:
        field = ConditionField(condition.field)
        operator = ConditionOperator(condition.operator)
    except ValueError:
        logger.debug(f"Unsupported condition {condition.field}/{condition.operator}")
        return False

    kind, accessor = _ACCESSORS[field]
    op = _OPERATORS[kind].get(operator)
    if op is None:
        return False

    try:
        return bool(op(accessor(task), condition.value))
    except Exception as e:
        # Fail closed on anything the typed operators did not anticipate
        logger.warning(f"Condition {field.value} {operator.value} failed to evaluate: {e}")
        return False


def conditions_met(task: TaskSnapshot, conditions: List[AutomationCondition]) -> bool:
    """All conditions pass (implicit AND, short-circuits on the first False)."""
    return all(evaluate_condition(task, c) for c in conditions)
