"""Recurring tasks - occurrence computation and materialization."""

from automation_engine.recurrence.models import (
    EndCondition,
    EndType,
    RecurrencePattern,
    RecurringConfigDraft,
    RecurringTaskConfig,
)
from automation_engine.recurrence.scheduler import (
    due_for_materialization,
    first_occurrence,
    is_exhausted,
    next_occurrence,
    preview_occurrences,
)
from automation_engine.recurrence.materializer import RecurrenceMaterializer

__all__ = [
    "EndCondition",
    "EndType",
    "RecurrencePattern",
    "RecurringConfigDraft",
    "RecurringTaskConfig",
    "due_for_materialization",
    "first_occurrence",
    "is_exhausted",
    "next_occurrence",
    "preview_occurrences",
    "RecurrenceMaterializer",
]
