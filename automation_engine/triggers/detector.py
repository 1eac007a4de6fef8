"""
Due-date trigger detection.

Turns open tasks into time-based trigger events:
- task_overdue: due date strictly before now
- due_date_approaching: due within the approaching window
"""

import logging
from datetime import datetime, timedelta
from typing import List

from automation_engine.tasks.models import TaskSnapshot
from automation_engine.triggers.models import TriggerEvent, TriggerKind

logger = logging.getLogger(__name__)


def detect_due_events(
    open_tasks: List[TaskSnapshot],
    now: datetime,
    approaching_hours: int = 24,
) -> List[TriggerEvent]:
    """
    Detect overdue and soon-due tasks.

    Completed tasks and tasks without a due date never produce events.
    A task produces at most one event per call.
    """
    threshold = now + timedelta(hours=approaching_hours)
    events = []

    for task in open_tasks:
        if task.completed or task.due_date is None:
            continue

        hours_left = (task.due_date - now).total_seconds() / 3600
        if task.due_date < now:
            trigger = TriggerKind.TASK_OVERDUE
        elif task.due_date <= threshold:
            trigger = TriggerKind.DUE_DATE_APPROACHING
        else:
            continue

        events.append(TriggerEvent(
            trigger=trigger,
            task=task,
            metadata={
                "due_date": task.due_date.isoformat(),
                "hours_until_due": round(hours_left, 1),
            },
            occurred_at=now,
            source="scheduler",
        ))

    if events:
        logger.info(f"Detected {len(events)} due/overdue tasks")
    return events
