"""Data models for trigger system."""

from datetime import datetime
from enum import Enum
from typing import Dict, Any

from pydantic import BaseModel, Field

from automation_engine.tasks.models import TaskSnapshot, utcnow


class TriggerKind(str, Enum):
    """Task lifecycle events that can fire automation rules."""
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_COMPLETED = "task_completed"
    TASK_ASSIGNED = "task_assigned"
    DUE_DATE_APPROACHING = "due_date_approaching"
    TASK_OVERDUE = "task_overdue"
    COMMENT_ADDED = "comment_added"
    MILESTONE_COMPLETED = "milestone_completed"
    DEPENDENCY_COMPLETED = "dependency_completed"
    TAG_ADDED = "tag_added"
    PRIORITY_CHANGED = "priority_changed"

    @property
    def display_name(self) -> str:
        return TRIGGER_LABELS[self]


TRIGGER_LABELS = {
    TriggerKind.TASK_CREATED: "Task Created",
    TriggerKind.TASK_UPDATED: "Task Updated",
    TriggerKind.TASK_COMPLETED: "Task Completed",
    TriggerKind.TASK_ASSIGNED: "Task Assigned",
    TriggerKind.DUE_DATE_APPROACHING: "Due Date Approaching",
    TriggerKind.TASK_OVERDUE: "Task Overdue",
    TriggerKind.COMMENT_ADDED: "Comment Added",
    TriggerKind.MILESTONE_COMPLETED: "Milestone Completed",
    TriggerKind.DEPENDENCY_COMPLETED: "Dependency Completed",
    TriggerKind.TAG_ADDED: "Tag Added",
    TriggerKind.PRIORITY_CHANGED: "Priority Changed",
}


class TriggerEvent(BaseModel):
    """A trigger with the task snapshot at the time of the event."""
    trigger: TriggerKind
    task: TaskSnapshot
    # Trigger-specific details (e.g. which field changed); audit only
    metadata: Dict[str, Any] = {}
    occurred_at: datetime = Field(default_factory=utcnow)
    source: str = "api"  # "api", "webhook", "scheduler"
