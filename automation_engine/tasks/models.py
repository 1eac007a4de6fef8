"""Data models for the task snapshots the engine reads."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, Field, field_validator


class Priority(str, Enum):
    """Task priority, ordered from least to most pressing."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.LOW: 0,
    Priority.MEDIUM: 1,
    Priority.HIGH: 2,
    Priority.URGENT: 3,
}


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Assignee(BaseModel):
    """A user assigned to a task."""
    id: str
    name: str = ""


class TaskSnapshot(BaseModel):
    """
    Read-only view of a task owned by the external task store.

    The engine never mutates a snapshot; it emits TaskUpdate commands.
    """
    id: str
    title: str
    description: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    due_date: Optional[datetime] = None
    assignees: List[Assignee] = []
    tags: List[str] = []
    completed: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    team_id: Optional[str] = None

    @field_validator("due_date", "created_at")
    @classmethod
    def _normalize_tz(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @property
    def assignee_ids(self) -> List[str]:
        return [a.id for a in self.assignees]


class TeamMember(BaseModel):
    """A team member that tasks can be assigned to."""
    id: str
    name: str = ""
    active_tasks: int = 0


class TaskUpdate(BaseModel):
    """Field-level update command sent to the task store."""
    task_id: str
    field_updates: Dict[str, Any]
