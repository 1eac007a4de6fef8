"""Task snapshots and the task store collaborator."""

from automation_engine.tasks.models import (
    Assignee,
    Priority,
    TaskSnapshot,
    TaskUpdate,
    TeamMember,
)
from automation_engine.tasks.store import HttpTaskStore, InMemoryTaskStore, TaskStore

__all__ = [
    "Assignee",
    "Priority",
    "TaskSnapshot",
    "TaskUpdate",
    "TeamMember",
    "TaskStore",
    "InMemoryTaskStore",
    "HttpTaskStore",
]
