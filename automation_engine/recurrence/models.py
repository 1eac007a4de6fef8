"""Data models for recurring tasks."""

from datetime import date, datetime
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator, model_validator

from automation_engine.tasks.models import utcnow


class RecurrencePattern(str, Enum):
    """How often a task repeats."""
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class EndType(str, Enum):
    NEVER = "never"
    AFTER_OCCURRENCES = "after_occurrences"
    ON_DATE = "on_date"


class EndCondition(BaseModel):
    """When a recurring configuration stops generating occurrences."""
    type: EndType = EndType.NEVER
    occurrences: Optional[int] = Field(default=None, ge=1)
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def _check_required(self) -> "EndCondition":
        if self.type == EndType.AFTER_OCCURRENCES and self.occurrences is None:
            raise ValueError("after_occurrences requires occurrences")
        if self.type == EndType.ON_DATE and self.end_date is None:
            raise ValueError("on_date requires end_date")
        return self


class _RecurrenceFields(BaseModel):
    pattern: RecurrencePattern
    interval: int = Field(default=1, ge=1)
    days_of_week: List[int] = []  # 0-6, Sunday first; weekly only
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)  # monthly only
    start_date: date
    end_condition: EndCondition = Field(default_factory=EndCondition)
    create_in_advance_days: int = Field(default=0, ge=0)
    auto_assign: bool = False
    auto_assignees: List[str] = []

    @field_validator("days_of_week")
    @classmethod
    def _check_days(cls, days: List[int]) -> List[int]:
        for day in days:
            if not 0 <= day <= 6:
                raise ValueError(f"days_of_week entries must be 0-6, got {day}")
        return days


class RecurringConfigDraft(_RecurrenceFields):
    """Payload for creating a recurring configuration."""
    task_template_id: str
    enabled: bool = True
    team_id: Optional[str] = None
    created_by: str = "system"


class RecurringTaskConfig(_RecurrenceFields):
    """A stored recurring-task configuration."""
    id: str
    task_template_id: str
    enabled: bool = True
    team_id: Optional[str] = None
    created_by: str = "system"
    created_at: datetime = Field(default_factory=utcnow)
    total_occurrences: int = 0  # Only advanced by materialization
    last_occurrence_date: Optional[date] = None
    next_occurrence_date: Optional[date] = None
