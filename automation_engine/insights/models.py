"""Data models for workload, assignment and prediction insights."""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, List

from pydantic import BaseModel, Field

from automation_engine.rules.models import AutomationAction
from automation_engine.tasks.models import Priority, utcnow


class WorkloadAnalysis(BaseModel):
    """Derived workload figures for one team member. Never persisted."""
    user_id: str
    user_name: str
    active_tasks: int
    total_estimated_hours: int
    utilization_percentage: int  # 0-100+
    available_hours: int
    overloaded: bool
    due_soon: int  # Due within the next 7 days
    overdue: int
    can_take_more: bool
    suggested_capacity: int  # How many more tasks
    generated_at: datetime = Field(default_factory=utcnow)


class AssignmentStrategy(str, Enum):
    """How to pick an assignee."""
    LEAST_BUSY = "least_busy"  # Fewest active tasks
    ROUND_ROBIN = "round_robin"  # Fewest assignments among recent tasks
    WORKLOAD_BALANCE = "workload_balance"  # Same as least_busy for now
    PREVIOUS_SIMILAR = "previous_similar"  # Whoever completed similar tasks
    SKILL_MATCH = "skill_match"  # Keyword match on title/description/tags


class AssignmentPolicyDraft(BaseModel):
    """Payload for a team's auto-assignment policy."""
    team_id: Optional[str] = None
    enabled: bool = True
    strategy: AssignmentStrategy = AssignmentStrategy.LEAST_BUSY
    fallback_strategy: Optional[AssignmentStrategy] = None

    # Filters; an empty list means no restriction
    apply_to_tags: List[str] = []
    apply_to_priorities: List[Priority] = []
    exclude_members: List[str] = []

    skill_keywords: Dict[str, List[str]] = {}  # user id -> keywords

    max_tasks_per_member: Optional[int] = Field(default=None, ge=0)
    max_hours_per_member: Optional[int] = Field(default=None, ge=0)
    created_by: str = "system"


class AssignmentPolicy(AssignmentPolicyDraft):
    """A stored auto-assignment policy. One per team."""
    id: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    assignment_count: int = 0


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def severity(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]


class RiskFactor(BaseModel):
    factor: str
    impact: RiskLevel
    description: str


class ConfidenceInterval(BaseModel):
    min: float  # days
    max: float


class TaskPrediction(BaseModel):
    """Completion estimate from a historical sample."""
    task_id: str
    predicted_completion_date: datetime
    completion_probability: int  # 0-100
    risk_level: RiskLevel
    estimated_hours: float
    confidence_interval: ConfidenceInterval
    similar_tasks_completed: int
    average_completion_time: float  # days
    risk_factors: List[RiskFactor] = []
    generated_at: datetime = Field(default_factory=utcnow)


class SuggestionType(str, Enum):
    AUTO_ASSIGN = "auto_assign"
    DUE_DATE = "due_date"
    PRIORITY = "priority"
    TAGS = "tags"
    DEPENDENCIES = "dependencies"
    MILESTONES = "milestones"
    SIMILAR_TASKS = "similar_tasks"
    RESOURCE_OPTIMIZATION = "resource_optimization"
    WORKLOAD_BALANCE = "workload_balance"


class SmartSuggestion(BaseModel):
    """A proposed action. Applying it requires an explicit accept."""
    id: str
    type: SuggestionType
    task_id: Optional[str] = None
    title: str
    description: str
    confidence: int = Field(ge=0, le=100)
    reasoning: str
    suggested_action: AutomationAction
    created_at: datetime = Field(default_factory=utcnow)
    applied: bool = False
    applied_at: Optional[datetime] = None
    dismissed: bool = False
    dismissed_at: Optional[datetime] = None
