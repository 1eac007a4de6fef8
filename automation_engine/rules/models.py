"""Data models for automation rules."""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List, Type

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic import ValidationError as PydanticValidationError

from automation_engine.exceptions import ValidationError
from automation_engine.tasks.models import Priority, utcnow
from automation_engine.triggers.models import TriggerKind


class ConditionField(str, Enum):
    """Task fields a condition can test."""
    PRIORITY = "priority"
    ASSIGNEE = "assignee"
    TAGS = "tags"
    DUE_DATE = "dueDate"
    TITLE = "title"
    DESCRIPTION = "description"


class ConditionOperator(str, Enum):
    """Comparison operators for conditions."""
    EQUALS = "equals"
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"


class ActionType(str, Enum):
    """Effects a rule can apply to a task."""
    ASSIGN_USER = "assign_user"
    SET_PRIORITY = "set_priority"
    ADD_TAG = "add_tag"
    SET_DUE_DATE = "set_due_date"
    ADD_WATCHER = "add_watcher"
    SEND_NOTIFICATION = "send_notification"
    CREATE_SUBTASK = "create_subtask"
    MOVE_TO_MILESTONE = "move_to_milestone"
    ADD_COMMENT = "add_comment"
    DUPLICATE_TASK = "duplicate_task"

    @property
    def display_name(self) -> str:
        return ACTION_LABELS[self]


ACTION_LABELS = {
    ActionType.ASSIGN_USER: "Assign User",
    ActionType.SET_PRIORITY: "Set Priority",
    ActionType.ADD_TAG: "Add Tag",
    ActionType.SET_DUE_DATE: "Set Due Date",
    ActionType.ADD_WATCHER: "Add Watcher",
    ActionType.SEND_NOTIFICATION: "Send Notification",
    ActionType.CREATE_SUBTASK: "Create Subtask",
    ActionType.MOVE_TO_MILESTONE: "Move to Milestone",
    ActionType.ADD_COMMENT: "Add Comment",
    ActionType.DUPLICATE_TASK: "Duplicate Task",
}


def action_display_name(action_type: str) -> str:
    """Human label for an action type; unknown types are returned as-is."""
    try:
        return ActionType(action_type).display_name
    except ValueError:
        return action_type


class AutomationCondition(BaseModel):
    """
    A single test against a task field.

    field and operator are kept as plain strings so stored rules always load;
    RuleDraft/RulePatch validate them on the way in.
    """
    field: str
    operator: str
    value: Any = None


class AutomationAction(BaseModel):
    """Wire form of an action: a type plus a type-specific params bag."""
    type: str
    params: Dict[str, Any] = {}


# =============================================================================
# Typed action commands
# =============================================================================

class _Command(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class AssignUser(_Command):
    user_id: str = Field(alias="userId", min_length=1)


class SetPriority(_Command):
    priority: Priority


class AddTag(_Command):
    tag: str = Field(min_length=1)


class SetDueDate(_Command):
    due_date: datetime = Field(alias="dueDate")


class DelegatedAction(_Command):
    """Action executed by the task store; the engine only records dispatch."""
    model_config = ConfigDict(extra="allow")


ACTION_COMMANDS: Dict[ActionType, Type[_Command]] = {
    ActionType.ASSIGN_USER: AssignUser,
    ActionType.SET_PRIORITY: SetPriority,
    ActionType.ADD_TAG: AddTag,
    ActionType.SET_DUE_DATE: SetDueDate,
    ActionType.ADD_WATCHER: DelegatedAction,
    ActionType.SEND_NOTIFICATION: DelegatedAction,
    ActionType.CREATE_SUBTASK: DelegatedAction,
    ActionType.MOVE_TO_MILESTONE: DelegatedAction,
    ActionType.ADD_COMMENT: DelegatedAction,
    ActionType.DUPLICATE_TASK: DelegatedAction,
}

_REQUIRED_PARAM = {
    ActionType.ASSIGN_USER: "userId",
    ActionType.SET_PRIORITY: "priority",
    ActionType.ADD_TAG: "tag",
    ActionType.SET_DUE_DATE: "dueDate",
}


def parse_action(action: AutomationAction) -> _Command:
    """
    Parse an action's params bag into its typed command.

    Raises:
        ValidationError: unknown type, or params missing/invalid for the type
    """
    try:
        action_type = ActionType(action.type)
    except ValueError:
        raise ValidationError(f"Unknown action type: {action.type}")

    required = _REQUIRED_PARAM.get(action_type)
    if required and action.params.get(required) in (None, ""):
        raise ValidationError(f"{action_type.value} requires params.{required}")

    try:
        return ACTION_COMMANDS[action_type].model_validate(action.params)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid params for {action_type.value}: {e}")


def validate_condition(condition: AutomationCondition) -> None:
    try:
        ConditionField(condition.field)
    except ValueError:
        raise ValidationError(f"Unknown condition field: {condition.field}")
    try:
        ConditionOperator(condition.operator)
    except ValueError:
        raise ValidationError(f"Unknown condition operator: {condition.operator}")


# =============================================================================
# Rules
# =============================================================================

class AutomationRule(BaseModel):
    """A stored trigger -> conditions -> actions rule."""
    id: str
    name: str
    description: Optional[str] = None
    enabled: bool = True
    trigger: TriggerKind
    conditions: List[AutomationCondition] = []
    actions: List[AutomationAction] = []
    team_id: Optional[str] = None
    apply_to_new_tasks: bool = True
    apply_to_existing_tasks: bool = False
    created_by: str = "system"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    trigger_count: int = 0
    last_triggered_at: Optional[datetime] = None


class RuleDraft(BaseModel):
    """Payload for creating a rule. Counters always start at zero."""
    name: str = Field(min_length=1)
    description: Optional[str] = None
    enabled: bool = True
    trigger: TriggerKind
    conditions: List[AutomationCondition] = []
    actions: List[AutomationAction] = Field(min_length=1)
    team_id: Optional[str] = None
    apply_to_new_tasks: bool = True
    apply_to_existing_tasks: bool = False
    created_by: str = "system"

    def validate_payload(self) -> None:
        for condition in self.conditions:
            validate_condition(condition)
        for action in self.actions:
            parse_action(action)


class RulePatch(BaseModel):
    """Payload for updating a rule. Conditions/actions are replaced wholesale."""
    name: Optional[str] = None
    description: Optional[str] = None
    enabled: Optional[bool] = None
    trigger: Optional[TriggerKind] = None
    conditions: Optional[List[AutomationCondition]] = None
    actions: Optional[List[AutomationAction]] = None
    apply_to_new_tasks: Optional[bool] = None
    apply_to_existing_tasks: Optional[bool] = None

    def validate_payload(self) -> None:
        if self.name is not None and not self.name.strip():
            raise ValidationError("Rule name cannot be empty")
        for condition in self.conditions or []:
            validate_condition(condition)
        if self.actions is not None and not self.actions:
            raise ValidationError("A rule needs at least one action")
        for action in self.actions or []:
            parse_action(action)


# =============================================================================
# Execution results
# =============================================================================

class ActionResult(BaseModel):
    """Outcome of one action."""
    action: AutomationAction
    success: bool
    error: Optional[str] = None
    detail: Optional[str] = None
    dispatched: bool = False  # Forwarded to the task store, result not tracked


class ExecutionReport(BaseModel):
    """What happened when a rule fired or a suggestion was accepted."""
    rule_id: Optional[str] = None
    rule_name: Optional[str] = None
    suggestion_id: Optional[str] = None
    task_id: str
    trigger: Optional[TriggerKind] = None
    triggered_at: datetime = Field(default_factory=utcnow)
    results: List[ActionResult] = []
    metadata: Dict[str, Any] = {}
    error: Optional[str] = None

    @computed_field
    @property
    def actions_failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @computed_field
    @property
    def status(self) -> str:
        if self.error or (self.results and self.actions_failed == len(self.results)):
            return "failed"
        if self.actions_failed:
            return "partial"
        return "success"


class ConditionCheck(BaseModel):
    field: str
    operator: str
    passed: bool


class AutomationLog(BaseModel):
    """Audit record of one fired rule."""
    id: Optional[int] = None
    rule_id: str
    rule_name: str
    task_id: str
    trigger: TriggerKind
    triggered_at: datetime
    status: str  # "success", "failed", "partial"
    actions_executed: int = 0
    actions_failed: int = 0
    conditions: List[ConditionCheck] = []
    actions: List[Dict[str, Any]] = []
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = {}
