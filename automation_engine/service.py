"""
Automation service.

Facade over the rule engine, recurrence, and insight components. Owns the
database repositories for one session and talks to the task store for
everything task-shaped. Used by the FastAPI app, the MCP server and the
background scheduler.
"""

import logging
from datetime import date
from typing import Optional, Dict, Any, List, Union
from uuid import uuid4

from sqlalchemy.orm import Session

from automation_engine.config import Settings, get_settings
from automation_engine.db.repositories import (
    AssignmentPolicyRepository,
    RecurringConfigRepository,
    RuleRepository,
    SuggestionRepository,
)
from automation_engine.exceptions import NotFoundError, ValidationError
from automation_engine.insights.models import (
    AssignmentPolicy,
    AssignmentPolicyDraft,
    AssignmentStrategy,
    SmartSuggestion,
    TaskPrediction,
    WorkloadAnalysis,
)
from automation_engine.insights.prediction import predict_completion
from automation_engine.insights.suggestions import generate_suggestions
from automation_engine.insights.workload import analyze_workload, members_with_load
from automation_engine.recurrence.materializer import RecurrenceMaterializer
from automation_engine.recurrence.models import (
    EndType,
    RecurringConfigDraft,
    RecurringTaskConfig,
)
from automation_engine.recurrence.scheduler import (
    due_for_materialization,
    first_occurrence,
    preview_occurrences,
)
from automation_engine.rules.actions import ActionExecutor
from automation_engine.rules.engine import RuleEngine
from automation_engine.rules.models import (
    AutomationLog,
    AutomationRule,
    ExecutionReport,
    RuleDraft,
    RulePatch,
)
from automation_engine.tasks.models import TaskSnapshot, TeamMember, utcnow
from automation_engine.tasks.store import HttpTaskStore, InMemoryTaskStore, TaskStore
from automation_engine.triggers.models import TriggerEvent, TriggerKind
from automation_engine.triggers.webhooks import parse_task_webhook

logger = logging.getLogger(__name__)

MAX_PREVIEW_COUNT = 100


def build_task_store(settings: Settings) -> TaskStore:
    """HttpTaskStore when TASK_STORE_URL is set, otherwise an in-memory store."""
    if settings.task_store_url:
        return HttpTaskStore(
            settings.task_store_url,
            token=settings.task_store_token,
            timeout=settings.task_store_timeout,
        )
    logger.warning("TASK_STORE_URL not set, using an in-memory task store")
    return InMemoryTaskStore()


_task_store: Optional[TaskStore] = None


def get_task_store() -> TaskStore:
    """Process-wide task store built from settings."""
    global _task_store
    if _task_store is None:
        _task_store = build_task_store(get_settings())
    return _task_store


class AutomationService:
    """Entry point for every automation operation."""

    def __init__(self, db: Session, store: TaskStore, settings: Optional[Settings] = None):
        self.db = db
        self.store = store
        self.settings = settings or get_settings()

        self.rules = RuleRepository(db)
        self.recurring = RecurringConfigRepository(db)
        self.suggestions = SuggestionRepository(db)
        self.policies = AssignmentPolicyRepository(db)

        self.executor = ActionExecutor(store)
        self.engine = RuleEngine(self.executor, self.rules)
        self.materializer = RecurrenceMaterializer(
            store,
            self.recurring,
            AssignmentStrategy(self.settings.default_assignment_strategy),
            policies=self.policies,
        )

    # =============================================================================
    # Helpers
    # =============================================================================

    async def _require_task(self, task_id: str) -> TaskSnapshot:
        task = await self.store.get_task(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    async def _members_with_load(self, team_id: Optional[str]) -> List[TeamMember]:
        members = await self.store.list_team_members(team_id)
        if not members:
            return []
        open_tasks = await self.store.list_tasks(team_id, completed=False)
        return members_with_load(members, analyze_workload(open_tasks, members))

    # =============================================================================
    # Rules
    # =============================================================================

    def create_rule(self, draft: RuleDraft) -> AutomationRule:
        """Create a rule. Counters start at zero."""
        draft.validate_payload()
        rule = AutomationRule(id=f"rule-{uuid4().hex[:12]}", **draft.model_dump())
        created = self.rules.create(rule)
        logger.info(f"Created rule {created.id} ({created.name}) on {created.trigger.value}")
        return created

    def get_rule(self, rule_id: str) -> AutomationRule:
        rule = self.rules.get(rule_id)
        if rule is None:
            raise NotFoundError("Rule", rule_id)
        return rule

    def list_rules(
        self,
        team_id: Optional[str] = None,
        trigger: Optional[TriggerKind] = None,
    ) -> List[AutomationRule]:
        return self.rules.list(team_id=team_id, trigger=trigger)

    def update_rule(self, rule_id: str, patch: RulePatch) -> AutomationRule:
        """Update a rule; conditions and actions are replaced wholesale."""
        patch.validate_payload()
        rule = self.rules.update(rule_id, patch)
        logger.info(f"Updated rule {rule_id}")
        return rule

    def delete_rule(self, rule_id: str) -> None:
        if not self.rules.delete(rule_id):
            raise NotFoundError("Rule", rule_id)
        logger.info(f"Deleted rule {rule_id}")

    def list_rule_logs(
        self,
        rule_id: Optional[str] = None,
        task_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[AutomationLog]:
        return self.rules.list_logs(rule_id=rule_id, task_id=task_id, limit=limit)

    # =============================================================================
    # Dispatch
    # =============================================================================

    async def dispatch_trigger(
        self,
        trigger: TriggerKind,
        task: Union[TaskSnapshot, str],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[ExecutionReport]:
        """
        Run the task's team rules for a trigger.

        Args:
            trigger: Trigger kind
            task: Task snapshot, or a task id to load from the task store
            metadata: Trigger-specific details, recorded in the automation log

        Returns:
            One ExecutionReport per fired rule
        """
        trigger = TriggerKind(trigger)
        if isinstance(task, str):
            task = await self._require_task(task)

        # Evaluation is scoped to the task's own team
        rules = [r for r in self.rules.list(trigger=trigger) if r.team_id == task.team_id]
        if not rules:
            logger.debug(f"No {trigger.value} rules for team {task.team_id}")
            return []

        members = await self.store.list_team_members(task.team_id)
        return await self.engine.dispatch(trigger, task, rules, metadata, members)

    async def dispatch_event(self, event: TriggerEvent) -> List[ExecutionReport]:
        metadata = {**event.metadata, "source": event.source}
        return await self.dispatch_trigger(event.trigger, event.task, metadata)

    async def handle_webhook(self, payload: Dict[str, Any]) -> List[ExecutionReport]:
        """Dispatch an inbound task-store webhook."""
        return await self.dispatch_event(parse_task_webhook(payload))

    async def apply_rule_to_existing_tasks(self, rule_id: str) -> List[ExecutionReport]:
        """Backfill: run a rule against the team's open tasks, ignoring its trigger."""
        rule = self.get_rule(rule_id)
        if not rule.apply_to_existing_tasks:
            raise ValidationError(f"Rule {rule_id} is not set to apply to existing tasks")

        tasks = await self.store.list_tasks(rule.team_id, completed=False)
        members = await self.store.list_team_members(rule.team_id)

        reports = []
        for task in tasks:
            report = await self.engine.run_rule(rule, task, {"backfill": True}, members)
            if report is not None:
                reports.append(report)

        logger.info(f"Rule {rule_id} applied to {len(reports)}/{len(tasks)} existing tasks")
        return reports

    # =============================================================================
    # Recurring tasks
    # =============================================================================

    async def create_recurring_config(self, draft: RecurringConfigDraft) -> RecurringTaskConfig:
        """Create a recurring config; the first occurrence is aligned to the pattern."""
        end = draft.end_condition
        if end.type == EndType.ON_DATE and end.end_date < draft.start_date:
            raise ValidationError("end_date must not be before start_date")

        await self._require_task(draft.task_template_id)

        config = RecurringTaskConfig(id=f"recurring-{uuid4().hex[:12]}", **draft.model_dump())
        config.next_occurrence_date = first_occurrence(config)

        created = self.recurring.create(config)
        logger.info(
            f"Created recurring config {created.id} ({created.pattern.value}, "
            f"first occurrence {created.next_occurrence_date})"
        )
        return created

    def get_recurring_config(self, config_id: str) -> RecurringTaskConfig:
        config = self.recurring.get(config_id)
        if config is None:
            raise NotFoundError("Recurring config", config_id)
        return config

    def list_recurring_configs(
        self, team_id: Optional[str] = None, enabled_only: bool = False
    ) -> List[RecurringTaskConfig]:
        return self.recurring.list(team_id=team_id, enabled_only=enabled_only)

    def set_recurring_enabled(self, config_id: str, enabled: bool) -> RecurringTaskConfig:
        config = self.recurring.set_enabled(config_id, enabled)
        logger.info(f"Recurring config {config_id} {'enabled' if enabled else 'disabled'}")
        return config

    def preview_occurrences(
        self,
        config: Union[RecurringTaskConfig, str],
        from_date: Optional[date] = None,
        count: int = 5,
    ) -> List[date]:
        """Upcoming occurrence dates. Never changes the stored config."""
        if not 1 <= count <= MAX_PREVIEW_COUNT:
            raise ValidationError(f"count must be between 1 and {MAX_PREVIEW_COUNT}")
        if isinstance(config, str):
            config = self.get_recurring_config(config)
        return preview_occurrences(config, from_date or utcnow().date(), count)

    async def materialize_next_occurrence(self, config_id: str) -> Optional[TaskSnapshot]:
        """Create the next task instance of a config, advancing its counters."""
        config = self.get_recurring_config(config_id)
        if not config.auto_assign:
            return await self.materializer.materialize_next(config)
        members = await self._members_with_load(config.team_id)
        history = await self.store.list_tasks(config.team_id)
        return await self.materializer.materialize_next(config, members, history)

    async def run_due_recurrences(self, today: Optional[date] = None) -> List[TaskSnapshot]:
        """Materialize every occurrence that is due (honours create_in_advance_days)."""
        today = today or utcnow().date()
        created = []

        for config in self.recurring.pending():
            try:
                while config and due_for_materialization(config, today):
                    instance = await self.materialize_next_occurrence(config.id)
                    if instance is None:
                        break
                    created.append(instance)
                    config = self.recurring.get(config.id)
            except Exception as e:
                logger.error(f"Error materializing recurring config {config.id}: {e}", exc_info=True)

        return created

    # =============================================================================
    # Insights
    # =============================================================================

    async def analyze_workload(self, team_id: Optional[str]) -> List[WorkloadAnalysis]:
        members = await self.store.list_team_members(team_id)
        open_tasks = await self.store.list_tasks(team_id, completed=False)
        return analyze_workload(open_tasks, members)

    async def predict_completion(self, task_id: str) -> TaskPrediction:
        task = await self._require_task(task_id)
        history = await self.store.list_tasks(task.team_id, completed=True)
        return predict_completion(task, history)

    async def generate_suggestions(self, task_id: str) -> List[SmartSuggestion]:
        """Generate and store suggestions for a task."""
        task = await self._require_task(task_id)
        history = await self.store.list_tasks(task.team_id, completed=True)
        members = await self._members_with_load(task.team_id)

        policy = self.policies.get_for_team(task.team_id)

        suggestions = generate_suggestions(task, history, members, policy)
        return self.suggestions.save_all(suggestions)

    def list_open_suggestions(self, task_id: str) -> List[SmartSuggestion]:
        """Suggestions for a task that were neither accepted nor dismissed."""
        return self.suggestions.list_open(task_id)

    def get_suggestion(self, suggestion_id: str) -> SmartSuggestion:
        suggestion = self.suggestions.get(suggestion_id)
        if suggestion is None:
            raise NotFoundError("Suggestion", suggestion_id)
        return suggestion

    async def accept_suggestion(self, suggestion_id: str) -> ExecutionReport:
        """
        Apply a suggestion's action through the ActionExecutor.

        A suggestion can be accepted once; accepting an applied or dismissed
        suggestion raises ValidationError.
        """
        suggestion = self.get_suggestion(suggestion_id)
        if suggestion.applied or suggestion.dismissed:
            raise ValidationError(f"Suggestion {suggestion_id} was already resolved")
        if not suggestion.task_id:
            raise ValidationError(f"Suggestion {suggestion_id} has no target task")

        task = await self._require_task(suggestion.task_id)
        if not self.suggestions.mark_applied(suggestion_id):
            raise ValidationError(f"Suggestion {suggestion_id} was already resolved")

        members = await self.store.list_team_members(task.team_id)
        results = await self.executor.execute(task, [suggestion.suggested_action], members)
        report = ExecutionReport(
            suggestion_id=suggestion_id,
            task_id=task.id,
            results=results,
        )
        logger.info(f"Accepted suggestion {suggestion_id} on task {task.id}: {report.status}")
        return report

    def dismiss_suggestion(self, suggestion_id: str) -> SmartSuggestion:
        self.get_suggestion(suggestion_id)
        if not self.suggestions.mark_dismissed(suggestion_id):
            raise ValidationError(f"Suggestion {suggestion_id} was already resolved")
        return self.get_suggestion(suggestion_id)

    # =============================================================================
    # Assignment policies
    # =============================================================================

    def set_assignment_policy(self, draft: AssignmentPolicyDraft) -> AssignmentPolicy:
        """Create or replace a team's auto-assignment policy."""
        if draft.fallback_strategy is not None and draft.fallback_strategy == draft.strategy:
            raise ValidationError("fallback_strategy must differ from strategy")
        policy = AssignmentPolicy(id=f"policy-{uuid4().hex[:12]}", **draft.model_dump())
        stored = self.policies.upsert(policy)
        logger.info(f"Assignment policy for team {stored.team_id}: {stored.strategy.value}")
        return stored

    def get_assignment_policy(self, team_id: Optional[str]) -> AssignmentPolicy:
        policy = self.policies.get_for_team(team_id)
        if policy is None:
            raise NotFoundError("Assignment policy", team_id)
        return policy

    def delete_assignment_policy(self, team_id: Optional[str]) -> None:
        if not self.policies.delete_for_team(team_id):
            raise NotFoundError("Assignment policy", team_id)
