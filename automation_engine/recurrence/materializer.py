"""
Materializes recurring configs into concrete task instances.

Each instance is a copy of the template task due on the occurrence date.
Counters advance through a compare-and-set on total_occurrences, so two
workers racing on the same config produce one instance, not two.
"""

import logging
from datetime import datetime, time, timezone
from typing import Optional, List, Protocol, Tuple
from uuid import uuid4

from automation_engine.exceptions import NotFoundError
from automation_engine.insights.assignment import policy_applies, select_assignee, select_with_policy
from automation_engine.insights.models import AssignmentPolicy, AssignmentStrategy
from automation_engine.recurrence.models import RecurringTaskConfig
from automation_engine.recurrence.scheduler import is_exhausted, next_occurrence
from automation_engine.tasks.models import Assignee, TaskSnapshot, TeamMember, utcnow
from automation_engine.tasks.store import TaskStore

logger = logging.getLogger(__name__)


class OccurrenceCounterStore(Protocol):
    """Per-config occurrence counter with compare-and-set semantics."""

    def advance_occurrence(
        self,
        config_id: str,
        expected_total: int,
        occurrence_date,
        next_date,
    ) -> bool: ...

    def revert_occurrence(
        self,
        config_id: str,
        claimed_total: int,
        last_date,
        next_date,
    ) -> bool: ...


class AssignmentPolicyStore(Protocol):
    """Team auto-assignment policies."""

    def get_for_team(self, team_id: Optional[str]) -> Optional[AssignmentPolicy]: ...

    def record_assignment(self, policy_id: str) -> None: ...


class RecurrenceMaterializer:
    """Creates the next task instance of a recurring config."""

    def __init__(
        self,
        store: TaskStore,
        counters: OccurrenceCounterStore,
        default_strategy: AssignmentStrategy = AssignmentStrategy.LEAST_BUSY,
        policies: Optional[AssignmentPolicyStore] = None,
    ):
        self.store = store
        self.counters = counters
        self.default_strategy = default_strategy
        self.policies = policies

    async def materialize_next(
        self,
        config: RecurringTaskConfig,
        members: Optional[List[TeamMember]] = None,
        history: Optional[List[TaskSnapshot]] = None,
    ) -> Optional[TaskSnapshot]:
        """
        Create the instance for config.next_occurrence_date.

        Args:
            config: The recurring config
            members: Assignment candidates with active task counts, for auto_assign
            history: The team's tasks, oldest first, for history-based strategies

        Returns:
            The created task, or None when the config is disabled, exhausted,
            or another worker already claimed this occurrence

        Raises:
            NotFoundError: the template task no longer exists
            TaskStoreError: the instance could not be created; the claim on
                the occurrence is rolled back so it is retried later
        """
        occurrence = config.next_occurrence_date
        if not config.enabled or occurrence is None:
            return None
        if is_exhausted(config, occurrence):
            logger.info(f"Recurring config {config.id} has reached its end condition")
            return None

        template = await self.store.get_task(config.task_template_id)
        if template is None:
            raise NotFoundError("Task template", config.task_template_id)

        team_id = config.team_id or template.team_id
        assignees, policy = self._assignees(config, template, team_id, members or [], history or [])

        advanced = config.model_copy(update={"total_occurrences": config.total_occurrences + 1})
        following = next_occurrence(advanced, occurrence)

        claimed = self.counters.advance_occurrence(
            config.id, config.total_occurrences, occurrence, following
        )
        if not claimed:
            logger.warning(f"Occurrence {occurrence} of config {config.id} was already materialized")
            return None

        instance = TaskSnapshot(
            id=f"task-{uuid4().hex[:12]}",
            title=template.title,
            description=template.description,
            priority=template.priority,
            due_date=_due_at(occurrence, template.due_date),
            assignees=assignees,
            tags=list(template.tags),
            completed=False,
            created_at=utcnow(),
            team_id=team_id,
        )
        try:
            created = await self.store.create_task(instance)
        except Exception as e:
            logger.error(f"Could not create occurrence {occurrence} of config {config.id}: {e}")
            reverted = self.counters.revert_occurrence(
                config.id,
                config.total_occurrences + 1,
                config.last_occurrence_date,
                occurrence,
            )
            if not reverted:
                logger.warning(f"Counter of config {config.id} moved on before it could be reverted")
            raise

        if policy is not None:
            self.policies.record_assignment(policy.id)
        logger.info(
            f"Materialized occurrence {config.total_occurrences + 1} of config {config.id} "
            f"as task {created.id} (due {occurrence}, next {following})"
        )
        return created

    def _assignees(
        self,
        config: RecurringTaskConfig,
        template: TaskSnapshot,
        team_id: Optional[str],
        members: List[TeamMember],
        history: List[TaskSnapshot],
    ) -> Tuple[List[Assignee], Optional[AssignmentPolicy]]:
        """Assignees for the instance, plus the policy that chose them (if any)."""
        if not config.auto_assign:
            return list(template.assignees), None

        names = {m.id: m.name for m in members}
        if config.auto_assignees:
            return [Assignee(id=user_id, name=names.get(user_id, "")) for user_id in config.auto_assignees], None

        policy = self.policies.get_for_team(team_id) if self.policies else None
        if policy is not None and policy_applies(policy, template):
            user_id = select_with_policy(policy, members, history, template)
        else:
            policy = None
            user_id = select_assignee(self.default_strategy, members, history, template)

        if user_id is None:
            return list(template.assignees), None
        return [Assignee(id=user_id, name=names.get(user_id, ""))], policy


def _due_at(occurrence, template_due: Optional[datetime]) -> datetime:
    # Keep the template's time of day when it has one
    at = template_due.timetz() if template_due else time(0, tzinfo=timezone.utc)
    return datetime.combine(occurrence, at)
