"""
Repositories for rules, recurring configs, logs, suggestions and assignment
policies.

Each repository wraps a Session and converts between ORM records and the
pydantic models the engine works with. Counters are only ever changed with
single UPDATE statements so concurrent dispatches cannot lose increments.
"""

import logging
from datetime import date, datetime
from typing import Optional, List

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from automation_engine.db.models import (
    AssignmentPolicyRecord,
    AutomationLogRecord,
    RecurringConfigRecord,
    RuleRecord,
    SuggestionRecord,
)
from automation_engine.exceptions import NotFoundError
from automation_engine.insights.models import AssignmentPolicy, SmartSuggestion
from automation_engine.recurrence.models import RecurringTaskConfig
from automation_engine.rules.models import AutomationLog, AutomationRule, RulePatch
from automation_engine.tasks.models import as_utc, utcnow
from automation_engine.triggers.models import TriggerKind

logger = logging.getLogger(__name__)


class RuleRepository:
    """Rules, their trigger counters and the automation log."""

    def __init__(self, db: Session):
        self.db = db

    # =============================================================================
    # Rules
    # =============================================================================

    def create(self, rule: AutomationRule) -> AutomationRule:
        position = (self.db.query(func.max(RuleRecord.position)).scalar() or 0) + 1
        record = RuleRecord(
            id=rule.id,
            position=position,
            name=rule.name,
            description=rule.description,
            enabled=rule.enabled,
            trigger=rule.trigger.value,
            conditions=[c.model_dump(mode="json") for c in rule.conditions],
            actions=[a.model_dump(mode="json") for a in rule.actions],
            team_id=rule.team_id,
            apply_to_new_tasks=rule.apply_to_new_tasks,
            apply_to_existing_tasks=rule.apply_to_existing_tasks,
            created_by=rule.created_by,
            created_at=rule.created_at,
            trigger_count=0,
            last_triggered_at=None,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return _rule_from_record(record)

    def get(self, rule_id: str) -> Optional[AutomationRule]:
        record = self.db.query(RuleRecord).filter(RuleRecord.id == rule_id).first()
        return _rule_from_record(record) if record else None

    def list(
        self,
        team_id: Optional[str] = None,
        trigger: Optional[TriggerKind] = None,
    ) -> List[AutomationRule]:
        """Rules in stored order, optionally scoped to a team and trigger."""
        query = self.db.query(RuleRecord)
        if team_id is not None:
            query = query.filter(RuleRecord.team_id == team_id)
        if trigger is not None:
            query = query.filter(RuleRecord.trigger == trigger.value)
        return [_rule_from_record(r) for r in query.order_by(RuleRecord.position).all()]

    def update(self, rule_id: str, patch: RulePatch) -> AutomationRule:
        record = self.db.query(RuleRecord).filter(RuleRecord.id == rule_id).first()
        if not record:
            raise NotFoundError("Rule", rule_id)

        changes = patch.model_dump(exclude_unset=True, exclude_none=True, mode="json")
        for key, value in changes.items():
            setattr(record, key, value)
        record.updated_at = utcnow()

        self.db.commit()
        self.db.refresh(record)
        return _rule_from_record(record)

    def delete(self, rule_id: str) -> bool:
        deleted = self.db.query(RuleRecord).filter(RuleRecord.id == rule_id).delete()
        self.db.commit()
        return deleted > 0

    def record_trigger(self, rule_id: str, triggered_at: datetime) -> None:
        """Atomically bump a rule's trigger counter."""
        self.db.query(RuleRecord).filter(RuleRecord.id == rule_id).update(
            {
                RuleRecord.trigger_count: RuleRecord.trigger_count + 1,
                RuleRecord.last_triggered_at: triggered_at,
            },
            synchronize_session=False,
        )
        self.db.commit()

    # =============================================================================
    # Automation log
    # =============================================================================

    def add_log(self, log: AutomationLog) -> AutomationLog:
        record = AutomationLogRecord(
            rule_id=log.rule_id,
            rule_name=log.rule_name,
            task_id=log.task_id,
            trigger=log.trigger.value,
            triggered_at=log.triggered_at,
            status=log.status,
            actions_executed=log.actions_executed,
            actions_failed=log.actions_failed,
            conditions=[c.model_dump(mode="json") for c in log.conditions],
            actions=log.actions,
            error_message=log.error_message,
            meta_data=log.metadata,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return _log_from_record(record)

    def list_logs(
        self,
        rule_id: Optional[str] = None,
        task_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[AutomationLog]:
        """Most recent log entries first."""
        query = self.db.query(AutomationLogRecord)
        if rule_id:
            query = query.filter(AutomationLogRecord.rule_id == rule_id)
        if task_id:
            query = query.filter(AutomationLogRecord.task_id == task_id)
        records = query.order_by(desc(AutomationLogRecord.id)).limit(limit).all()
        return [_log_from_record(r) for r in records]


class RecurringConfigRepository:
    """Recurring configs and their occurrence counters."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, config: RecurringTaskConfig) -> RecurringTaskConfig:
        record = RecurringConfigRecord(
            id=config.id,
            task_template_id=config.task_template_id,
            enabled=config.enabled,
            team_id=config.team_id,
            pattern=config.pattern.value,
            interval=config.interval,
            days_of_week=list(config.days_of_week),
            day_of_month=config.day_of_month,
            start_date=config.start_date,
            end_condition=config.end_condition.model_dump(mode="json"),
            create_in_advance_days=config.create_in_advance_days,
            auto_assign=config.auto_assign,
            auto_assignees=list(config.auto_assignees),
            created_by=config.created_by,
            created_at=config.created_at,
            total_occurrences=config.total_occurrences,
            last_occurrence_date=config.last_occurrence_date,
            next_occurrence_date=config.next_occurrence_date,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return _config_from_record(record)

    def get(self, config_id: str) -> Optional[RecurringTaskConfig]:
        record = self.db.query(RecurringConfigRecord).filter(RecurringConfigRecord.id == config_id).first()
        return _config_from_record(record) if record else None

    def list(self, team_id: Optional[str] = None, enabled_only: bool = False) -> List[RecurringTaskConfig]:
        query = self.db.query(RecurringConfigRecord)
        if team_id is not None:
            query = query.filter(RecurringConfigRecord.team_id == team_id)
        if enabled_only:
            query = query.filter(RecurringConfigRecord.enabled.is_(True))
        records = query.order_by(RecurringConfigRecord.created_at).all()
        return [_config_from_record(r) for r in records]

    def pending(self) -> List[RecurringTaskConfig]:
        """Enabled configs that still have a next occurrence."""
        records = self.db.query(RecurringConfigRecord).filter(
            RecurringConfigRecord.enabled.is_(True),
            RecurringConfigRecord.next_occurrence_date.isnot(None),
        ).order_by(RecurringConfigRecord.next_occurrence_date).all()
        return [_config_from_record(r) for r in records]

    def set_enabled(self, config_id: str, enabled: bool) -> RecurringTaskConfig:
        record = self.db.query(RecurringConfigRecord).filter(RecurringConfigRecord.id == config_id).first()
        if not record:
            raise NotFoundError("Recurring config", config_id)
        record.enabled = enabled
        self.db.commit()
        self.db.refresh(record)
        return _config_from_record(record)

    def advance_occurrence(
        self,
        config_id: str,
        expected_total: int,
        occurrence_date: date,
        next_date: Optional[date],
    ) -> bool:
        """
        Compare-and-set the occurrence counter.

        Returns False when total_occurrences is no longer expected_total,
        i.e. another worker materialized this occurrence first.
        """
        updated = self.db.query(RecurringConfigRecord).filter(
            RecurringConfigRecord.id == config_id,
            RecurringConfigRecord.total_occurrences == expected_total,
        ).update(
            {
                RecurringConfigRecord.total_occurrences: expected_total + 1,
                RecurringConfigRecord.last_occurrence_date: occurrence_date,
                RecurringConfigRecord.next_occurrence_date: next_date,
            },
            synchronize_session=False,
        )
        self.db.commit()
        return updated == 1

    def revert_occurrence(
        self,
        config_id: str,
        claimed_total: int,
        last_date: Optional[date],
        next_date: Optional[date],
    ) -> bool:
        """Undo an advance_occurrence claim whose task was never created."""
        updated = self.db.query(RecurringConfigRecord).filter(
            RecurringConfigRecord.id == config_id,
            RecurringConfigRecord.total_occurrences == claimed_total,
        ).update(
            {
                RecurringConfigRecord.total_occurrences: claimed_total - 1,
                RecurringConfigRecord.last_occurrence_date: last_date,
                RecurringConfigRecord.next_occurrence_date: next_date,
            },
            synchronize_session=False,
        )
        self.db.commit()
        return updated == 1


class SuggestionRepository:
    """Generated suggestions and their accept/dismiss state."""

    def __init__(self, db: Session):
        self.db = db

    def save_all(self, suggestions: List[SmartSuggestion]) -> List[SmartSuggestion]:
        for s in suggestions:
            self.db.add(SuggestionRecord(
                id=s.id,
                type=s.type.value,
                task_id=s.task_id,
                title=s.title,
                description=s.description,
                confidence=s.confidence,
                reasoning=s.reasoning,
                suggested_action=s.suggested_action.model_dump(mode="json"),
                created_at=s.created_at,
            ))
        self.db.commit()
        return suggestions

    def get(self, suggestion_id: str) -> Optional[SmartSuggestion]:
        record = self.db.query(SuggestionRecord).filter(SuggestionRecord.id == suggestion_id).first()
        return _suggestion_from_record(record) if record else None

    def list_open(self, task_id: str) -> List[SmartSuggestion]:
        records = self.db.query(SuggestionRecord).filter(
            SuggestionRecord.task_id == task_id,
            SuggestionRecord.applied.is_(False),
            SuggestionRecord.dismissed.is_(False),
        ).order_by(SuggestionRecord.created_at).all()
        return [_suggestion_from_record(r) for r in records]

    def mark_applied(self, suggestion_id: str) -> bool:
        """Claim an open suggestion for applying; False if it was already resolved."""
        return self._resolve(suggestion_id, SuggestionRecord.applied, SuggestionRecord.applied_at)

    def mark_dismissed(self, suggestion_id: str) -> bool:
        return self._resolve(suggestion_id, SuggestionRecord.dismissed, SuggestionRecord.dismissed_at)

    def _resolve(self, suggestion_id: str, flag, stamp) -> bool:
        updated = self.db.query(SuggestionRecord).filter(
            SuggestionRecord.id == suggestion_id,
            SuggestionRecord.applied.is_(False),
            SuggestionRecord.dismissed.is_(False),
        ).update({flag: True, stamp: utcnow()}, synchronize_session=False)
        self.db.commit()
        return updated == 1


class AssignmentPolicyRepository:
    """Team auto-assignment policies. At most one per team."""

    def __init__(self, db: Session):
        self.db = db

    def _record_for_team(self, team_id: Optional[str]) -> Optional[AssignmentPolicyRecord]:
        query = self.db.query(AssignmentPolicyRecord)
        if team_id is None:
            return query.filter(AssignmentPolicyRecord.team_id.is_(None)).first()
        return query.filter(AssignmentPolicyRecord.team_id == team_id).first()

    def get_for_team(self, team_id: Optional[str]) -> Optional[AssignmentPolicy]:
        record = self._record_for_team(team_id)
        return _policy_from_record(record) if record else None

    def upsert(self, policy: AssignmentPolicy) -> AssignmentPolicy:
        """Store a team's policy, replacing the existing one (counters are kept)."""
        data = policy.model_dump(mode="json", exclude={"id", "created_at", "updated_at", "assignment_count"})
        record = self._record_for_team(policy.team_id)
        if record is None:
            record = AssignmentPolicyRecord(
                id=policy.id,
                created_at=policy.created_at,
                assignment_count=0,
                **data,
            )
            self.db.add(record)
        else:
            for key, value in data.items():
                setattr(record, key, value)
            record.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(record)
        return _policy_from_record(record)

    def delete_for_team(self, team_id: Optional[str]) -> bool:
        record = self._record_for_team(team_id)
        if record is None:
            return False
        self.db.delete(record)
        self.db.commit()
        return True

    def record_assignment(self, policy_id: str) -> None:
        self.db.query(AssignmentPolicyRecord).filter(
            AssignmentPolicyRecord.id == policy_id
        ).update(
            {AssignmentPolicyRecord.assignment_count: AssignmentPolicyRecord.assignment_count + 1},
            synchronize_session=False,
        )
        self.db.commit()


# =============================================================================
# Record -> model conversion
# =============================================================================

def _rule_from_record(r: RuleRecord) -> AutomationRule:
    return AutomationRule(
        id=r.id,
        name=r.name,
        description=r.description,
        enabled=r.enabled,
        trigger=r.trigger,
        conditions=r.conditions or [],
        actions=r.actions or [],
        team_id=r.team_id,
        apply_to_new_tasks=r.apply_to_new_tasks,
        apply_to_existing_tasks=r.apply_to_existing_tasks,
        created_by=r.created_by,
        created_at=as_utc(r.created_at),
        updated_at=as_utc(r.updated_at),
        trigger_count=r.trigger_count,
        last_triggered_at=as_utc(r.last_triggered_at),
    )


def _log_from_record(r: AutomationLogRecord) -> AutomationLog:
    return AutomationLog(
        id=r.id,
        rule_id=r.rule_id,
        rule_name=r.rule_name,
        task_id=r.task_id,
        trigger=r.trigger,
        triggered_at=as_utc(r.triggered_at),
        status=r.status,
        actions_executed=r.actions_executed,
        actions_failed=r.actions_failed,
        conditions=r.conditions or [],
        actions=r.actions or [],
        error_message=r.error_message,
        metadata=r.meta_data or {},
    )


def _config_from_record(r: RecurringConfigRecord) -> RecurringTaskConfig:
    return RecurringTaskConfig(
        id=r.id,
        task_template_id=r.task_template_id,
        enabled=r.enabled,
        team_id=r.team_id,
        pattern=r.pattern,
        interval=r.interval,
        days_of_week=r.days_of_week or [],
        day_of_month=r.day_of_month,
        start_date=r.start_date,
        end_condition=r.end_condition,
        create_in_advance_days=r.create_in_advance_days,
        auto_assign=r.auto_assign,
        auto_assignees=r.auto_assignees or [],
        created_by=r.created_by,
        created_at=as_utc(r.created_at),
        total_occurrences=r.total_occurrences,
        last_occurrence_date=r.last_occurrence_date,
        next_occurrence_date=r.next_occurrence_date,
    )


def _suggestion_from_record(r: SuggestionRecord) -> SmartSuggestion:
    return SmartSuggestion(
        id=r.id,
        type=r.type,
        task_id=r.task_id,
        title=r.title,
        description=r.description,
        confidence=r.confidence,
        reasoning=r.reasoning,
        suggested_action=r.suggested_action,
        created_at=as_utc(r.created_at),
        applied=r.applied,
        applied_at=as_utc(r.applied_at),
        dismissed=r.dismissed,
        dismissed_at=as_utc(r.dismissed_at),
    )


def _policy_from_record(r: AssignmentPolicyRecord) -> AssignmentPolicy:
    return AssignmentPolicy(
        id=r.id,
        team_id=r.team_id,
        enabled=r.enabled,
        strategy=r.strategy,
        fallback_strategy=r.fallback_strategy,
        apply_to_tags=r.apply_to_tags or [],
        apply_to_priorities=r.apply_to_priorities or [],
        exclude_members=r.exclude_members or [],
        skill_keywords=r.skill_keywords or {},
        max_tasks_per_member=r.max_tasks_per_member,
        max_hours_per_member=r.max_hours_per_member,
        created_by=r.created_by,
        created_at=as_utc(r.created_at),
        updated_at=as_utc(r.updated_at),
        assignment_count=r.assignment_count,
    )
