"""
Rule engine - matches trigger events against a team's rules and runs the
actions of every rule that fires.

Dispatch contract:
- Rules are evaluated one at a time, in stored order
- Disabled rules and rules for other triggers are skipped and never counted
- Conditions are AND-ed; the first failing condition stops evaluation
- A fired rule is counted exactly once per dispatch, however many of its
  actions failed
- A rule that blows up internally is logged and skipped; the remaining rules
  still run
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any, List, Protocol

from automation_engine.rules.actions import ActionExecutor
from automation_engine.rules.conditions import conditions_met, evaluate_condition
from automation_engine.rules.models import (
    AutomationLog,
    AutomationRule,
    ConditionCheck,
    ExecutionReport,
)
from automation_engine.tasks.models import TaskSnapshot, TeamMember, utcnow
from automation_engine.triggers.models import TriggerKind

logger = logging.getLogger(__name__)


class RuleCounterStore(Protocol):
    """Per-rule counters and audit log."""

    def record_trigger(self, rule_id: str, triggered_at: datetime) -> None: ...

    def add_log(self, log: AutomationLog) -> AutomationLog: ...


def rule_matches(rule: AutomationRule, trigger: TriggerKind, task: TaskSnapshot) -> bool:
    """Decide whether a rule fires for a trigger on a task."""
    if not rule.enabled:
        return False
    if rule.trigger != trigger:
        return False
    if trigger == TriggerKind.TASK_CREATED and not rule.apply_to_new_tasks:
        return False
    return conditions_met(task, rule.conditions)


class RuleEngine:
    """Runs rule sets against trigger events."""

    def __init__(self, executor: ActionExecutor, counters: RuleCounterStore):
        self.executor = executor
        self.counters = counters

    async def dispatch(
        self,
        trigger: TriggerKind,
        task: TaskSnapshot,
        rules: List[AutomationRule],
        metadata: Optional[Dict[str, Any]] = None,
        available_users: Optional[List[TeamMember]] = None,
    ) -> List[ExecutionReport]:
        """
        Dispatch one trigger event to a rule set.

        Args:
            trigger: The trigger kind
            task: Task snapshot at the time of the event
            rules: The team's rules, in stored order
            metadata: Trigger-specific details, passed through to reports and logs
            available_users: Candidates for assign_user actions

        Returns:
            One ExecutionReport per rule that fired
        """
        metadata = metadata or {}
        reports = []

        for rule in rules:
            try:
                fired = rule_matches(rule, trigger, task)
            except Exception as e:
                logger.error(f"Rule {rule.id} could not be evaluated: {e}", exc_info=True)
                continue

            if not fired:
                continue

            logger.info(f"Rule fired: {rule.name} ({rule.id}) on {trigger.value} for task {task.id}")
            report = await self._run_rule(rule, trigger, task, metadata, available_users)
            reports.append(report)

        return reports

    async def run_rule(
        self,
        rule: AutomationRule,
        task: TaskSnapshot,
        metadata: Optional[Dict[str, Any]] = None,
        available_users: Optional[List[TeamMember]] = None,
    ) -> Optional[ExecutionReport]:
        """Run a single rule against a task regardless of trigger (used for backfills)."""
        if not rule.enabled or not conditions_met(task, rule.conditions):
            return None
        return await self._run_rule(rule, rule.trigger, task, metadata or {}, available_users)

    async def _run_rule(
        self,
        rule: AutomationRule,
        trigger: TriggerKind,
        task: TaskSnapshot,
        metadata: Dict[str, Any],
        available_users: Optional[List[TeamMember]],
    ) -> ExecutionReport:
        report = ExecutionReport(
            rule_id=rule.id,
            rule_name=rule.name,
            task_id=task.id,
            trigger=trigger,
            triggered_at=utcnow(),
            metadata=metadata,
        )

        try:
            report.results = await self.executor.execute(task, rule.actions, available_users)
        except Exception as e:
            logger.error(f"Rule {rule.id} failed while executing actions: {e}", exc_info=True)
            report.error = str(e)

        if report.actions_failed:
            logger.warning(
                f"Rule {rule.id}: {report.actions_failed}/{len(report.results)} actions failed"
            )

        try:
            self.counters.record_trigger(rule.id, report.triggered_at)
            self.counters.add_log(_build_log(rule, task, report))
        except Exception as e:
            logger.error(f"Could not record trigger for rule {rule.id}: {e}", exc_info=True)

        return report


def _build_log(rule: AutomationRule, task: TaskSnapshot, report: ExecutionReport) -> AutomationLog:
    return AutomationLog(
        rule_id=rule.id,
        rule_name=rule.name,
        task_id=task.id,
        trigger=report.trigger,
        triggered_at=report.triggered_at,
        status=report.status,
        actions_executed=len(report.results) - report.actions_failed,
        actions_failed=report.actions_failed,
        conditions=[
            ConditionCheck(
                field=c.field,
                operator=c.operator,
                passed=evaluate_condition(task, c),
            )
            for c in rule.conditions
        ],
        actions=[
            {
                "type": r.action.type,
                "status": "success" if r.success else "failed",
                "error": r.error,
            }
            for r in report.results
        ],
        error_message=report.error,
        metadata=report.metadata,
    )
