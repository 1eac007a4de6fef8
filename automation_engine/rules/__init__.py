"""Automation rules - condition evaluation, action execution and dispatch."""

from automation_engine.rules.actions import ActionExecutor
from automation_engine.rules.conditions import conditions_met, evaluate_condition
from automation_engine.rules.engine import RuleEngine, rule_matches
from automation_engine.rules.models import (
    ActionResult,
    ActionType,
    AutomationAction,
    AutomationCondition,
    AutomationLog,
    AutomationRule,
    ConditionField,
    ConditionOperator,
    ExecutionReport,
    RuleDraft,
    RulePatch,
)

__all__ = [
    "ActionExecutor",
    "conditions_met",
    "evaluate_condition",
    "RuleEngine",
    "rule_matches",
    "ActionResult",
    "ActionType",
    "AutomationAction",
    "AutomationCondition",
    "AutomationLog",
    "AutomationRule",
    "ConditionField",
    "ConditionOperator",
    "ExecutionReport",
    "RuleDraft",
    "RulePatch",
]
