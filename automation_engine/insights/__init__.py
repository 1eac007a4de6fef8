"""Workload, assignment, prediction and suggestion insights."""

from automation_engine.insights.models import (
    AssignmentPolicy,
    AssignmentPolicyDraft,
    AssignmentStrategy,
    ConfidenceInterval,
    RiskFactor,
    RiskLevel,
    SmartSuggestion,
    SuggestionType,
    TaskPrediction,
    WorkloadAnalysis,
)
from automation_engine.insights.workload import analyze_workload, members_with_load
from automation_engine.insights.assignment import policy_applies, select_assignee, select_with_policy
from automation_engine.insights.prediction import predict_completion
from automation_engine.insights.suggestions import generate_suggestions

__all__ = [
    "AssignmentPolicy",
    "AssignmentPolicyDraft",
    "AssignmentStrategy",
    "ConfidenceInterval",
    "RiskFactor",
    "RiskLevel",
    "SmartSuggestion",
    "SuggestionType",
    "TaskPrediction",
    "WorkloadAnalysis",
    "analyze_workload",
    "members_with_load",
    "policy_applies",
    "select_assignee",
    "select_with_policy",
    "predict_completion",
    "generate_suggestions",
]
