"""Tests for workload analysis, assignment, prediction and suggestions."""

from datetime import datetime, timedelta, timezone

import pytest

from automation_engine.insights.assignment import policy_applies, select_assignee, select_with_policy
from automation_engine.insights.models import AssignmentPolicy, AssignmentStrategy, RiskLevel, SuggestionType
from automation_engine.insights.prediction import predict_completion
from automation_engine.insights.suggestions import generate_suggestions
from automation_engine.insights.workload import analyze_workload, round_half_up
from automation_engine.tasks.models import TeamMember

from conftest import NOW, make_task


def member(user_id, active=0):
    return TeamMember(id=user_id, name=user_id.title(), active_tasks=active)


def completed(task_id, days, priority="medium", assignees=None):
    return make_task(
        task_id,
        priority=priority,
        completed=True,
        created_at=NOW - timedelta(days=30),
        due_date=NOW - timedelta(days=30) + timedelta(days=days),
        assignees=assignees or [],
    )


class TestWorkload:
    def test_overloaded_member(self):
        tasks = [make_task(f"t{i}", assignees=["alice"]) for i in range(6)]
        [analysis] = analyze_workload(tasks, [member("alice")], now=NOW)

        assert analysis.active_tasks == 6
        assert analysis.total_estimated_hours == 48
        assert analysis.utilization_percentage == 120
        assert analysis.overloaded is True
        assert analysis.can_take_more is False
        assert analysis.suggested_capacity == 0

    def test_spare_capacity(self):
        tasks = [make_task("t1", assignees=["bob"])]
        [analysis] = analyze_workload(tasks, [member("bob")], now=NOW)

        assert analysis.utilization_percentage == 20
        assert analysis.can_take_more is True
        assert analysis.suggested_capacity == 4

    def test_completed_and_unassigned_tasks_ignored(self):
        tasks = [
            make_task("t1", assignees=["alice"], completed=True),
            make_task("t2", assignees=["bob"]),
        ]
        [analysis] = analyze_workload(tasks, [member("alice")], now=NOW)
        assert analysis.active_tasks == 0

    def test_due_soon_and_overdue(self):
        tasks = [
            make_task("today", assignees=["alice"], due_date=NOW + timedelta(hours=2)),
            make_task("week", assignees=["alice"], due_date=NOW + timedelta(days=7)),
            make_task("later", assignees=["alice"], due_date=NOW + timedelta(days=8)),
            make_task("late", assignees=["alice"], due_date=NOW - timedelta(days=1)),
        ]
        [analysis] = analyze_workload(tasks, [member("alice")], now=NOW)

        assert analysis.due_soon == 2
        assert analysis.overdue == 1

    def test_one_entry_per_member(self):
        analyses = analyze_workload([], [member("a"), member("b")], now=NOW)
        assert [a.user_id for a in analyses] == ["a", "b"]

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(2.4) == 2


class TestAssignment:
    def test_least_busy(self):
        candidates = [member("a", 5), member("b", 2)]
        assert select_assignee("least_busy", candidates, []) == "b"

    def test_least_busy_tie_goes_to_first(self):
        candidates = [member("x", 1), member("y", 1)]
        assert select_assignee(AssignmentStrategy.LEAST_BUSY, candidates) == "x"

    def test_workload_balance_matches_least_busy(self):
        candidates = [member("a", 3), member("b", 1), member("c", 1)]
        assert select_assignee(AssignmentStrategy.WORKLOAD_BALANCE, candidates) == "b"

    def test_no_candidates(self):
        assert select_assignee(AssignmentStrategy.LEAST_BUSY, []) is None

    def test_round_robin_uses_last_ten(self):
        # "a" owns the first five (outside the window), "b" two recent ones
        history = [make_task(f"old{i}", assignees=["a"]) for i in range(5)]
        history += [make_task(f"new{i}", assignees=["b"] if i < 2 else []) for i in range(10)]
        candidates = [member("b"), member("a")]

        assert select_assignee(AssignmentStrategy.ROUND_ROBIN, candidates, history) == "a"

    def test_previous_similar(self):
        history = [
            completed("h1", 2, priority="high", assignees=["a"]),
            completed("h2", 2, priority="high", assignees=["b"]),
            completed("h3", 2, priority="high", assignees=["b"]),
            completed("h4", 2, priority="low", assignees=["a"]),
            completed("h5", 2, priority="low", assignees=["a"]),
        ]
        task = make_task("new", priority="high")
        candidates = [member("a"), member("b")]

        assert select_assignee(AssignmentStrategy.PREVIOUS_SIMILAR, candidates, history, task) == "b"

    def test_previous_similar_without_history(self):
        task = make_task("new", priority="urgent")
        assert select_assignee(AssignmentStrategy.PREVIOUS_SIMILAR, [member("a")], [], task) is None

    def test_skill_match(self):
        task = make_task("new", title="Fix the Postgres migration", tags=["database"])
        keywords = {"a": ["frontend"], "b": ["postgres", "database"]}
        result = select_assignee(
            AssignmentStrategy.SKILL_MATCH, [member("a"), member("b")], task=task, skill_keywords=keywords
        )
        assert result == "b"

    def test_policy_excludes_and_caps(self):
        policy = AssignmentPolicy(id="policy-1", exclude_members=["a"], max_tasks_per_member=3)
        candidates = [member("a", 0), member("b", 4), member("c", 2)]
        assert select_with_policy(policy, candidates) == "c"

    def test_policy_fallback(self):
        policy = AssignmentPolicy(
            id="policy-1",
            strategy=AssignmentStrategy.PREVIOUS_SIMILAR,
            fallback_strategy=AssignmentStrategy.LEAST_BUSY,
        )
        candidates = [member("a", 4), member("b", 1)]
        assert select_with_policy(policy, candidates, [], make_task()) == "b"

    def test_policy_nobody_eligible(self):
        policy = AssignmentPolicy(id="policy-1", max_tasks_per_member=1)
        assert select_with_policy(policy, [member("a", 1)]) is None

    def test_policy_hour_cap(self):
        # 8 hours per task: a third task would need 24 hours
        policy = AssignmentPolicy(id="policy-1", max_hours_per_member=20)
        candidates = [member("a", 2), member("b", 3), member("c", 1)]
        assert select_with_policy(policy, candidates) == "c"
        assert select_with_policy(policy, candidates[:2]) is None

    def test_policy_filters(self):
        policy = AssignmentPolicy(id="policy-1", apply_to_tags=["ops"], apply_to_priorities=["high", "urgent"])

        assert policy_applies(policy, make_task(tags=["ops", "infra"], priority="high"))
        assert not policy_applies(policy, make_task(tags=["ops"], priority="low"))
        assert not policy_applies(policy, make_task(tags=["docs"], priority="urgent"))
        assert policy_applies(AssignmentPolicy(id="policy-2"), make_task())
        assert not policy_applies(AssignmentPolicy(id="policy-3", enabled=False), make_task())


class TestPrediction:
    def test_defaults_without_history(self):
        task = make_task(assignees=["alice"], due_date=NOW + timedelta(days=3))
        prediction = predict_completion(task, [])

        assert prediction.average_completion_time == 7
        assert prediction.predicted_completion_date == NOW + timedelta(days=7)
        assert prediction.completion_probability == 60
        assert prediction.confidence_interval.min == 5
        assert prediction.confidence_interval.max == 9
        assert prediction.estimated_hours == 14
        assert prediction.risk_level == RiskLevel.LOW
        assert prediction.risk_factors == []

    def test_sample_statistics(self):
        history = [completed("h1", 2), completed("h2", 4), completed("h3", 9, priority="low")]
        task = make_task(assignees=["alice"], due_date=NOW)
        prediction = predict_completion(task, history)

        assert prediction.similar_tasks_completed == 2
        assert prediction.average_completion_time == 3
        assert prediction.completion_probability == 70
        # Population standard deviation of [2, 4] is 1
        assert prediction.confidence_interval.min == 2
        assert prediction.confidence_interval.max == 4

    def test_probability_capped(self):
        history = [completed(f"h{i}", 1) for i in range(20)]
        assert predict_completion(make_task(), history).completion_probability == 95

    def test_risk_factors_are_cumulative(self):
        task = make_task(priority="urgent", due_date=None)
        prediction = predict_completion(task, [])

        assert prediction.risk_level == RiskLevel.HIGH
        assert [f.factor for f in prediction.risk_factors] == [
            "No assignees",
            "No due date",
            "Urgent with long timeline",
        ]

    def test_missing_due_date_is_medium(self):
        task = make_task(assignees=["alice"], due_date=None)
        assert predict_completion(task, []).risk_level == RiskLevel.MEDIUM


class TestSuggestions:
    def test_auto_assign_least_busy(self):
        members = [member("alice", 3), member("bob", 1)]
        suggestions = generate_suggestions(make_task(due_date=NOW), [], members)

        [s] = suggestions
        assert s.type == SuggestionType.AUTO_ASSIGN
        assert s.confidence == 75
        assert s.suggested_action.params == {"userId": "bob"}
        assert s.id.startswith("suggest-assign-")

    def test_auto_assign_uses_team_policy(self):
        members = [member("alice", 3), member("bob", 1)]
        policy = AssignmentPolicy(id="policy-1", exclude_members=["bob"])
        [s] = generate_suggestions(make_task(due_date=NOW), [], members, policy)

        assert s.suggested_action.params == {"userId": "alice"}
        assert s.title == "Auto-assign by team policy (least_busy)"

    def test_no_auto_assign_when_policy_finds_nobody(self):
        policy = AssignmentPolicy(id="policy-1", max_tasks_per_member=2)
        task = make_task(due_date=NOW)
        assert generate_suggestions(task, [], [member("alice", 3)], policy) == []

    def test_policy_outside_its_filters_is_ignored(self):
        members = [member("alice", 3), member("bob", 1)]
        policy = AssignmentPolicy(id="policy-1", exclude_members=["bob"], apply_to_tags=["ops"])
        [s] = generate_suggestions(make_task(due_date=NOW), [], members, policy)

        assert s.suggested_action.params == {"userId": "bob"}
        assert s.title == "Auto-assign to least busy member"

    def test_priority_escalation(self):
        task = make_task(title="ASAP: payment outage", assignees=["alice"], due_date=NOW)
        [s] = generate_suggestions(task, [], [member("alice")])

        assert s.type == SuggestionType.PRIORITY
        assert s.confidence == 85
        assert s.suggested_action.type == "set_priority"
        assert s.suggested_action.params == {"priority": "urgent"}

    def test_no_escalation_when_already_urgent(self):
        task = make_task(title="Critical fix", priority="urgent", assignees=["alice"], due_date=NOW)
        assert generate_suggestions(task, [], [member("alice")]) == []

    def test_due_date_from_history(self):
        history = [completed("h1", 2), completed("h2", 3)]
        task = make_task(assignees=["alice"])
        [s] = generate_suggestions(task, history, [member("alice")])

        assert s.type == SuggestionType.DUE_DATE
        assert s.confidence == 70
        expected = NOW + timedelta(days=3)  # 2.5 rounds up
        assert s.suggested_action.params == {"dueDate": expected.isoformat()}

    def test_no_due_date_suggestion_without_history(self):
        task = make_task(assignees=["alice"])
        assert generate_suggestions(task, [], [member("alice")]) == []

    def test_one_per_category(self):
        history = [completed("h1", 2)]
        task = make_task(title="urgent blocker")
        suggestions = generate_suggestions(task, history, [member("alice")])

        assert sorted(s.type.value for s in suggestions) == ["auto_assign", "due_date", "priority"]
