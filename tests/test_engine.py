"""Tests for rule matching and dispatch."""

import pytest

from automation_engine.rules.actions import ActionExecutor
from automation_engine.rules.engine import RuleEngine, rule_matches
from automation_engine.rules.models import (
    AutomationAction,
    AutomationCondition,
    AutomationRule,
)
from automation_engine.triggers.models import TriggerKind

from conftest import make_task


class RecordingCounters:
    def __init__(self, fail=False):
        self.triggered = []
        self.logs = []
        self.fail = fail

    def record_trigger(self, rule_id, triggered_at):
        if self.fail:
            raise RuntimeError("database is locked")
        self.triggered.append(rule_id)

    def add_log(self, log):
        self.logs.append(log)
        return log


class ExplodingExecutor(ActionExecutor):
    async def execute(self, task, actions, available_users=None):
        raise RuntimeError("boom")


def make_rule(rule_id, trigger=TriggerKind.TASK_CREATED, conditions=None, actions=None, **fields):
    return AutomationRule(
        id=rule_id,
        name=f"Rule {rule_id}",
        trigger=trigger,
        conditions=conditions or [],
        actions=actions or [AutomationAction(type="add_tag", params={"tag": rule_id})],
        team_id="team-1",
        **fields,
    )


def high_priority():
    return AutomationCondition(field="priority", operator="equals", value="high")


@pytest.fixture
def counters():
    return RecordingCounters()


@pytest.fixture
def engine(store, counters):
    return RuleEngine(ActionExecutor(store), counters)


class TestRuleMatches:
    def test_disabled_rule_never_matches(self):
        rule = make_rule("r1", enabled=False)
        assert rule_matches(rule, TriggerKind.TASK_CREATED, make_task()) is False

    def test_other_trigger(self):
        rule = make_rule("r1", trigger=TriggerKind.TASK_COMPLETED)
        assert rule_matches(rule, TriggerKind.TASK_CREATED, make_task()) is False

    def test_new_tasks_opt_out(self):
        rule = make_rule("r1", apply_to_new_tasks=False)
        assert rule_matches(rule, TriggerKind.TASK_CREATED, make_task()) is False

    def test_conditions(self):
        rule = make_rule("r1", trigger=TriggerKind.TASK_UPDATED, conditions=[high_priority()])
        assert rule_matches(rule, TriggerKind.TASK_UPDATED, make_task(priority="high")) is True
        assert rule_matches(rule, TriggerKind.TASK_UPDATED, make_task(priority="low")) is False


class TestDispatch:
    @pytest.mark.asyncio
    async def test_disabled_rule_is_not_counted_or_run(self, engine, counters, store):
        reports = await engine.dispatch(TriggerKind.TASK_CREATED, make_task(), [make_rule("r1", enabled=False)])

        assert reports == []
        assert counters.triggered == []
        assert store.updates == []

    @pytest.mark.asyncio
    async def test_failed_conditions_do_not_stop_later_rules(self, engine, counters):
        rules = [
            make_rule("a", conditions=[high_priority()]),
            make_rule("b"),
            make_rule("c"),
        ]
        reports = await engine.dispatch(TriggerKind.TASK_CREATED, make_task(priority="low"), rules)

        assert [r.rule_id for r in reports] == ["b", "c"]
        assert counters.triggered == ["b", "c"]

    @pytest.mark.asyncio
    async def test_rules_run_in_order_and_see_earlier_effects(self, engine, store):
        rules = [make_rule("first"), make_rule("second")]
        await engine.dispatch(TriggerKind.TASK_CREATED, make_task(), rules)

        assert (await store.get_task("task-1")).tags == ["first", "second"]

    @pytest.mark.asyncio
    async def test_partial_failure_counts_once(self, engine, counters, members):
        rule = make_rule("r1", actions=[
            AutomationAction(type="assign_user", params={"userId": "nobody"}),
            AutomationAction(type="set_priority", params={"priority": "urgent"}),
        ])
        reports = await engine.dispatch(TriggerKind.TASK_CREATED, make_task(), [rule], available_users=members)

        assert reports[0].status == "partial"
        assert reports[0].actions_failed == 1
        assert counters.triggered == ["r1"]

    @pytest.mark.asyncio
    async def test_rule_failure_is_isolated(self, store, counters):
        engine = RuleEngine(ExplodingExecutor(store), counters)
        reports = await engine.dispatch(TriggerKind.TASK_CREATED, make_task(), [make_rule("a"), make_rule("b")])

        assert len(reports) == 2
        assert reports[0].status == "failed"
        assert reports[0].error == "boom"

    @pytest.mark.asyncio
    async def test_counter_failure_keeps_report(self, store):
        engine = RuleEngine(ActionExecutor(store), RecordingCounters(fail=True))
        reports = await engine.dispatch(TriggerKind.TASK_CREATED, make_task(), [make_rule("a")])

        assert len(reports) == 1
        assert reports[0].status == "success"

    @pytest.mark.asyncio
    async def test_log_carries_metadata_and_conditions(self, engine, counters):
        rule = make_rule("r1", trigger=TriggerKind.PRIORITY_CHANGED, conditions=[high_priority()])
        metadata = {"field": "priority", "old": "low", "new": "high"}
        await engine.dispatch(TriggerKind.PRIORITY_CHANGED, make_task(priority="high"), [rule], metadata)

        log = counters.logs[0]
        assert log.metadata == metadata
        assert log.status == "success"
        assert log.actions_executed == 1
        assert [c.passed for c in log.conditions] == [True]


class TestRunRule:
    @pytest.mark.asyncio
    async def test_ignores_trigger_but_checks_conditions(self, engine):
        rule = make_rule("r1", trigger=TriggerKind.TASK_COMPLETED, conditions=[high_priority()])

        assert await engine.run_rule(rule, make_task(priority="low")) is None
        report = await engine.run_rule(rule, make_task(priority="high"))
        assert report.rule_id == "r1"
