"""Tests for due-date detection, webhooks and the scheduler tick."""

from datetime import timedelta

import pytest

from automation_engine.exceptions import ValidationError
from automation_engine.rules.models import RuleDraft
from automation_engine.tasks.models import utcnow
from automation_engine.triggers.detector import detect_due_events
from automation_engine.triggers.models import TriggerKind
from automation_engine.triggers.scheduler import AutomationScheduler
from automation_engine.triggers.webhooks import parse_task_webhook

from conftest import NOW, TEAM, make_task


class TestDetector:
    def test_overdue_and_approaching(self):
        tasks = [
            make_task("late", due_date=NOW - timedelta(hours=1)),
            make_task("soon", due_date=NOW + timedelta(hours=5)),
            make_task("later", due_date=NOW + timedelta(days=3)),
            make_task("none"),
            make_task("done", due_date=NOW - timedelta(days=1), completed=True),
        ]
        events = detect_due_events(tasks, NOW, approaching_hours=24)

        assert [(e.task.id, e.trigger) for e in events] == [
            ("late", TriggerKind.TASK_OVERDUE),
            ("soon", TriggerKind.DUE_DATE_APPROACHING),
        ]
        assert events[1].metadata["hours_until_due"] == 5.0
        assert all(e.source == "scheduler" for e in events)


class TestWebhook:
    def test_parses_event(self):
        event = parse_task_webhook({
            "event": "comment_added",
            "task": {"id": "t1", "title": "x", "assignees": ["alice"]},
            "metadata": {"comment_id": "c1"},
        })
        assert event.trigger == TriggerKind.COMMENT_ADDED
        assert event.task.assignee_ids == ["alice"]
        assert event.metadata == {"comment_id": "c1"}
        assert event.source == "webhook"

    def test_action_alias(self):
        event = parse_task_webhook({"action": "task_completed", "task": {"id": "t1", "title": "x"}})
        assert event.trigger == TriggerKind.TASK_COMPLETED

    def test_unknown_event(self):
        with pytest.raises(ValidationError, match="Unsupported webhook event"):
            parse_task_webhook({"event": "task_exploded", "task": {"id": "t1", "title": "x"}})

    def test_missing_task(self):
        with pytest.raises(ValidationError):
            parse_task_webhook({"event": "task_created"})

    def test_invalid_task(self):
        with pytest.raises(ValidationError, match="Invalid task"):
            parse_task_webhook({"event": "task_created", "task": {"id": "t1", "priority": "extreme"}})


class TestSchedulerTick:
    @pytest.mark.asyncio
    async def test_dispatches_overdue_once(self, service, store):
        await store.create_task(make_task("late", due_date=utcnow() - timedelta(hours=2)))
        rule = service.create_rule(RuleDraft(
            name="Flag overdue",
            trigger="task_overdue",
            actions=[{"type": "add_tag", "params": {"tag": "overdue"}}],
            team_id=TEAM,
        ))
        scheduler = AutomationScheduler(service, tick_seconds=60)

        first = await scheduler.tick()
        second = await scheduler.tick()

        assert first["events_dispatched"] == 1
        assert second["events_dispatched"] == 0
        assert (await store.get_task("late")).tags == ["overdue"]
        assert service.get_rule(rule.id).trigger_count == 1

    @pytest.mark.asyncio
    async def test_forgets_events_that_no_longer_apply(self, service, store):
        due = utcnow() - timedelta(hours=2)
        await store.create_task(make_task("late", due_date=due))
        scheduler = AutomationScheduler(service, tick_seconds=60)

        await scheduler.tick()
        assert len(scheduler._seen) == 1

        await store.create_task(make_task("late", due_date=due, completed=True))
        await scheduler.tick()
        assert scheduler._seen == set()

        # Reopened and still overdue: dispatched again
        await store.create_task(make_task("late", due_date=due))
        summary = await scheduler.tick()
        assert summary["events_dispatched"] == 1

    @pytest.mark.asyncio
    async def test_start_and_stop(self, service):
        scheduler = AutomationScheduler(service, tick_seconds=3600)
        scheduler.start()
        assert scheduler.running is True

        await scheduler.stop()
        assert scheduler.running is False


class TestLabels:
    def test_trigger_labels(self):
        assert TriggerKind.DUE_DATE_APPROACHING.display_name == "Due Date Approaching"
        assert all(kind.display_name for kind in TriggerKind)
