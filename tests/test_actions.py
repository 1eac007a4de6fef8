"""Tests for the action executor."""

from datetime import datetime, timezone

import pytest

from automation_engine.rules.actions import ActionExecutor
from automation_engine.rules.models import ActionType, AutomationAction, action_display_name
from automation_engine.tasks.models import Priority

from conftest import make_task


def action(type_, **params):
    return AutomationAction(type=type_, params=params)


@pytest.fixture
def executor(store):
    return ActionExecutor(store)


class TestFieldActions:
    @pytest.mark.asyncio
    async def test_set_priority(self, executor, store):
        results = await executor.execute(make_task(), [action("set_priority", priority="urgent")])

        assert results[0].success is True
        assert (await store.get_task("task-1")).priority == Priority.URGENT

    @pytest.mark.asyncio
    async def test_set_due_date(self, executor, store):
        results = await executor.execute(make_task(), [action("set_due_date", dueDate="2026-02-01T12:00:00Z")])

        assert results[0].success is True
        task = await store.get_task("task-1")
        assert task.due_date == datetime(2026, 2, 1, 12, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_missing_param_fails_with_message(self, executor, store):
        results = await executor.execute(make_task(), [action("set_priority")])

        assert results[0].success is False
        assert "requires params.priority" in results[0].error
        assert store.updates == []

    @pytest.mark.asyncio
    async def test_invalid_param_fails(self, executor):
        results = await executor.execute(make_task(), [action("set_priority", priority="extreme")])
        assert results[0].success is False
        assert "Invalid params" in results[0].error

    @pytest.mark.asyncio
    async def test_unknown_action_type(self, executor):
        results = await executor.execute(make_task(), [action("launch_rocket")])
        assert results[0].success is False
        assert results[0].error == "Unknown action type: launch_rocket"


class TestAppendActions:
    @pytest.mark.asyncio
    async def test_assign_user(self, executor, store, members):
        results = await executor.execute(make_task(), [action("assign_user", userId="bob")], members)

        assert results[0].success is True
        assert (await store.get_task("task-1")).assignee_ids == ["bob"]

    @pytest.mark.asyncio
    async def test_assign_unknown_user(self, executor, members):
        results = await executor.execute(make_task(), [action("assign_user", userId="zed")], members)

        assert results[0].success is False
        assert results[0].error == "User not found: zed"

    @pytest.mark.asyncio
    async def test_assign_twice_is_noop(self, executor, store, members):
        actions = [action("assign_user", userId="bob"), action("assign_user", userId="bob")]
        results = await executor.execute(make_task(), actions, members)

        assert [r.success for r in results] == [True, True]
        assert results[1].detail == "User already assigned"
        assert (await store.get_task("task-1")).assignee_ids == ["bob"]

    @pytest.mark.asyncio
    async def test_tags_accumulate_across_actions(self, executor, store):
        actions = [action("add_tag", tag="a"), action("add_tag", tag="b"), action("add_tag", tag="a")]
        results = await executor.execute(make_task(), actions)

        assert all(r.success for r in results)
        assert results[2].detail == "Tag already present"
        assert (await store.get_task("task-1")).tags == ["a", "b"]


class TestDelegatedActions:
    @pytest.mark.asyncio
    async def test_forwarded_to_store(self, executor, store):
        results = await executor.execute(make_task(), [action("send_notification", message="hi")])

        assert results[0].success is True
        assert results[0].dispatched is True
        assert store.dispatched == [
            {"task_id": "task-1", "type": "send_notification", "params": {"message": "hi"}}
        ]


class TestPartialFailure:
    @pytest.mark.asyncio
    async def test_failure_does_not_stop_later_actions(self, executor, store, members):
        actions = [
            action("assign_user", userId="nobody"),
            action("set_priority", priority="high"),
            action("add_tag", tag="triaged"),
        ]
        results = await executor.execute(make_task(), actions, members)

        assert [r.success for r in results] == [False, True, True]
        task = await store.get_task("task-1")
        assert task.priority == Priority.HIGH
        assert task.tags == ["triaged"]

    @pytest.mark.asyncio
    async def test_store_rejection_is_reported(self, executor):
        ghost = make_task("ghost")
        results = await executor.execute(ghost, [action("add_tag", tag="x")])

        assert results[0].success is False
        assert "ghost" in results[0].error


class TestLabels:
    def test_action_labels(self):
        assert ActionType.MOVE_TO_MILESTONE.display_name == "Move to Milestone"
        assert action_display_name("set_due_date") == "Set Due Date"
        assert action_display_name("archive_task") == "archive_task"
