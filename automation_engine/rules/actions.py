"""
Action execution.

Applies a list of actions to one task as a best-effort fan-out: every action
runs even if an earlier one failed, and nothing is rolled back. Each action
is awaited before the next starts, so later actions (and later rules) see
the effects of earlier ones in the task store.
"""

import logging
from typing import Optional, List

from automation_engine.exceptions import TaskStoreError, ValidationError
from automation_engine.rules.models import (
    ActionResult,
    AddTag,
    AssignUser,
    AutomationAction,
    DelegatedAction,
    SetDueDate,
    SetPriority,
    parse_action,
)
from automation_engine.tasks.models import (
    Assignee,
    TaskSnapshot,
    TaskUpdate,
    TeamMember,
)
from automation_engine.tasks.store import TaskStore

logger = logging.getLogger(__name__)


class ActionExecutor:
    """Turns actions into task update commands on a task store."""

    def __init__(self, store: TaskStore):
        self.store = store

    async def execute(
        self,
        task: TaskSnapshot,
        actions: List[AutomationAction],
        available_users: Optional[List[TeamMember]] = None,
    ) -> List[ActionResult]:
        """
        Execute actions against a task.

        Args:
            task: Snapshot of the target task
            actions: Actions to apply, in order
            available_users: Users that assign_user may resolve against

        Returns:
            One ActionResult per action, in the same order
        """
        results = []
        for action in actions:
            try:
                result = await self._execute_one(task, action, available_users or [])
            except TaskStoreError as e:
                logger.error(f"Task store rejected {action.type} on {task.id}: {e}")
                result = ActionResult(action=action, success=False, error=str(e))
            except Exception as e:
                logger.error(f"Action {action.type} on {task.id} failed: {e}", exc_info=True)
                result = ActionResult(action=action, success=False, error=str(e) or type(e).__name__)
            results.append(result)
        return results

    async def _execute_one(
        self,
        task: TaskSnapshot,
        action: AutomationAction,
        available_users: List[TeamMember],
    ) -> ActionResult:
        try:
            command = parse_action(action)
        except ValidationError as e:
            return ActionResult(action=action, success=False, error=str(e))

        if isinstance(command, DelegatedAction):
            await self.store.dispatch_action(task.id, action.type, dict(action.params))
            return ActionResult(action=action, success=True, dispatched=True)

        # Appends work from the latest stored state, not the trigger snapshot
        current = await self.store.get_task(task.id) or task

        if isinstance(command, AssignUser):
            user = next((u for u in available_users if u.id == command.user_id), None)
            if user is None:
                return ActionResult(action=action, success=False, error=f"User not found: {command.user_id}")
            if command.user_id in current.assignee_ids:
                return ActionResult(action=action, success=True, detail="User already assigned")
            assignees = current.assignees + [Assignee(id=user.id, name=user.name)]
            await self._update(task.id, {"assignees": assignees})

        elif isinstance(command, AddTag):
            if command.tag in current.tags:
                return ActionResult(action=action, success=True, detail="Tag already present")
            await self._update(task.id, {"tags": current.tags + [command.tag]})

        elif isinstance(command, SetPriority):
            await self._update(task.id, {"priority": command.priority})

        elif isinstance(command, SetDueDate):
            await self._update(task.id, {"due_date": command.due_date})

        return ActionResult(action=action, success=True)

    async def _update(self, task_id: str, field_updates: dict):
        await self.store.apply_update(TaskUpdate(task_id=task_id, field_updates=field_updates))
        logger.info(f"Updated task {task_id}: {', '.join(field_updates)}")
