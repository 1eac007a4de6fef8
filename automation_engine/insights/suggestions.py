"""
Smart suggestion generation.

At most one suggestion per category per call:
1. auto_assign - least busy member (or the team policy's pick), when the
                 task has no assignees
2. priority    - escalate to urgent when the text has an urgent keyword
3. due_date    - creation date plus the average same-priority completion
                 time, when the task has no due date and history exists

Suggestions never touch the task; accepting one runs its action.
"""

import logging
from datetime import timedelta
from typing import Optional, List
from uuid import uuid4

from automation_engine.insights.assignment import policy_applies, select_assignee, select_with_policy
from automation_engine.insights.models import (
    AssignmentPolicy,
    AssignmentStrategy,
    SmartSuggestion,
    SuggestionType,
)
from automation_engine.insights.prediction import average_completion_days, similar_completed
from automation_engine.insights.workload import round_half_up
from automation_engine.rules.models import ActionType, AutomationAction
from automation_engine.tasks.models import Priority, TaskSnapshot, TeamMember

logger = logging.getLogger(__name__)

URGENT_KEYWORDS = ["urgent", "asap", "critical", "emergency", "blocker"]


def _suggestion_id(prefix: str) -> str:
    return f"suggest-{prefix}-{uuid4().hex[:12]}"


def has_urgent_keyword(task: TaskSnapshot) -> bool:
    text = f"{task.title} {task.description or ''}".lower()
    return any(keyword in text for keyword in URGENT_KEYWORDS)


def _assign_suggestion(
    task: TaskSnapshot,
    history: List[TaskSnapshot],
    members: List[TeamMember],
    policy: Optional[AssignmentPolicy],
) -> Optional[SmartSuggestion]:
    if policy is not None and policy_applies(policy, task):
        user_id = select_with_policy(policy, members, history, task)
        title = f"Auto-assign by team policy ({policy.strategy.value})"
    else:
        user_id = select_assignee(AssignmentStrategy.LEAST_BUSY, members)
        title = "Auto-assign to least busy member"
    if user_id is None:
        return None

    member = next(m for m in members if m.id == user_id)
    return SmartSuggestion(
        id=_suggestion_id("assign"),
        type=SuggestionType.AUTO_ASSIGN,
        task_id=task.id,
        title=title,
        description=f"Assign to {member.name or member.id} who has {member.active_tasks} active tasks",
        confidence=75,
        reasoning="Balanced workload distribution improves team efficiency",
        suggested_action=AutomationAction(
            type=ActionType.ASSIGN_USER.value,
            params={"userId": member.id},
        ),
    )


def generate_suggestions(
    task: TaskSnapshot,
    history: List[TaskSnapshot],
    members: List[TeamMember],
    policy: Optional[AssignmentPolicy] = None,
) -> List[SmartSuggestion]:
    """
    Build suggestions for a task.

    Args:
        task: Target task
        history: Historical tasks for the team
        members: Team members with active task counts filled in
        policy: The team's auto-assignment policy; used instead of least_busy
            when it covers the task

    Returns:
        List of SmartSuggestion (possibly empty)
    """
    suggestions = []

    if not task.assignees and members:
        suggestion = _assign_suggestion(task, history, members, policy)
        if suggestion:
            suggestions.append(suggestion)

    if has_urgent_keyword(task) and task.priority != Priority.URGENT:
        suggestions.append(SmartSuggestion(
            id=_suggestion_id("priority"),
            type=SuggestionType.PRIORITY,
            task_id=task.id,
            title="Increase priority to Urgent",
            description="Task contains urgent keywords",
            confidence=85,
            reasoning="Task description indicates high urgency",
            suggested_action=AutomationAction(
                type=ActionType.SET_PRIORITY.value,
                params={"priority": Priority.URGENT.value},
            ),
        ))

    if task.due_date is None:
        sample = similar_completed(task, history)
        if sample:
            days = round_half_up(average_completion_days(sample))
            due = task.created_at + timedelta(days=days)
            suggestions.append(SmartSuggestion(
                id=_suggestion_id("duedate"),
                type=SuggestionType.DUE_DATE,
                task_id=task.id,
                title=f"Set due date to {due.date().isoformat()}",
                description=f"Based on {len(sample)} similar tasks (avg {days} days)",
                confidence=70,
                reasoning="Historical data suggests this timeline",
                suggested_action=AutomationAction(
                    type=ActionType.SET_DUE_DATE.value,
                    params={"dueDate": due.isoformat()},
                ),
            ))

    logger.debug(f"Generated {len(suggestions)} suggestions for task {task.id}")
    return suggestions
