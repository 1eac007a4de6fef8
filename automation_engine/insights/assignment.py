"""
Assignee selection.

All strategies break ties on the first candidate encountered, so callers
control precedence through candidate order (usually the team roster order).
"""

import logging
from collections import Counter
from typing import Optional, Dict, List

from automation_engine.insights.models import AssignmentPolicy, AssignmentStrategy
from automation_engine.insights.workload import HOURS_PER_TASK
from automation_engine.tasks.models import TaskSnapshot, TeamMember

logger = logging.getLogger(__name__)

ROUND_ROBIN_WINDOW = 10


def _least_busy(candidates: List[TeamMember]) -> Optional[str]:
    if not candidates:
        return None
    # min() keeps the first of equal keys
    return min(candidates, key=lambda m: m.active_tasks).id


def _round_robin(candidates: List[TeamMember], history: List[TaskSnapshot]) -> Optional[str]:
    if not candidates:
        return None
    recent = history[-ROUND_ROBIN_WINDOW:]
    counts = {
        m.id: sum(1 for t in recent if m.id in t.assignee_ids)
        for m in candidates
    }
    return min(candidates, key=lambda m: counts[m.id]).id


def _previous_similar(
    candidates: List[TeamMember],
    history: List[TaskSnapshot],
    task: Optional[TaskSnapshot],
) -> Optional[str]:
    if task is None:
        return None
    similar = [t for t in history if t.completed and t.priority == task.priority]
    counts: Counter = Counter()
    for t in similar:
        counts.update(t.assignee_ids)

    allowed = {m.id for m in candidates}
    best_id, best_count = None, 0
    # Counter preserves insertion order, so ties go to the first seen
    for user_id, count in counts.items():
        if user_id in allowed and count > best_count:
            best_id, best_count = user_id, count
    return best_id


def _skill_match(
    candidates: List[TeamMember],
    task: Optional[TaskSnapshot],
    skill_keywords: Dict[str, List[str]],
) -> Optional[str]:
    if task is None or not skill_keywords:
        return None
    haystack = " ".join([task.title, task.description or "", *task.tags]).lower()

    best_id, best_hits = None, 0
    for member in candidates:
        hits = sum(1 for kw in skill_keywords.get(member.id, []) if kw.lower() in haystack)
        if hits > best_hits:
            best_id, best_hits = member.id, hits
    return best_id


def select_assignee(
    strategy: AssignmentStrategy,
    candidates: List[TeamMember],
    history: Optional[List[TaskSnapshot]] = None,
    task: Optional[TaskSnapshot] = None,
    skill_keywords: Optional[Dict[str, List[str]]] = None,
) -> Optional[str]:
    """
    Pick an assignee for a task.

    Args:
        strategy: Selection strategy
        candidates: Team members with their current active task counts
        history: Historical tasks, oldest first
        task: The task being assigned (previous_similar and skill_match need it)
        skill_keywords: user id -> keywords, for skill_match

    Returns:
        The chosen user id, or None when the strategy finds no match.
        Callers must handle None rather than assume a default assignee.
    """
    history = history or []
    strategy = AssignmentStrategy(strategy)

    if strategy in (AssignmentStrategy.LEAST_BUSY, AssignmentStrategy.WORKLOAD_BALANCE):
        return _least_busy(candidates)
    if strategy == AssignmentStrategy.ROUND_ROBIN:
        return _round_robin(candidates, history)
    if strategy == AssignmentStrategy.PREVIOUS_SIMILAR:
        return _previous_similar(candidates, history, task)
    if strategy == AssignmentStrategy.SKILL_MATCH:
        return _skill_match(candidates, task, skill_keywords or {})

    raise ValueError(f"Unsupported assignment strategy: {strategy}")


def policy_applies(policy: AssignmentPolicy, task: TaskSnapshot) -> bool:
    """Whether a policy covers a task (enabled, and passes the tag/priority filters)."""
    if not policy.enabled:
        return False
    if policy.apply_to_tags and not set(policy.apply_to_tags) & set(task.tags):
        return False
    if policy.apply_to_priorities and task.priority not in policy.apply_to_priorities:
        return False
    return True


def _has_capacity(policy: AssignmentPolicy, member: TeamMember) -> bool:
    if policy.max_tasks_per_member is not None and member.active_tasks >= policy.max_tasks_per_member:
        return False
    if policy.max_hours_per_member is not None:
        # One more task must still fit under the hour cap
        if (member.active_tasks + 1) * HOURS_PER_TASK > policy.max_hours_per_member:
            return False
    return True


def select_with_policy(
    policy: AssignmentPolicy,
    candidates: List[TeamMember],
    history: Optional[List[TaskSnapshot]] = None,
    task: Optional[TaskSnapshot] = None,
) -> Optional[str]:
    """Apply exclusions and the per-member caps, then the strategy, then the fallback."""
    eligible = [
        m for m in candidates
        if m.id not in policy.exclude_members and _has_capacity(policy, m)
    ]
    if not eligible:
        logger.info(f"No eligible assignees under policy {policy.id}")
        return None

    chosen = select_assignee(policy.strategy, eligible, history, task, policy.skill_keywords)
    if chosen is None and policy.fallback_strategy:
        logger.debug(f"{policy.strategy.value} found no match, falling back to {policy.fallback_strategy.value}")
        chosen = select_assignee(policy.fallback_strategy, eligible, history, task, policy.skill_keywords)
    return chosen
