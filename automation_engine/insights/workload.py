"""
Workload analysis.

Per-member figures from the team's open tasks:
- Estimated hours use a flat 8h per task (placeholder heuristic, not measured)
- Utilization is estimated hours against a 40h week
- Due soon = due within the next 7 days, today included
- Overdue = due strictly before now
"""

import math
from datetime import datetime, timedelta
from typing import Optional, List

from automation_engine.insights.models import WorkloadAnalysis
from automation_engine.tasks.models import TaskSnapshot, TeamMember, utcnow

HOURS_PER_TASK = 8
WEEKLY_CAPACITY_HOURS = 40
DUE_SOON_DAYS = 7
OVERLOAD_THRESHOLD = 100
CAPACITY_THRESHOLD = 80


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def analyze_workload(
    open_tasks: List[TaskSnapshot],
    members: List[TeamMember],
    now: Optional[datetime] = None,
) -> List[WorkloadAnalysis]:
    """
    Analyze the workload of each team member.

    Args:
        open_tasks: The team's tasks; completed ones are ignored
        members: Team members, one analysis each
        now: Reference time (defaults to the current UTC time)

    Returns:
        WorkloadAnalysis per member, in member order
    """
    now = now or utcnow()
    today = now.date()
    horizon = today + timedelta(days=DUE_SOON_DAYS)

    analyses = []
    for member in members:
        member_tasks = [
            t for t in open_tasks
            if not t.completed and member.id in t.assignee_ids
        ]

        due_soon = sum(
            1 for t in member_tasks
            if t.due_date and today <= t.due_date.date() <= horizon
        )
        overdue = sum(1 for t in member_tasks if t.due_date and t.due_date < now)

        total_hours = len(member_tasks) * HOURS_PER_TASK
        utilization = round_half_up(total_hours / WEEKLY_CAPACITY_HOURS * 100)
        can_take_more = utilization < CAPACITY_THRESHOLD

        analyses.append(WorkloadAnalysis(
            user_id=member.id,
            user_name=member.name,
            active_tasks=len(member_tasks),
            total_estimated_hours=total_hours,
            utilization_percentage=utilization,
            available_hours=WEEKLY_CAPACITY_HOURS,
            overloaded=utilization > OVERLOAD_THRESHOLD,
            due_soon=due_soon,
            overdue=overdue,
            can_take_more=can_take_more,
            suggested_capacity=(
                (WEEKLY_CAPACITY_HOURS - total_hours) // HOURS_PER_TASK if can_take_more else 0
            ),
            generated_at=now,
        ))

    return analyses


def members_with_load(
    members: List[TeamMember], analyses: List[WorkloadAnalysis]
) -> List[TeamMember]:
    """Copy members with active_tasks filled in from a workload analysis."""
    counts = {a.user_id: a.active_tasks for a in analyses}
    return [
        m.model_copy(update={"active_tasks": counts.get(m.id, m.active_tasks)})
        for m in members
    ]
