"""
Completion prediction from same-priority historical tasks.

The sample is completed tasks sharing the target's priority. A sample task's
duration is its due date minus its creation date (creation date when it has
no due date), rounded up to whole days.
"""

import math
from datetime import timedelta
from typing import List

from automation_engine.insights.models import (
    ConfidenceInterval,
    RiskFactor,
    RiskLevel,
    TaskPrediction,
)
from automation_engine.insights.workload import round_half_up
from automation_engine.tasks.models import Priority, TaskSnapshot

DEFAULT_AVERAGE_DAYS = 7.0
DEFAULT_SPREAD_DAYS = 2.0
HOURS_PER_DAY = 2
URGENT_MAX_DAYS = 3


def similar_completed(task: TaskSnapshot, history: List[TaskSnapshot]) -> List[TaskSnapshot]:
    return [t for t in history if t.completed and t.priority == task.priority]


def completion_days(task: TaskSnapshot) -> int:
    end = task.due_date or task.created_at
    return math.ceil((end - task.created_at).total_seconds() / 86400)


def average_completion_days(sample: List[TaskSnapshot]) -> float:
    if not sample:
        return DEFAULT_AVERAGE_DAYS
    return sum(completion_days(t) for t in sample) / len(sample)


def _spread(durations: List[int], average: float) -> float:
    if len(durations) <= 1:
        return DEFAULT_SPREAD_DAYS
    return math.sqrt(sum((d - average) ** 2 for d in durations) / len(durations))


def _raise_to(current: RiskLevel, level: RiskLevel) -> RiskLevel:
    return level if level.severity > current.severity else current


def predict_completion(task: TaskSnapshot, history: List[TaskSnapshot]) -> TaskPrediction:
    """
    Predict when a task will complete.

    Risk factors are cumulative: every factor that applies is listed, and the
    most severe one sets risk_level.
    """
    sample = similar_completed(task, history)
    durations = [completion_days(t) for t in sample]
    average = average_completion_days(sample)
    spread = _spread(durations, average)

    risk = RiskLevel.LOW
    factors = []

    if not task.assignees:
        risk = _raise_to(risk, RiskLevel.HIGH)
        factors.append(RiskFactor(
            factor="No assignees",
            impact=RiskLevel.HIGH,
            description="Task has no one assigned to it",
        ))

    if task.due_date is None:
        risk = _raise_to(risk, RiskLevel.MEDIUM)
        factors.append(RiskFactor(
            factor="No due date",
            impact=RiskLevel.MEDIUM,
            description="Task has no deadline set",
        ))

    if task.priority == Priority.URGENT and average > URGENT_MAX_DAYS:
        risk = RiskLevel.HIGH
        factors.append(RiskFactor(
            factor="Urgent with long timeline",
            impact=RiskLevel.HIGH,
            description="Urgent tasks typically complete faster",
        ))

    return TaskPrediction(
        task_id=task.id,
        predicted_completion_date=task.created_at + timedelta(days=round_half_up(average)),
        completion_probability=min(95, 60 + 5 * len(sample)),
        risk_level=risk,
        estimated_hours=average * HOURS_PER_DAY,
        confidence_interval=ConfidenceInterval(
            min=max(1.0, average - spread),
            max=average + spread,
        ),
        similar_tasks_completed=len(sample),
        average_completion_time=average,
        risk_factors=factors,
    )
