"""
Next-occurrence computation for recurring tasks.

Everything here is pure: the same config and reference date always give the
same answer, and nothing mutates the config. Materializing an occurrence
(and advancing counters) lives in materializer.py.
"""

from datetime import date, datetime, timedelta
from typing import Optional, List

from automation_engine.recurrence.dates import (
    add_months,
    add_years,
    align_to_weekday,
    clamp_day,
    sunday_weekday,
)
from automation_engine.recurrence.models import (
    EndType,
    RecurrencePattern,
    RecurringTaskConfig,
)


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def is_exhausted(config: RecurringTaskConfig, reference: date) -> bool:
    """True when the end condition is already satisfied at the reference date."""
    end = config.end_condition
    if end.type == EndType.AFTER_OCCURRENCES and end.occurrences is not None:
        if config.total_occurrences >= end.occurrences:
            return True
    if end.type == EndType.ON_DATE and end.end_date is not None:
        if reference > end.end_date:
            return True
    return False


def _candidate(config: RecurringTaskConfig, from_date: date) -> date:
    interval = config.interval
    pattern = config.pattern

    if pattern == RecurrencePattern.DAILY:
        return from_date + timedelta(days=interval)

    if pattern == RecurrencePattern.WEEKLY:
        if not config.days_of_week:
            return from_date + timedelta(weeks=interval)
        # Only the first configured weekday drives "next"
        target = config.days_of_week[0]
        if sunday_weekday(from_date) < target:
            # Target still ahead in the current (Sunday-based) week
            return align_to_weekday(from_date, target)
        return align_to_weekday(from_date + timedelta(weeks=interval), target)

    if pattern == RecurrencePattern.BIWEEKLY:
        return from_date + timedelta(weeks=2 * interval)

    if pattern == RecurrencePattern.MONTHLY:
        shifted = add_months(from_date, interval)
        if config.day_of_month:
            return clamp_day(shifted.year, shifted.month, config.day_of_month)
        return shifted

    if pattern == RecurrencePattern.QUARTERLY:
        return add_months(from_date, 3 * interval)

    if pattern == RecurrencePattern.YEARLY:
        return add_years(from_date, interval)

    raise ValueError(f"Unsupported recurrence pattern: {pattern}")


def next_occurrence(config: RecurringTaskConfig, from_date: date) -> Optional[date]:
    """
    Compute the next occurrence after from_date.

    Returns None when the end condition is reached, either before computing
    (occurrence count used up, or from_date already past the end date) or
    after (the candidate falls past the end date).
    """
    from_date = _as_date(from_date)
    if is_exhausted(config, from_date):
        return None

    candidate = _candidate(config, from_date)

    end = config.end_condition
    if end.type == EndType.ON_DATE and end.end_date is not None and candidate > end.end_date:
        return None
    return candidate


def first_occurrence(config: RecurringTaskConfig) -> Optional[date]:
    """
    The first occurrence on or after start_date.

    Weekly configs snap to the first configured weekday and monthly configs
    to the configured day of month (clamped), so the first instance lands on
    a day the pattern actually produces.
    """
    start = config.start_date
    first = start

    if config.pattern == RecurrencePattern.WEEKLY and config.days_of_week:
        first = align_to_weekday(start, config.days_of_week[0])
    elif config.pattern == RecurrencePattern.MONTHLY and config.day_of_month:
        first = clamp_day(start.year, start.month, config.day_of_month)
        if first < start:
            following = add_months(date(start.year, start.month, 1), 1)
            first = clamp_day(following.year, following.month, config.day_of_month)

    if is_exhausted(config, first):
        return None
    return first


def preview_occurrences(
    config: RecurringTaskConfig,
    from_date: date,
    count: int,
) -> List[date]:
    """
    Chain next_occurrence calls to list upcoming dates.

    The config is never modified; the occurrence count each step would have
    reached is projected onto a copy so after_occurrences limits are honoured.
    """
    dates = []
    current = _as_date(from_date)
    for step in range(count):
        projected = config.model_copy(
            update={"total_occurrences": config.total_occurrences + step}
        )
        upcoming = next_occurrence(projected, current)
        if upcoming is None:
            break
        dates.append(upcoming)
        current = upcoming
    return dates


def due_for_materialization(config: RecurringTaskConfig, today: date) -> bool:
    """True when the next instance should be created (honours create_in_advance_days)."""
    if not config.enabled or config.next_occurrence_date is None:
        return False
    lead = timedelta(days=config.create_in_advance_days)
    return config.next_occurrence_date - lead <= today
