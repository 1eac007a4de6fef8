"""
Calendar arithmetic for recurrence.

Month arithmetic uses relativedelta, which clamps to the last day of the
target month instead of rolling over (Jan 31 + 1 month = Feb 28/29).
"""

from calendar import monthrange
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta


def last_day_of_month(year: int, month: int) -> int:
    return monthrange(year, month)[1]


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date, clamping day to the month's length."""
    return date(year, month, min(day, last_day_of_month(year, month)))


def add_months(value: date, months: int) -> date:
    """Add calendar months, keeping the day of month where it exists."""
    return value + relativedelta(months=months)


def add_years(value: date, years: int) -> date:
    """Add calendar years (Feb 29 lands on Feb 28 in non-leap years)."""
    return value + relativedelta(years=years)


def sunday_weekday(value: date) -> int:
    """Day of week with Sunday = 0 ... Saturday = 6."""
    return (value.weekday() + 1) % 7


def align_to_weekday(value: date, target: int) -> date:
    """Move forward (0-6 days) to the next date falling on target weekday."""
    return value + timedelta(days=(target - sunday_weekday(value)) % 7)
