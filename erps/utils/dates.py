# erps/utils/dates.py
"""Calendar helpers for inspection cadence (month arithmetic clamps to month end)."""

from datetime import date, datetime
from dateutil.relativedelta import relativedelta
from erps.config import settings


def add_months(start: date, months: int) -> date:
    return start + relativedelta(months=months)


def next_inspection_due(start: date, months: int = None) -> date:
    """Due date one inspection interval after `start`."""
    return add_months(start, months if months is not None else settings.INSPECTION_INTERVAL_MONTHS)


def roll_forward(due: date, today: date, months: int = None) -> date:
    """Advance `due` by whole intervals until it is strictly after `today`."""
    step = months if months is not None else settings.INSPECTION_INTERVAL_MONTHS
    n = 0
    result = due
    while result <= today:
        n += 1
        result = add_months(due, step * n)
    return result


def as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value
