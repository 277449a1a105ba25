"""
Billing calendar helpers.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta


def _clamped(year: int, month: int, day: int) -> date:
    """The given day in the month, or the month's last day if it is shorter."""
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def add_months(value: date, months: int, day: int | None = None) -> date:
    """
    Move a date by whole months, clamping to the end of shorter months.

    Args:
        value: Starting date
        months: Number of months to add (may be negative)
        day: Day of month to land on (defaults to value.day)
    """
    index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(index, 12)
    return _clamped(year, month + 1, day or value.day)


def compute_next_due_date(start_date: date, billing_day: int) -> date:
    """
    First due date on or after start_date that falls on billing_day.

    A billing day past the end of a month lands on that month's last day.

    Example:
        compute_next_due_date(date(2024, 1, 15), 10)  # date(2024, 2, 10)
        compute_next_due_date(date(2024, 1, 15), 20)  # date(2024, 1, 20)
        compute_next_due_date(date(2024, 2, 1), 31)   # date(2024, 2, 29)
    """
    candidate = _clamped(start_date.year, start_date.month, billing_day)
    if candidate < start_date:
        candidate = add_months(candidate, 1, day=billing_day)
    return candidate


def billing_period_end(period_start: date, cycle_months: int) -> date:
    """Last day covered by a charge that starts a cycle on period_start."""
    return add_months(period_start, cycle_months) - timedelta(days=1)
