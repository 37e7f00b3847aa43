"""
Billing date arithmetic.

A client is billed on a fixed day of the month. Months shorter than
that day bill on their last day instead, and each month is clamped on
its own: a client billed on the 31st goes Jan 31 -> Feb 29 -> Mar 31,
never drifting down to the 29th.
"""

import calendar
from datetime import date


def get_month_date(year: int, month: int, day: int) -> date:
    """
    Date of ``day`` in the given month, clamped to the month's last day.

    ``month`` may be outside 1..12 and rolls the year (13 is next January).
    """
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def get_initial_due_date(billing_day: int, today: date) -> date:
    """This month's billing date, or next month's if it already passed."""
    this_month = get_month_date(today.year, today.month, billing_day)
    if this_month < today:
        return get_month_date(today.year, today.month + 1, billing_day)
    return this_month


def get_next_due_date(current_due_date: date, billing_day: int) -> date:
    """One calendar month after ``current_due_date``, re-clamped to the target month."""
    return get_month_date(current_due_date.year, current_due_date.month + 1, billing_day)
