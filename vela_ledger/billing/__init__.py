"""Recurring billing package."""

from vela_ledger.billing.engine import RecurringBillingEngine
from vela_ledger.billing.schedule import (
    get_initial_due_date,
    get_month_date,
    get_next_due_date,
)

__all__ = [
    "RecurringBillingEngine",
    "get_initial_due_date",
    "get_month_date",
    "get_next_due_date",
]
