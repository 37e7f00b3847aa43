"""
Recurring Client Models

A recurring client pays a fixed amount every month on a billing day.
The client's ``due_date`` always sits on that billing day, clamped to
the last day of shorter months.
"""

import calendar
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from vela_ledger.models.transaction import Transaction


class BillingState(str, Enum):
    """
    Where a client sits in its monthly cycle.

    AWAITING_CHARGE -> PENDING_CHARGE -> PAID -> (next cycle) PENDING_CHARGE

    A client stays PAID only when the cycle stopped before seeding the
    next pending charge.
    """
    AWAITING_CHARGE = "awaiting_charge"
    PENDING_CHARGE = "pending_charge"
    PAID = "paid"


class RecurringClient(BaseModel):
    """A client billed every month on ``billing_day``."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0)
    billing_day: int = Field(..., ge=1, le=31)
    due_date: date
    notes: Optional[str] = Field(default=None, max_length=1000)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode='after')
    def validate_due_date_on_billing_day(self) -> 'RecurringClient':
        """Due date must fall on the billing day, clamped to month length."""
        last_day = calendar.monthrange(self.due_date.year, self.due_date.month)[1]
        if self.due_date.day != min(self.billing_day, last_day):
            raise ValueError(
                f"Due date {self.due_date.isoformat()} does not fall on "
                f"billing day {self.billing_day}"
            )
        return self

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> 'RecurringClient':
        return cls.model_validate(row)

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class RecurringClientView(BaseModel):
    """A client joined with its unresolved pending charge, if any."""

    client: RecurringClient
    pending_charge: Optional[Transaction] = None
    last_paid_on: Optional[date] = None

    @property
    def state(self) -> BillingState:
        if self.pending_charge is not None:
            return BillingState.PENDING_CHARGE
        if self.last_paid_on is not None:
            return BillingState.PAID
        return BillingState.AWAITING_CHARGE

    def days_until_due(self, today: date) -> int:
        return (self.client.due_date - today).days
