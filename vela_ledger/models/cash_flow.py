"""Cash-flow report models."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field


class Granularity(str, Enum):
    """Bucket size for period aggregation."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class CashFlowBucket(BaseModel):
    """Income and expense totals for one period."""

    period: date = Field(..., description="First day of the bucket")
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")

    @computed_field
    @property
    def net(self) -> Decimal:
        return self.income - self.expense


class CategoryGroup(BaseModel):
    """A named heading of the statement and the categories it sums."""

    name: str
    categories: list[str] = Field(default_factory=list)


class GroupTotal(BaseModel):
    name: str
    total: Decimal = Decimal("0")


class CashFlowStatement(BaseModel):
    """
    Cash flow by category for a date range.

    EBITDA = total income - (total expense - depreciation)
    EBIT   = EBITDA - depreciation
    net    = total income - total expense + financing - capex
    """

    date_from: date
    date_to: Optional[date] = None

    income_groups: list[GroupTotal] = Field(default_factory=list)
    expense_groups: list[GroupTotal] = Field(default_factory=list)

    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    depreciation: Decimal = Decimal("0")
    ebitda: Decimal = Decimal("0")
    ebit: Decimal = Decimal("0")
    financing_total: Decimal = Decimal("0")
    capex_total: Decimal = Decimal("0")
    net_flow: Decimal = Decimal("0")
