"""
Cash-Flow Aggregator

Two views over the same transactions:

1. Period series - income / expense / net per day, ISO week (Monday
   start) or month, ascending by period start
2. Statement by category - operating groups, EBITDA, EBIT, financing,
   capex and the final net flow:

       EBITDA = total income - (total expense - depreciation)
       EBIT   = EBITDA - depreciation
       net    = total income - total expense + financing - capex

Amounts are each transaction's total (recomputed from amount / rate
when the stored VAT triple is missing). Transfers count toward neither
income nor expense.

The pure functions take already-fetched transactions. CashFlowService
fetches live posted rows for a date range and feeds them in.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Sequence

import structlog

from vela_ledger.models.cash_flow import (
    CashFlowBucket,
    CashFlowStatement,
    CategoryGroup,
    Granularity,
    GroupTotal,
)
from vela_ledger.models.transaction import Transaction, TransactionStatus, TransactionType
from vela_ledger.reports.categories import (
    CAPEX_CATEGORIES,
    DEPRECIATION_CATEGORIES,
    EXPENSE_GROUPS,
    FINANCING_CATEGORIES,
    INCOME_GROUPS,
)
from vela_ledger.services.storage import Filter, TableStorageInterface

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


def floor_period(value: date, granularity: Granularity) -> date:
    """First day of the day / ISO week / month containing ``value``."""
    if granularity == Granularity.DAY:
        return value
    if granularity == Granularity.WEEK:
        return value - timedelta(days=value.weekday())
    if granularity == Granularity.MONTH:
        return value.replace(day=1)
    raise ValueError(f"Unknown granularity: {granularity}")


def reportable(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Keep live settled movements; pending charges are not cash yet."""
    return [
        t for t in transactions
        if not t.is_deleted
        and t.status not in (TransactionStatus.DRAFT, TransactionStatus.PENDING)
    ]


def aggregate(
    transactions: Iterable[Transaction],
    granularity: Granularity,
) -> list[CashFlowBucket]:
    """Bucket transactions by period start, ordered ascending."""
    buckets: dict[date, CashFlowBucket] = {}
    for transaction in transactions:
        period = floor_period(transaction.transaction_date, granularity)
        bucket = buckets.setdefault(period, CashFlowBucket(period=period))
        if transaction.type == TransactionType.INCOME:
            bucket.income += transaction.effective_total
        elif transaction.type == TransactionType.EXPENSE:
            bucket.expense += transaction.effective_total
    return [buckets[period] for period in sorted(buckets)]


def sum_by_categories(
    transactions: Iterable[Transaction],
    categories: Optional[Sequence[str]] = None,
    transaction_type: Optional[TransactionType] = None,
) -> Decimal:
    """
    Sum totals over transactions in the given categories.

    No category list means every transaction; ``transaction_type``
    narrows the sum to income or expense rows.
    """
    allowed = set(categories) if categories is not None else None
    total = ZERO
    for transaction in transactions:
        if transaction_type is not None and transaction.type != transaction_type:
            continue
        if allowed is not None and transaction.category not in allowed:
            continue
        total += transaction.effective_total
    return total


def build_statement(
    transactions: Iterable[Transaction],
    date_from: date,
    date_to: Optional[date] = None,
    income_groups: Sequence[CategoryGroup] = INCOME_GROUPS,
    expense_groups: Sequence[CategoryGroup] = EXPENSE_GROUPS,
    depreciation_categories: Sequence[str] = DEPRECIATION_CATEGORIES,
    financing_categories: Sequence[str] = FINANCING_CATEGORIES,
    capex_categories: Sequence[str] = CAPEX_CATEGORIES,
) -> CashFlowStatement:
    """
    Cash flow by category between ``date_from`` and ``date_to`` (inclusive).

    Operating totals include every income / expense row that is not a
    financing or capex movement, so uncategorised rows still count.
    Depreciation is part of total expense and is added back for EBITDA.
    """
    rows = [
        t for t in reportable(transactions)
        if t.transaction_date >= date_from
        and (date_to is None or t.transaction_date <= date_to)
    ]

    non_operating = set(financing_categories) | set(capex_categories)
    operating = [t for t in rows if t.category not in non_operating]
    financing = [t for t in rows if t.category in set(financing_categories)]

    total_income = sum_by_categories(operating, transaction_type=TransactionType.INCOME)
    total_expense = sum_by_categories(operating, transaction_type=TransactionType.EXPENSE)
    depreciation = sum_by_categories(
        operating, depreciation_categories, TransactionType.EXPENSE
    )

    ebitda = total_income - (total_expense - depreciation)
    ebit = ebitda - depreciation

    financing_total = (
        sum_by_categories(financing, transaction_type=TransactionType.INCOME)
        - sum_by_categories(financing, transaction_type=TransactionType.EXPENSE)
    )
    capex_total = sum_by_categories(rows, capex_categories, TransactionType.EXPENSE)

    return CashFlowStatement(
        date_from=date_from,
        date_to=date_to,
        income_groups=[
            GroupTotal(
                name=group.name,
                total=sum_by_categories(rows, group.categories, TransactionType.INCOME),
            )
            for group in income_groups
        ],
        expense_groups=[
            GroupTotal(
                name=group.name,
                total=sum_by_categories(rows, group.categories, TransactionType.EXPENSE),
            )
            for group in expense_groups
        ],
        total_income=total_income,
        total_expense=total_expense,
        depreciation=depreciation,
        ebitda=ebitda,
        ebit=ebit,
        financing_total=financing_total,
        capex_total=capex_total,
        net_flow=total_income - total_expense + financing_total - capex_total,
    )


class CashFlowService:
    """Loads live transactions for a range and runs the report functions."""

    def __init__(self, table_storage: TableStorageInterface):
        self._tables = table_storage

    async def _load(self, date_from: Optional[date], date_to: Optional[date]) -> list[Transaction]:
        filters = [Filter.is_null("deleted_at")]
        if date_from is not None:
            filters.append(Filter.gte("date", date_from))
        if date_to is not None:
            filters.append(Filter.lte("date", date_to))
        rows = await self._tables.select("transactions", filters, order_by="date")
        return reportable(Transaction.from_row(row) for row in rows)

    async def series(
        self,
        granularity: Granularity,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[CashFlowBucket]:
        return aggregate(await self._load(date_from, date_to), granularity)

    async def statement(
        self,
        date_from: date,
        date_to: Optional[date] = None,
    ) -> CashFlowStatement:
        transactions = await self._load(date_from, date_to)
        logger.info(
            "cash_flow_statement",
            date_from=date_from.isoformat(),
            date_to=date_to.isoformat() if date_to else None,
            rows=len(transactions),
        )
        return build_statement(transactions, date_from, date_to)
