"""Reporting package: cash-flow series and the statement by category."""

from vela_ledger.reports.cash_flow import (
    CashFlowService,
    aggregate,
    build_statement,
    floor_period,
    reportable,
    sum_by_categories,
)
from vela_ledger.reports.categories import (
    CAPEX_CATEGORIES,
    DEPRECIATION_CATEGORIES,
    EXPENSE_CATEGORIES,
    EXPENSE_GROUPS,
    FINANCING_CATEGORIES,
    INCOME_CATEGORIES,
    INCOME_GROUPS,
    TAX_CATEGORY,
    categories_for,
)

__all__ = [
    "CashFlowService",
    "aggregate",
    "build_statement",
    "floor_period",
    "reportable",
    "sum_by_categories",
    "CAPEX_CATEGORIES",
    "DEPRECIATION_CATEGORIES",
    "EXPENSE_CATEGORIES",
    "EXPENSE_GROUPS",
    "FINANCING_CATEGORIES",
    "INCOME_CATEGORIES",
    "INCOME_GROUPS",
    "TAX_CATEGORY",
    "categories_for",
]
