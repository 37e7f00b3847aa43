"""Export actions: fetch, build the workbook, audit the download."""

from datetime import date
from typing import Optional
from uuid import UUID

from vela_ledger.audit import AuditLogger, create_correlation_id
from vela_ledger.export.workbook import export_statement, export_transactions
from vela_ledger.ledger.transactions import TransactionService
from vela_ledger.reports.cash_flow import CashFlowService


class ExportService:
    """Builds downloadable workbooks from live ledger data."""

    def __init__(
        self,
        transactions: TransactionService,
        cash_flow: CashFlowService,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._transactions = transactions
        self._cash_flow = cash_flow
        self._audit = audit_logger or AuditLogger()

    async def transactions_workbook(
        self,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[str, bytes]:
        """``export_<date>.xlsx`` with the bank-only and the full sheet."""
        rows = await self._transactions.list_with_accounts()
        filename, content = export_transactions(rows, today=today)
        await self._audit.log_export_generated(
            filename=filename,
            row_count=len(rows),
            correlation_id=correlation_id or create_correlation_id(),
        )
        return filename, content

    async def statement_workbook(
        self,
        date_from: date,
        date_to: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[str, bytes]:
        statement = await self._cash_flow.statement(date_from, date_to)
        filename, content = export_statement(statement)
        await self._audit.log_export_generated(
            filename=filename,
            row_count=len(statement.income_groups) + len(statement.expense_groups),
            correlation_id=correlation_id or create_correlation_id(),
        )
        return filename, content
