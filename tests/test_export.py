"""Tests for the accountant workbook and the statement export."""

import asyncio
from datetime import date
from decimal import Decimal
from io import BytesIO
from uuid import uuid4

import pytest
from openpyxl import load_workbook

from vela_ledger.export import (
    ALL_SHEET,
    BANK_SHEET,
    ExportService,
    build_workbook,
    export_filename,
    export_statement,
    export_transactions,
    statement_filename,
    XLSX_MIME,
)
from vela_ledger.export.workbook import ALL_COLUMNS, BANK_COLUMNS, CURRENCY_FORMAT, RECEIPT_LABEL
from vela_ledger.ledger import TransactionService
from vela_ledger.models import (
    AuditEventType,
    BankAccount,
    CashFlowStatement,
    PaymentMethod,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from vela_ledger.reports import CashFlowService


def tx(method: PaymentMethod, receipt_url: str = None, **extra) -> Transaction:
    return Transaction(
        type=TransactionType.EXPENSE,
        transaction_date=date(2024, 5, 2),
        method=method,
        concept="Hosting anual",
        category="Hosting, dominios, licencias de software",
        amount=Decimal("1160"),
        vat_rate=Decimal("0.16"),
        status=TransactionStatus.POSTED,
        receipt_url=receipt_url,
        **extra,
    )


def header(sheet) -> list[str]:
    return [cell.value for cell in sheet[1]]


class TestBuildWorkbook:
    """Tests for the two-sheet export."""

    def test_sheet_row_counts(self):
        rows = [tx(PaymentMethod.BANK), tx(PaymentMethod.BANK), tx(PaymentMethod.CASH)]
        workbook = build_workbook(rows)

        assert workbook.sheetnames == [BANK_SHEET, ALL_SHEET]
        assert workbook[BANK_SHEET].max_row - 1 == 2
        assert workbook[ALL_SHEET].max_row - 1 == 3

    def test_headers(self):
        workbook = build_workbook([])
        assert header(workbook[BANK_SHEET]) == [c.header for c in BANK_COLUMNS]
        assert header(workbook[ALL_SHEET]) == [c.header for c in ALL_COLUMNS]
        assert "Firma" in header(workbook[ALL_SHEET])
        assert "Firma" not in header(workbook[BANK_SHEET])

    def test_vat_recomputed_and_numeric(self):
        """A row without a stored VAT triple still exports subtotal and VAT."""
        sheet = build_workbook([tx(PaymentMethod.BANK)])[BANK_SHEET]
        columns = header(sheet)
        subtotal = sheet.cell(row=2, column=columns.index("Subtotal") + 1)
        vat = sheet.cell(row=2, column=columns.index("IVA") + 1)

        assert subtotal.value == pytest.approx(1000.0)
        assert vat.value == pytest.approx(160.0)
        assert subtotal.number_format == CURRENCY_FORMAT

    def test_receipt_hyperlink(self):
        url = "https://files.example/receipts/a.pdf?sig=1"
        sheet = build_workbook([tx(PaymentMethod.BANK, url), tx(PaymentMethod.BANK)])[BANK_SHEET]
        column = header(sheet).index("Comprobante") + 1

        linked = sheet.cell(row=2, column=column)
        assert linked.value == RECEIPT_LABEL
        assert linked.hyperlink.target == url
        assert sheet.cell(row=3, column=column).value is None

    def test_bank_label_from_accounts(self):
        account = BankAccount(id=uuid4(), name="Operativa", institution="Banregio")
        sheet = build_workbook(
            [tx(PaymentMethod.BANK, bank_account_id=account.id)],
            [account],
        )[BANK_SHEET]
        column = header(sheet).index("Cuenta bancaria") + 1
        assert sheet.cell(row=2, column=column).value == "Banregio – Operativa"

    def test_bytes_round_trip_through_openpyxl(self):
        filename, content = export_transactions([tx(PaymentMethod.CASH)], today=date(2024, 5, 31))
        assert filename == "export_2024-05-31.xlsx"
        reopened = load_workbook(BytesIO(content))
        assert reopened.sheetnames == [BANK_SHEET, ALL_SHEET]
        assert reopened[ALL_SHEET].freeze_panes == "A2"


class TestFilenames:
    def test_export_filename(self):
        assert export_filename(date(2024, 1, 9)) == "export_2024-01-09.xlsx"

    def test_statement_filename(self):
        assert statement_filename(date(2024, 1, 1)) == "flujo_por_rubros_20240101.xls"
        assert (
            statement_filename(date(2024, 1, 1), date(2024, 1, 31))
            == "flujo_por_rubros_20240101_a_20240131.xls"
        )


class TestStatementExport:
    def test_statement_workbook(self):
        statement = CashFlowStatement(
            date_from=date(2024, 1, 1),
            date_to=date(2024, 1, 31),
            ebitda=Decimal("45000"),
            ebit=Decimal("40000"),
        )
        filename, content = export_statement(statement)
        assert filename == "flujo_por_rubros_20240101_a_20240131.xls"
        # OOXML container under the legacy name
        assert content[:2] == b"PK"
        assert XLSX_MIME.endswith("spreadsheetml.sheet")

        sheet = load_workbook(BytesIO(content)).active
        values = {row[0]: row[1] for row in sheet.iter_rows(values_only=True) if row and len(row) > 1}
        assert values["EBITDA"] == pytest.approx(45000.0)
        assert values["EBIT"] == pytest.approx(40000.0)


class TestExportService:
    """Exports read live data and are audited."""

    def test_transactions_workbook_audited(self, tables, files, audit_logger, audit_storage, settings):
        transactions = TransactionService(tables, files, audit_logger, settings)
        service = ExportService(transactions, CashFlowService(tables), audit_logger)
        asyncio.run(tables.insert("transactions", tx(PaymentMethod.CASH).to_row()))

        filename, content = asyncio.run(service.transactions_workbook(today=date(2024, 6, 1)))

        assert filename == "export_2024-06-01.xlsx"
        assert load_workbook(BytesIO(content))[ALL_SHEET].max_row == 2
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.EXPORT_GENERATED
        assert event.details["row_count"] == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
