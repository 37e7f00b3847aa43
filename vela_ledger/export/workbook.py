"""
Spreadsheet Export Builder

Produces the accountant's workbook with two sheets:

- Banregio_Contador: bank movements only, with VAT breakdown and a
  link to each receipt
- Vela_Todos: every movement, adding method, status and a link to the
  signature

Currency cells are numeric (``#,##0.00``) so the accountant can sum
them. Link cells show a label and point at the signed URL. Rows whose
VAT triple was never stored get it recomputed with compute_vat.

The category statement is exported the same way, one sheet.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from io import BytesIO
from typing import Callable, Iterable, Optional, Sequence
from uuid import UUID

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from vela_ledger.models.cash_flow import CashFlowStatement
from vela_ledger.models.transaction import BankAccount, PaymentMethod, Transaction

BANK_SHEET = "Banregio_Contador"
ALL_SHEET = "Vela_Todos"
STATEMENT_SHEET = "Flujo_por_rubros"

# Both downloads are OOXML, including the statement kept under its .xls name
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

CURRENCY_FORMAT = "#,##0.00"
DATE_FORMAT = "yyyy-mm-dd"
RECEIPT_LABEL = "Ver comprobante"
SIGNATURE_LABEL = "Ver firma"

TYPE_LABELS = {"income": "Ingreso", "expense": "Egreso", "transfer": "Transferencia"}
METHOD_LABELS = {"bank": "Banco", "cash": "Efectivo"}
STATUS_LABELS = {"draft": "Borrador", "posted": "Publicado", "pending": "Pendiente"}


@dataclass(frozen=True)
class Link:
    """A hyperlink cell: what it shows and where it points."""
    label: str
    url: Optional[str]


@dataclass(frozen=True)
class Column:
    header: str
    width: int
    value: Callable[["ExportRow"], object]
    currency: bool = False


@dataclass(frozen=True)
class ExportRow:
    """A transaction with its VAT breakdown and bank label resolved."""
    transaction: Transaction
    bank_label: str
    subtotal: Decimal
    vat: Decimal
    total: Decimal


def _enum_label(value, labels: dict[str, str]) -> str:
    return labels.get(value.value, value.value) if value is not None else ""


BANK_COLUMNS = [
    Column("Fecha", 12, lambda r: r.transaction.transaction_date),
    Column("Tipo", 12, lambda r: _enum_label(r.transaction.type, TYPE_LABELS)),
    Column("Cuenta bancaria", 28, lambda r: r.bank_label),
    Column("Concepto", 40, lambda r: r.transaction.concept),
    Column("Categoría", 32, lambda r: r.transaction.category or ""),
    Column("Subtotal", 14, lambda r: r.subtotal, currency=True),
    Column("IVA", 12, lambda r: r.vat, currency=True),
    Column("Total", 14, lambda r: r.total, currency=True),
    Column("UUID CFDI", 38, lambda r: r.transaction.uuid_cfdi or ""),
    Column("Tipo comprobante", 18, lambda r: r.transaction.receipt_type.value if r.transaction.receipt_type else ""),
    Column("Comprobante", 18, lambda r: Link(RECEIPT_LABEL, r.transaction.receipt_url)),
    Column("Notas", 40, lambda r: r.transaction.notes or ""),
]

ALL_COLUMNS = [
    Column("Fecha", 12, lambda r: r.transaction.transaction_date),
    Column("Tipo", 12, lambda r: _enum_label(r.transaction.type, TYPE_LABELS)),
    Column("Método", 10, lambda r: _enum_label(r.transaction.method, METHOD_LABELS)),
    Column("Estado", 12, lambda r: _enum_label(r.transaction.status, STATUS_LABELS)),
    Column("Cuenta bancaria", 28, lambda r: r.bank_label),
    Column("Concepto", 40, lambda r: r.transaction.concept),
    Column("Categoría", 32, lambda r: r.transaction.category or ""),
    Column("Subtotal", 14, lambda r: r.subtotal, currency=True),
    Column("IVA", 12, lambda r: r.vat, currency=True),
    Column("Total", 14, lambda r: r.total, currency=True),
    Column("UUID CFDI", 38, lambda r: r.transaction.uuid_cfdi or ""),
    Column("Tipo comprobante", 18, lambda r: r.transaction.receipt_type.value if r.transaction.receipt_type else ""),
    Column("Comprobante", 18, lambda r: Link(RECEIPT_LABEL, r.transaction.receipt_url)),
    Column("Firma", 14, lambda r: Link(SIGNATURE_LABEL, r.transaction.signature_url)),
    Column("Notas", 40, lambda r: r.transaction.notes or ""),
]


def to_export_row(
    transaction: Transaction,
    labels: Optional[dict[UUID, str]] = None,
) -> ExportRow:
    breakdown = transaction.vat_breakdown
    bank_label = transaction.bank_account_label
    if bank_label is None and labels and transaction.bank_account_id is not None:
        bank_label = labels.get(transaction.bank_account_id)
    return ExportRow(
        transaction=transaction,
        bank_label=bank_label or "",
        subtotal=breakdown.subtotal,
        vat=breakdown.vat,
        total=breakdown.total,
    )


def _write_sheet(sheet: Worksheet, columns: Sequence[Column], rows: Sequence[ExportRow]) -> None:
    bold = Font(bold=True)
    for col_idx, column in enumerate(columns, start=1):
        cell = sheet.cell(row=1, column=col_idx, value=column.header)
        cell.font = bold
        sheet.column_dimensions[get_column_letter(col_idx)].width = column.width

    for row_idx, row in enumerate(rows, start=2):
        for col_idx, column in enumerate(columns, start=1):
            value = column.value(row)
            cell = sheet.cell(row=row_idx, column=col_idx)
            if isinstance(value, Link):
                if value.url:
                    cell.value = value.label
                    cell.hyperlink = value.url
                    cell.style = "Hyperlink"
                continue
            if column.currency:
                cell.value = float(value)
                cell.number_format = CURRENCY_FORMAT
            elif isinstance(value, date):
                cell.value = value
                cell.number_format = DATE_FORMAT
            else:
                cell.value = value

    sheet.freeze_panes = "A2"
    last = f"{get_column_letter(len(columns))}{max(len(rows) + 1, 1)}"
    sheet.auto_filter.ref = f"A1:{last}"


def build_workbook(
    transactions: Iterable[Transaction],
    bank_accounts: Optional[Sequence[BankAccount]] = None,
) -> Workbook:
    """Both export sheets, bank-only first."""
    labels = {account.id: account.label for account in bank_accounts or []}
    rows = [to_export_row(t, labels) for t in transactions]

    workbook = Workbook()
    bank_sheet = workbook.active
    bank_sheet.title = BANK_SHEET
    _write_sheet(
        bank_sheet,
        BANK_COLUMNS,
        [r for r in rows if r.transaction.method == PaymentMethod.BANK],
    )
    _write_sheet(workbook.create_sheet(ALL_SHEET), ALL_COLUMNS, rows)
    return workbook


def workbook_bytes(workbook: Workbook) -> bytes:
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def export_filename(today: Optional[date] = None) -> str:
    return f"export_{(today or date.today()).isoformat()}.xlsx"


def export_transactions(
    transactions: Iterable[Transaction],
    bank_accounts: Optional[Sequence[BankAccount]] = None,
    today: Optional[date] = None,
) -> tuple[str, bytes]:
    """Build the workbook and return (filename, file content) for download."""
    return export_filename(today), workbook_bytes(build_workbook(transactions, bank_accounts))


# =============================================================================
# CATEGORY STATEMENT
# =============================================================================

def statement_filename(date_from: date, date_to: Optional[date] = None) -> str:
    """``flujo_por_rubros_20240101.xls`` or ``flujo_por_rubros_20240101_a_20240131.xls``"""
    name = f"flujo_por_rubros_{date_from.strftime('%Y%m%d')}"
    if date_to is not None:
        name += f"_a_{date_to.strftime('%Y%m%d')}"
    return f"{name}.xls"


def build_statement_workbook(statement: CashFlowStatement) -> Workbook:
    """One sheet: income groups, expense groups, then the result lines."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = STATEMENT_SHEET
    sheet.column_dimensions["A"].width = 48
    sheet.column_dimensions["B"].width = 18

    bold = Font(bold=True)

    def heading(text: str) -> None:
        sheet.append([text])
        sheet.cell(row=sheet.max_row, column=1).font = bold

    def amount_line(label: str, value: Decimal, strong: bool = False) -> None:
        sheet.append([label, float(value)])
        amount_cell = sheet.cell(row=sheet.max_row, column=2)
        amount_cell.number_format = CURRENCY_FORMAT
        if strong:
            sheet.cell(row=sheet.max_row, column=1).font = bold
            amount_cell.font = bold

    period = statement.date_from.isoformat()
    if statement.date_to is not None:
        period += f" a {statement.date_to.isoformat()}"
    heading(f"Flujo de efectivo por rubros ({period})")
    sheet.append([])

    heading("I. INGRESOS OPERATIVOS")
    for group in statement.income_groups:
        amount_line(group.name, group.total)
    amount_line("Total ingresos", statement.total_income, strong=True)
    sheet.append([])

    heading("II. COSTOS Y GASTOS OPERATIVOS")
    for group in statement.expense_groups:
        amount_line(group.name, group.total)
    amount_line("Depreciaciones y amortizaciones", statement.depreciation)
    amount_line("Total egresos", statement.total_expense, strong=True)
    sheet.append([])

    heading("III. RESULTADO OPERATIVO")
    amount_line("EBITDA", statement.ebitda, strong=True)
    amount_line("EBIT", statement.ebit, strong=True)
    sheet.append([])

    heading("IV. FINANCIAMIENTO E INVERSIÓN")
    amount_line("Financiamiento neto", statement.financing_total)
    amount_line("Inversiones (CAPEX)", statement.capex_total)
    amount_line("Flujo neto", statement.net_flow, strong=True)

    return workbook


def export_statement(statement: CashFlowStatement) -> tuple[str, bytes]:
    return (
        statement_filename(statement.date_from, statement.date_to),
        workbook_bytes(build_statement_workbook(statement)),
    )
