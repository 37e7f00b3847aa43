"""Spreadsheet export package."""

from vela_ledger.export.service import ExportService
from vela_ledger.export.workbook import (
    ALL_SHEET,
    BANK_SHEET,
    build_statement_workbook,
    build_workbook,
    export_filename,
    export_statement,
    export_transactions,
    statement_filename,
    XLSX_MIME,
)

__all__ = [
    "ALL_SHEET",
    "BANK_SHEET",
    "ExportService",
    "build_statement_workbook",
    "build_workbook",
    "export_filename",
    "export_statement",
    "export_transactions",
    "statement_filename",
    "XLSX_MIME",
]
