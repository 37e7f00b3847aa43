"""Ledger package: transaction entry, receipts and currency text helpers."""

from vela_ledger.ledger.cfdi import extract_cfdi_uuid
from vela_ledger.ledger.currency import (
    format_amount_from_number,
    format_currency_display,
    format_money,
    normalize_currency_value,
)
from vela_ledger.ledger.transactions import (
    DashboardStats,
    TransactionLockedError,
    TransactionService,
)
from vela_ledger.ledger.uploads import ReceiptUploader, build_upload_path

__all__ = [
    "DashboardStats",
    "ReceiptUploader",
    "TransactionLockedError",
    "TransactionService",
    "build_upload_path",
    "extract_cfdi_uuid",
    "format_amount_from_number",
    "format_currency_display",
    "format_money",
    "normalize_currency_value",
]
