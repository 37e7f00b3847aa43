"""Validation package."""

from vela_ledger.validation.validator import (
    ValidationError,
    parse_amount,
    parse_billing_day,
    requires_receipt,
    validate_client_input,
    validate_transaction_entry,
    validate_upload,
)

__all__ = [
    "ValidationError",
    "parse_amount",
    "parse_billing_day",
    "requires_receipt",
    "validate_client_input",
    "validate_transaction_entry",
    "validate_upload",
]
