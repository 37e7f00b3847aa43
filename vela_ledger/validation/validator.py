"""
Input Validation

DESIGN DECISION: Every user-entered form is validated before any remote
call is made. A failed check raises ValidationError naming the field,
and nothing has been written or uploaded at that point.

Two kinds of input reach the ledger:
- Transaction entries (new / edited income and expense movements)
- Recurring client entries (name, monthly amount, billing day)

IMPORTANT: Validation NEVER silently fixes issues. Amounts are parsed,
not coerced: "abc" is an error, not zero.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from vela_ledger.models.transaction import (
    FileUpload,
    PaymentMethod,
    TransactionEntry,
    TransactionStatus,
    TransactionType,
)
from vela_ledger.vat import to_decimal


class ValidationError(ValueError):
    """A required field is missing or holds an invalid value."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


def parse_amount(value: Union[str, int, float, Decimal, None], field: str = "amount") -> Decimal:
    """
    Parse a user-entered amount.

    Thousands separators are accepted ("1,160.00").

    Raises:
        ValidationError: If missing, non-numeric, non-finite or not > 0
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("Amount is required", field)

    if isinstance(value, str):
        value = value.replace(",", "")
    try:
        amount = to_decimal(value)
    except InvalidOperation:
        raise ValidationError(f"Amount is not a number: {value!r}", field)

    if not amount.is_finite():
        raise ValidationError(f"Amount is not a number: {value!r}", field)
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero", field)
    return amount


def parse_billing_day(value: Union[str, int, None]) -> int:
    """Parse a billing day and check it lies in [1, 31]."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("Billing day is required", "billing_day")
    try:
        day = int(str(value).strip())
    except ValueError:
        raise ValidationError(f"Billing day is not a number: {value!r}", "billing_day")
    if not 1 <= day <= 31:
        raise ValidationError("Billing day must be between 1 and 31", "billing_day")
    return day


def requires_receipt(entry: TransactionEntry, status: TransactionStatus) -> bool:
    """Posted bank expenses must carry a receipt."""
    return (
        status == TransactionStatus.POSTED
        and entry.method == PaymentMethod.BANK
        and entry.type == TransactionType.EXPENSE
    )


def validate_transaction_entry(
    entry: TransactionEntry,
    status: TransactionStatus,
    receipt_file: Optional[FileUpload] = None,
    has_existing_receipt: bool = False,
    supported_formats: Optional[list[str]] = None,
    max_upload_bytes: Optional[int] = None,
) -> Decimal:
    """
    Check a transaction form before saving it.

    Returns:
        The parsed amount

    Raises:
        ValidationError: On the first failed check
    """
    if not entry.concept:
        raise ValidationError("Concept is required", "concept")
    amount = parse_amount(entry.amount)
    if not entry.category:
        raise ValidationError("Category is required", "category")

    has_receipt = receipt_file is not None or has_existing_receipt
    if requires_receipt(entry, status) and (entry.receipt_type is None or not has_receipt):
        raise ValidationError(
            "Posted bank expenses require an attached receipt",
            "receipt",
        )

    if receipt_file is not None:
        validate_upload(receipt_file, supported_formats, max_upload_bytes)

    return amount


def validate_upload(
    upload: Optional[FileUpload],
    supported_formats: Optional[list[str]] = None,
    max_upload_bytes: Optional[int] = None,
) -> FileUpload:
    """Check a file is present, non-empty, of an accepted type and not too large."""
    if upload is None:
        raise ValidationError("A file is required", "file")
    if upload.size_bytes == 0:
        raise ValidationError(f"File is empty: {upload.filename}", "file")
    if supported_formats and upload.extension not in supported_formats:
        raise ValidationError(
            f"Unsupported file type '.{upload.extension}'. "
            f"Accepted: {', '.join(supported_formats)}",
            "file",
        )
    if max_upload_bytes and upload.size_bytes > max_upload_bytes:
        raise ValidationError(
            f"File too large ({upload.size_bytes} bytes, max {max_upload_bytes})",
            "file",
        )
    return upload


def validate_client_input(
    name: Optional[str],
    amount: Union[str, int, float, Decimal, None],
    billing_day: Union[str, int, None],
) -> tuple[str, Decimal, int]:
    """
    Check the recurring client form.

    Returns:
        (name, amount, billing_day) cleaned and typed
    """
    clean_name = (name or "").strip()
    if not clean_name:
        raise ValidationError("Client name is required", "name")
    return clean_name, parse_amount(amount), parse_billing_day(billing_day)
