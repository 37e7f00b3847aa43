"""
Transaction Models for Vela Ledger

These models define the strict schemas for ledger rows exchanged with the
remote table store. Rows come back from storage as flat dicts of
JSON-compatible values; ``Transaction.from_row`` is the one place where
they become typed records.

DESIGN DECISION: Money is Decimal everywhere. Floats never enter a
Transaction, so the VAT identity below can be checked exactly.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

from vela_ledger.vat import VatBreakdown, compute_vat

VAT_TOLERANCE = Decimal("0.01")


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a ledger movement."""
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class PaymentMethod(str, Enum):
    """How the money moved."""
    BANK = "bank"
    CASH = "cash"


class TransactionStatus(str, Enum):
    """
    Transaction lifecycle status.

    Drafts can be hard-deleted. Posted and pending rows are only ever
    soft-deleted (deleted_at set).
    """
    DRAFT = "draft"
    POSTED = "posted"
    PENDING = "pending"


class ReceiptType(str, Enum):
    """Kind of supporting document attached to a transaction."""
    CFDI = "CFDI"
    INVOICE_PDF = "INVOICE_PDF"
    TICKET = "TICKET"


# =============================================================================
# BANK ACCOUNTS
# =============================================================================

class BankAccount(BaseModel):
    """A bank account that transactions can be booked against."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    institution: str = Field(..., min_length=1, max_length=100)

    @property
    def label(self) -> str:
        """Display label used in exports."""
        return f"{self.institution} – {self.name}"


# =============================================================================
# CORE TRANSACTION MODEL
# =============================================================================

class Transaction(BaseModel):
    """
    A single income, expense or transfer movement.

    Invariants (checked when the VAT triple is persisted):
    - subtotal + vat_amount == total, within one cent
    - vat_included  => total == amount
    - not included  => subtotal == amount

    Older rows may lack the VAT triple; ``vat_breakdown`` recomputes it
    from amount / vat_rate / vat_included in that case.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        extra="ignore",
    )

    # Identity
    id: UUID = Field(default_factory=uuid4)
    type: TransactionType
    transaction_date: date = Field(..., alias="date")
    method: PaymentMethod = PaymentMethod.BANK
    concept: str = Field(
        ...,
        min_length=1,
        max_length=140,
        description="Short description of the movement"
    )
    category: Optional[str] = Field(default=None, max_length=120)

    # Amounts
    amount: Decimal = Field(..., ge=0)
    vat_rate: Decimal = Field(default=Decimal("0"), ge=0, le=1)
    vat_included: bool = True
    vat_creditable: bool = True
    subtotal: Optional[Decimal] = None
    vat_amount: Optional[Decimal] = None
    total: Optional[Decimal] = None

    # Status tracking
    status: TransactionStatus = TransactionStatus.DRAFT
    reconciled: bool = False
    deleted_at: Optional[datetime] = None

    # Supporting documents
    receipt_url: Optional[str] = None
    receipt_type: Optional[ReceiptType] = None
    signature_url: Optional[str] = None
    uuid_cfdi: Optional[str] = Field(default=None, max_length=36)

    # Links
    recurring_client_id: Optional[UUID] = None
    bank_account_id: Optional[UUID] = None
    bank_account_label: Optional[str] = Field(
        default=None,
        exclude=True,
        description="Joined from bank_accounts for display; never stored"
    )
    created_by: Optional[str] = None

    notes: Optional[str] = Field(default=None, max_length=1000)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    @model_validator(mode='after')
    def validate_vat_identity(self) -> 'Transaction':
        """Check the persisted VAT triple is internally consistent."""
        if None in (self.subtotal, self.vat_amount, self.total):
            return self

        if abs(self.subtotal + self.vat_amount - self.total) > VAT_TOLERANCE:
            raise ValueError("Subtotal plus VAT must equal total")

        if self.vat_included:
            if abs(self.total - self.amount) > VAT_TOLERANCE:
                raise ValueError("Total must equal amount when VAT is included")
        elif abs(self.subtotal - self.amount) > VAT_TOLERANCE:
            raise ValueError("Subtotal must equal amount when VAT is not included")

        return self

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_editable(self) -> bool:
        """Reconciled or deleted rows are frozen."""
        return not self.reconciled and not self.is_deleted

    @property
    def vat_breakdown(self) -> VatBreakdown:
        """Persisted VAT triple, or a fresh computation if any part is missing."""
        if None in (self.subtotal, self.vat_amount, self.total):
            return compute_vat(self.amount, self.vat_rate, self.vat_included)
        return VatBreakdown(
            subtotal=self.subtotal,
            vat=self.vat_amount,
            total=self.total,
        )

    @property
    def effective_total(self) -> Decimal:
        return self.vat_breakdown.total

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> 'Transaction':
        """Build a Transaction from a storage row."""
        return cls.model_validate(row)

    def to_row(self) -> dict[str, Any]:
        """Flatten to a storage row (JSON-compatible values, ``date`` key)."""
        return self.model_dump(mode="json", by_alias=True)


class TransactionEntry(BaseModel):
    """
    What a user typed into the transaction form.

    Amount and VAT are recomputed server-side; this model only carries
    the raw choices. Semantic checks live in the validation package so
    that failures surface before any remote call.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    type: TransactionType = TransactionType.INCOME
    amount: Optional[str] = None
    concept: Optional[str] = None
    method: PaymentMethod = PaymentMethod.BANK
    vat_rate: Decimal = Field(default=Decimal("0.16"), ge=0, le=1)
    vat_included: bool = True
    category: Optional[str] = None
    receipt_type: Optional[ReceiptType] = None
    bank_account_id: Optional[UUID] = None
    notes: Optional[str] = None


class FileUpload(BaseModel):
    """A file handed over by the UI (form field or drag-and-drop)."""

    filename: str = Field(..., min_length=1)
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def extension(self) -> str:
        """Lower-case extension without the dot, '' if none."""
        if "." not in self.filename:
            return ""
        return self.filename.rsplit(".", 1)[-1].lower()

    @property
    def size_bytes(self) -> int:
        return len(self.content)
