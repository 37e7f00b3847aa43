"""
Data Models Package

This package contains all Pydantic models used in Vela Ledger.
Rows read from the remote table store are converted to these
records at the storage boundary.
"""

from vela_ledger.models.transaction import (
    BankAccount,
    FileUpload,
    PaymentMethod,
    ReceiptType,
    Transaction,
    TransactionEntry,
    TransactionStatus,
    TransactionType,
)
from vela_ledger.models.recurring import (
    BillingState,
    RecurringClient,
    RecurringClientView,
)
from vela_ledger.models.cash_flow import (
    CashFlowBucket,
    CashFlowStatement,
    CategoryGroup,
    Granularity,
    GroupTotal,
)
from vela_ledger.models.preferences import UserPreferences
from vela_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "BankAccount",
    "FileUpload",
    "PaymentMethod",
    "ReceiptType",
    "Transaction",
    "TransactionEntry",
    "TransactionStatus",
    "TransactionType",
    # Recurring billing
    "BillingState",
    "RecurringClient",
    "RecurringClientView",
    # Reports
    "CashFlowBucket",
    "CashFlowStatement",
    "CategoryGroup",
    "Granularity",
    "GroupTotal",
    # Preferences
    "UserPreferences",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
