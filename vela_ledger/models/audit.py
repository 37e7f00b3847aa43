"""
Audit Models for Vela Ledger

Every user-triggered mutation of the ledger is logged for audit purposes.
This provides:
1. Traceability of who changed what and when
2. Debugging information when a multi-step action fails half-way
3. A way to spot billing cycles that were left inconsistent

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTION_SOFT_DELETED = "transaction_soft_deleted"

    # Files
    RECEIPT_UPLOADED = "receipt_uploaded"
    UPLOAD_FAILED = "upload_failed"

    # Recurring billing
    CLIENT_ADDED = "client_added"
    CLIENT_DELETED = "client_deleted"
    PENDING_CHARGE_CREATED = "pending_charge_created"
    PAYMENT_CYCLE_COMPLETED = "payment_cycle_completed"
    PAYMENT_CYCLE_FAILED = "payment_cycle_failed"

    # Reports
    EXPORT_GENERATED = "export_generated"

    # Preferences
    THEME_SAVED = "theme_saved"

    # Errors
    VALIDATION_FAILED = "validation_failed"
    REMOTE_OPERATION_ERROR = "remote_operation_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'recurring_client')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - ties together the steps of one user action
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_created(tx_id, "expense", "1160.00", cid)
        event = AuditEventBuilder.payment_cycle_completed(client_id, next_due, cid)
    """

    @staticmethod
    def transaction_created(
        transaction_id: UUID,
        transaction_type: str,
        status: str,
        total: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"{transaction_type.capitalize()} saved as {status}: ${total}",
            details={
                "type": transaction_type,
                "status": status,
                "total": total,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        transaction_id: UUID,
        status: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction updated ({status})",
            details={"status": status},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: UUID,
        soft: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.TRANSACTION_SOFT_DELETED
                if soft
                else AuditEventType.TRANSACTION_DELETED
            ),
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction soft-deleted" if soft else "Draft transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def receipt_uploaded(
        path: str,
        size_bytes: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOADED,
            entity_type="file",
            correlation_id=correlation_id,
            description=f"File uploaded: {path}",
            details={
                "path": path,
                "size_bytes": size_bytes,
            },
        )

    @staticmethod
    def upload_failed(
        filename: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPLOAD_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="file",
            correlation_id=correlation_id,
            description=f"Upload failed: {filename}",
            error_message=error_message,
            details={"filename": filename},
        )

    @staticmethod
    def client_added(
        client_id: UUID,
        name: str,
        due_date: date,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLIENT_ADDED,
            entity_type="recurring_client",
            entity_id=client_id,
            correlation_id=correlation_id,
            description=f"Recurring client added: {name}",
            details={
                "name": name,
                "due_date": due_date.isoformat(),
            },
            is_user_action=True,
        )

    @staticmethod
    def client_deleted(
        client_id: UUID,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLIENT_DELETED,
            entity_type="recurring_client",
            entity_id=client_id,
            correlation_id=correlation_id,
            description="Recurring client deleted",
            is_user_action=True,
        )

    @staticmethod
    def pending_charge_created(
        client_id: UUID,
        due_date: date,
        amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PENDING_CHARGE_CREATED,
            entity_type="recurring_client",
            entity_id=client_id,
            correlation_id=correlation_id,
            description=f"Pending charge created for {due_date.isoformat()}",
            details={
                "due_date": due_date.isoformat(),
                "amount": amount,
            },
        )

    @staticmethod
    def payment_cycle_completed(
        client_id: UUID,
        settled_existing: bool,
        next_due_date: date,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_CYCLE_COMPLETED,
            entity_type="recurring_client",
            entity_id=client_id,
            correlation_id=correlation_id,
            description=f"Payment registered, next charge {next_due_date.isoformat()}",
            details={
                "settled_existing_charge": settled_existing,
                "next_due_date": next_due_date.isoformat(),
            },
            is_user_action=True,
        )

    @staticmethod
    def payment_cycle_failed(
        client_id: UUID,
        step: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_CYCLE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="recurring_client",
            entity_id=client_id,
            correlation_id=correlation_id,
            description=f"Payment cycle failed at step: {step}",
            error_message=error_message,
            details={"step": step},
        )

    @staticmethod
    def export_generated(
        filename: str,
        row_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_GENERATED,
            entity_type="export",
            correlation_id=correlation_id,
            description=f"Export generated: {filename}",
            details={
                "filename": filename,
                "row_count": row_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def theme_saved(
        user_id: str,
        theme: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.THEME_SAVED,
            entity_type="user_preferences",
            correlation_id=correlation_id,
            description=f"Theme saved: {theme}",
            details={
                "user_id": user_id,
                "theme": theme,
            },
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        field: str,
        message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"Validation failed on {field}",
            error_message=message,
            details={"field": field},
        )

    @staticmethod
    def remote_operation_error(
        operation: str,
        table: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_OPERATION_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Remote {operation} on {table} failed",
            error_message=error_message,
            details={
                "operation": operation,
                "table": table,
            },
            correlation_id=correlation_id,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
