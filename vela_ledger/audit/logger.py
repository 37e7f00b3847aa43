"""
Audit Logger

DESIGN DECISION: Every ledger mutation, upload, payment cycle and
export goes through here, once to the structlog JSON log and once to
the audit worksheet. A billing cycle that stops after "settle" can be
reconstructed from the events sharing its correlation id.

A failed audit write is logged and swallowed; it never aborts the
action being audited.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from vela_ledger.models.audit import AuditEvent, AuditEventBuilder
from vela_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and accountant visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_created(
        self,
        transaction_id: UUID,
        transaction_type: str,
        status: str,
        total: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_created(
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            status=status,
            total=str(total),
            correlation_id=correlation_id,
        ))

    async def log_transaction_updated(
        self,
        transaction_id: UUID,
        status: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            status=status,
            correlation_id=correlation_id,
        ))

    async def log_transaction_deleted(
        self,
        transaction_id: UUID,
        soft: bool,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            soft=soft,
            correlation_id=correlation_id,
        ))

    async def log_receipt_uploaded(
        self,
        path: str,
        size_bytes: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.receipt_uploaded(
            path=path,
            size_bytes=size_bytes,
            correlation_id=correlation_id,
        ))

    async def log_upload_failed(
        self,
        filename: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.upload_failed(
            filename=filename,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_client_added(
        self,
        client_id: UUID,
        name: str,
        due_date: date,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.client_added(
            client_id=client_id,
            name=name,
            due_date=due_date,
            correlation_id=correlation_id,
        ))

    async def log_client_deleted(
        self,
        client_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.client_deleted(
            client_id=client_id,
            correlation_id=correlation_id,
        ))

    async def log_pending_charge_created(
        self,
        client_id: UUID,
        due_date: date,
        amount: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.pending_charge_created(
            client_id=client_id,
            due_date=due_date,
            amount=str(amount),
            correlation_id=correlation_id,
        ))

    async def log_payment_cycle_completed(
        self,
        client_id: UUID,
        settled_existing: bool,
        next_due_date: date,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.payment_cycle_completed(
            client_id=client_id,
            settled_existing=settled_existing,
            next_due_date=next_due_date,
            correlation_id=correlation_id,
        ))

    async def log_payment_cycle_failed(
        self,
        client_id: UUID,
        step: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a billing cycle that stopped part-way; completed steps are not undone."""
        await self.log(AuditEventBuilder.payment_cycle_failed(
            client_id=client_id,
            step=step,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_export_generated(
        self,
        filename: str,
        row_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.export_generated(
            filename=filename,
            row_count=row_count,
            correlation_id=correlation_id,
        ))

    async def log_theme_saved(
        self,
        user_id: str,
        theme: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.theme_saved(
            user_id=user_id,
            theme=theme,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        entity_type: str,
        field: str,
        message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            entity_type=entity_type,
            field=field,
            message=message,
            correlation_id=correlation_id,
        ))

    async def log_remote_operation_error(
        self,
        operation: str,
        table: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.remote_operation_error(
            operation=operation,
            table=table,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., marking a client paid).
    Pass it through all subsequent operations.
    """
    return uuid4()
