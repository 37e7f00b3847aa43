"""
Recurring Billing Engine

Monthly reminders for clients on a fixed membership.

Each client moves through:
    AWAITING_CHARGE -> PENDING_CHARGE -> PAID -> PENDING_CHARGE (next month)

A pending charge is an ordinary transaction with status "pending",
type "income" and ``recurring_client_id`` set. Completing a cycle takes
three separate table writes:
1. settle   - post the pending charge (or insert a posted one)
2. advance  - move the client's due date one month ahead
3. seed     - insert the next pending charge

KNOWN GAP: the three writes are not atomic. If step 2 or 3 fails the
earlier steps stay done. The failure is audited with the step name
(PAYMENT_CYCLE_FAILED) and re-raised so the UI can report it; nothing
is rolled back or retried automatically.

At most one unresolved pending charge per client is kept by the callers
(the UI reloads the client list after every action), not by storage.
"""

from datetime import date
from decimal import Decimal
from typing import Awaitable, Optional, TypeVar, Union
from uuid import UUID

import structlog

from vela_ledger.audit import AuditLogger, create_correlation_id
from vela_ledger.billing.schedule import get_initial_due_date, get_next_due_date
from vela_ledger.config import get_settings
from vela_ledger.config.settings import AppSettings
from vela_ledger.ledger.uploads import ReceiptUploader
from vela_ledger.models.recurring import RecurringClient, RecurringClientView
from vela_ledger.models.transaction import (
    FileUpload,
    PaymentMethod,
    ReceiptType,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from vela_ledger.services.storage import (
    Filter,
    NotFoundError,
    ObjectStorageInterface,
    RemoteOperationError,
    StorageError,
    TableStorageInterface,
)
from vela_ledger.validation import ValidationError, validate_client_input, validate_upload

logger = structlog.get_logger(__name__)

CLIENTS_TABLE = "recurring_clients"
TRANSACTIONS_TABLE = "transactions"

T = TypeVar("T")


class RecurringBillingEngine:
    """
    Manages recurring clients and their monthly charges.

    Usage:
        engine = RecurringBillingEngine(tables, files)
        view = await engine.add_client(user_id, "Gym Norte", "1500", 15)
        next_due = await engine.mark_paid(view)
    """

    def __init__(
        self,
        table_storage: TableStorageInterface,
        object_storage: ObjectStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._tables = table_storage
        self._settings = settings or get_settings().app
        self._audit = audit_logger or AuditLogger()
        self._uploader = ReceiptUploader(
            object_storage,
            self._settings.signed_url_ttl_seconds,
            self._audit,
        )

    # =========================================================================
    # Client list
    # =========================================================================

    async def load_clients(self, user_id: str) -> list[RecurringClientView]:
        """Clients by billing day, each with its unresolved pending charge and last payment."""
        client_rows = await self._tables.select(
            CLIENTS_TABLE,
            [Filter.eq("user_id", user_id)],
            order_by="billing_day",
        )
        charge_rows = await self._tables.select(
            TRANSACTIONS_TABLE,
            [
                Filter.eq("created_by", user_id),
                Filter.in_("status", [TransactionStatus.PENDING, TransactionStatus.POSTED]),
                Filter.eq("type", TransactionType.INCOME),
                Filter.not_null("recurring_client_id"),
                Filter.is_null("deleted_at"),
            ],
        )

        pending_by_client: dict[UUID, Transaction] = {}
        paid_on: dict[UUID, date] = {}
        for row in charge_rows:
            charge = Transaction.from_row(row)
            client_id = charge.recurring_client_id
            if charge.status == TransactionStatus.PENDING:
                pending_by_client[client_id] = charge
            elif client_id not in paid_on or charge.transaction_date > paid_on[client_id]:
                paid_on[client_id] = charge.transaction_date

        views = []
        for row in client_rows:
            client = RecurringClient.from_row(row)
            views.append(RecurringClientView(
                client=client,
                pending_charge=pending_by_client.get(client.id),
                last_paid_on=paid_on.get(client.id),
            ))
        return views

    async def add_client(
        self,
        user_id: str,
        name: Optional[str],
        amount: Union[str, Decimal, int, float, None],
        billing_day: Union[str, int, None],
        notes: Optional[str] = None,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> RecurringClientView:
        """
        Register a client and seed its first pending charge.

        Raises:
            ValidationError: If name, amount or billing day is invalid
            RemoteOperationError: If either insert fails
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            clean_name, clean_amount, day = validate_client_input(name, amount, billing_day)
        except ValidationError as e:
            await self._audit.log_validation_failed(
                entity_type="recurring_client",
                field=e.field or "form",
                message=str(e),
                correlation_id=correlation_id,
            )
            raise

        client = RecurringClient(
            user_id=user_id,
            name=clean_name,
            amount=clean_amount,
            billing_day=day,
            due_date=get_initial_due_date(day, today or date.today()),
            notes=notes or None,
        )
        stored = await self._tables.insert(CLIENTS_TABLE, client.to_row())
        client = RecurringClient.from_row(stored)
        await self._audit.log_client_added(
            client_id=client.id,
            name=client.name,
            due_date=client.due_date,
            correlation_id=correlation_id,
        )

        charge = await self.create_pending_charge(client, client.due_date, correlation_id)
        return RecurringClientView(client=client, pending_charge=charge)

    async def delete_client(
        self,
        user_id: str,
        client_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """Remove a client. Its past transactions are kept."""
        deleted = await self._tables.delete(
            CLIENTS_TABLE,
            [Filter.eq("id", client_id), Filter.eq("user_id", user_id)],
        )
        if deleted:
            await self._audit.log_client_deleted(
                client_id=client_id,
                correlation_id=correlation_id or create_correlation_id(),
            )
        return deleted

    def due_soon(
        self,
        clients: list[RecurringClientView],
        today: Optional[date] = None,
        window_days: Optional[int] = None,
    ) -> list[RecurringClientView]:
        """Clients whose due date is between today and ``window_days`` ahead."""
        today = today or date.today()
        window = self._settings.due_soon_window_days if window_days is None else window_days
        return [c for c in clients if 0 <= c.days_until_due(today) <= window]

    # =========================================================================
    # Charges
    # =========================================================================

    def _membership_charge(
        self,
        client: RecurringClient,
        charge_date: date,
        status: TransactionStatus,
    ) -> Transaction:
        """A zero-VAT income row for the client's monthly amount."""
        return Transaction(
            type=TransactionType.INCOME,
            concept=f"Membresía {client.name}"[:140],
            category=self._settings.recurring_category,
            method=PaymentMethod.BANK,
            amount=client.amount,
            subtotal=client.amount,
            vat_rate=Decimal("0"),
            vat_amount=Decimal("0"),
            vat_included=True,
            total=client.amount,
            transaction_date=charge_date,
            status=status,
            created_by=client.user_id,
            notes=client.notes,
            recurring_client_id=client.id,
        )

    async def create_pending_charge(
        self,
        client: RecurringClient,
        due_date: date,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Insert the pending income charge for one due date.

        Does not check for an existing pending charge.
        """
        charge = self._membership_charge(client, due_date, TransactionStatus.PENDING)
        stored = await self._tables.insert(TRANSACTIONS_TABLE, charge.to_row())
        await self._audit.log_pending_charge_created(
            client_id=client.id,
            due_date=due_date,
            amount=client.amount,
            correlation_id=correlation_id or create_correlation_id(),
        )
        return Transaction.from_row(stored)

    async def _step(
        self,
        step: str,
        call: Awaitable[T],
        client_id: UUID,
        correlation_id: UUID,
    ) -> T:
        """Run one write of the payment cycle, auditing which step failed."""
        try:
            return await call
        except StorageError as e:
            await self._audit.log_payment_cycle_failed(
                client_id=client_id,
                step=step,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            if isinstance(e, RemoteOperationError) and not isinstance(e, NotFoundError):
                await self._audit.log_remote_operation_error(
                    operation=e.operation,
                    table=e.table,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

    async def complete_payment_cycle(
        self,
        view: RecurringClientView,
        receipt_url: Optional[str] = None,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> date:
        """
        Record this month's payment and schedule the next one.

        Args:
            view: Client with its current pending charge (if any)
            receipt_url: Signed URL of the invoice, if one was attached
            today: Date the payment is booked on

        Returns:
            The client's new due date
        """
        correlation_id = correlation_id or create_correlation_id()
        today = today or date.today()
        client = view.client
        pending = view.pending_charge

        # 1. settle
        if pending is not None:
            if receipt_url:
                receipt_type = ReceiptType.INVOICE_PDF.value
            else:
                receipt_type = pending.receipt_type.value if pending.receipt_type else None
            await self._step(
                "settle",
                self._tables.update(
                    TRANSACTIONS_TABLE,
                    {
                        "status": TransactionStatus.POSTED.value,
                        "date": today.isoformat(),
                        "receipt_url": receipt_url or pending.receipt_url,
                        "receipt_type": receipt_type,
                    },
                    [Filter.eq("id", pending.id)],
                ),
                client.id,
                correlation_id,
            )
        else:
            posted = self._membership_charge(client, today, TransactionStatus.POSTED)
            posted.receipt_url = receipt_url
            posted.receipt_type = ReceiptType.INVOICE_PDF if receipt_url else None
            await self._step(
                "settle",
                self._tables.insert(TRANSACTIONS_TABLE, posted.to_row()),
                client.id,
                correlation_id,
            )

        # 2. advance
        next_due_date = get_next_due_date(client.due_date, client.billing_day)
        await self._step(
            "advance",
            self._tables.update(
                CLIENTS_TABLE,
                {"due_date": next_due_date.isoformat()},
                [Filter.eq("id", client.id), Filter.eq("user_id", client.user_id)],
            ),
            client.id,
            correlation_id,
        )

        # 3. seed
        advanced = client.model_copy(update={"due_date": next_due_date})
        await self._step(
            "seed",
            self.create_pending_charge(advanced, next_due_date, correlation_id),
            client.id,
            correlation_id,
        )

        await self._audit.log_payment_cycle_completed(
            client_id=client.id,
            settled_existing=pending is not None,
            next_due_date=next_due_date,
            correlation_id=correlation_id,
        )
        logger.info(
            "payment_cycle_completed",
            client_id=str(client.id),
            next_due_date=next_due_date.isoformat(),
        )
        return next_due_date

    async def mark_paid(
        self,
        view: RecurringClientView,
        today: Optional[date] = None,
    ) -> date:
        """Complete the cycle reusing whatever receipt the pending charge carries."""
        receipt_url = view.pending_charge.receipt_url if view.pending_charge else None
        return await self.complete_payment_cycle(view, receipt_url, today)

    async def attach_invoice_and_complete(
        self,
        view: RecurringClientView,
        upload: Optional[FileUpload],
        today: Optional[date] = None,
    ) -> date:
        """
        Upload a dropped invoice, then complete the cycle with its signed URL.

        Raises:
            ValidationError: If no file was dropped
            UploadError: If the upload fails (nothing has been written then)
        """
        correlation_id = create_correlation_id()
        try:
            validate_upload(
                upload,
                self._settings.supported_formats_list,
                self._settings.max_upload_size_bytes,
            )
        except ValidationError as e:
            await self._audit.log_validation_failed(
                entity_type="recurring_client",
                field=e.field or "file",
                message=str(e),
                correlation_id=correlation_id,
            )
            raise

        receipt_url = await self._uploader.upload(
            upload,
            "receipts",
            correlation_id,
            name_prefix="membresia_",
        )
        return await self.complete_payment_cycle(view, receipt_url, today, correlation_id)
