"""
Transaction Service

Create, edit, list and delete ledger movements.

DESIGN DECISION: The service receives its storage by injection and
talks only to the abstract interfaces. Every action runs in the same
order:
1. Validate the form (ValidationError, nothing written yet)
2. Upload attached files (UploadError aborts before any row is written)
3. Write the row (RemoteOperationError carries the backend message)

There is no automatic retry at this level. A failed action is reported
to the caller and the app stays usable.

Lifecycle rules:
- Drafts are hard-deleted; posted and pending rows are soft-deleted
- Reconciled rows can be neither edited nor deleted
- Soft-deleted rows are invisible to reads
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Awaitable, Optional, TypeVar
from uuid import UUID

import structlog
from pydantic import BaseModel

from vela_ledger.audit import AuditLogger, create_correlation_id
from vela_ledger.config import get_settings
from vela_ledger.config.settings import AppSettings
from vela_ledger.ledger.cfdi import extract_cfdi_uuid
from vela_ledger.ledger.uploads import ReceiptUploader
from vela_ledger.models.transaction import (
    BankAccount,
    FileUpload,
    ReceiptType,
    Transaction,
    TransactionEntry,
    TransactionStatus,
    TransactionType,
)
from vela_ledger.services.storage import (
    Filter,
    NotFoundError,
    ObjectStorageInterface,
    RemoteOperationError,
    TableStorageInterface,
)
from vela_ledger.validation import ValidationError, validate_transaction_entry, validate_upload
from vela_ledger.vat import compute_vat

logger = structlog.get_logger(__name__)

TRANSACTIONS_TABLE = "transactions"
BANK_ACCOUNTS_TABLE = "bank_accounts"

T = TypeVar("T")


class TransactionLockedError(Exception):
    """The transaction is reconciled or deleted and cannot be changed."""

    def __init__(self, transaction_id: UUID, reason: str):
        self.transaction_id = transaction_id
        self.reason = reason
        super().__init__(f"Transaction {transaction_id} is {reason}")


class DashboardStats(BaseModel):
    """Headline numbers of the dashboard."""

    total_transactions: int = 0
    balance: Decimal = Decimal("0")
    this_month: Decimal = Decimal("0")


def _signed_total(transaction: Transaction) -> Decimal:
    if transaction.type == TransactionType.INCOME:
        return transaction.effective_total
    if transaction.type == TransactionType.EXPENSE:
        return -transaction.effective_total
    return Decimal("0")


class TransactionService:
    """
    Ledger operations over the ``transactions`` table.

    Usage:
        service = TransactionService(tables, files)
        tx = await service.create(entry, TransactionStatus.POSTED, user_id)
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

    async def _remote(self, call: Awaitable[T], correlation_id: Optional[UUID]) -> T:
        """Await a storage call, auditing the failure before re-raising it."""
        try:
            return await call
        except NotFoundError:
            raise
        except RemoteOperationError as e:
            await self._audit.log_remote_operation_error(
                operation=e.operation,
                table=e.table,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

    async def _validate(
        self,
        entry: TransactionEntry,
        status: TransactionStatus,
        receipt_file: Optional[FileUpload],
        xml_file: Optional[FileUpload],
        has_existing_receipt: bool,
        correlation_id: UUID,
    ) -> tuple[Decimal, Optional[str]]:
        """Run every check that needs no remote call. Returns (amount, cfdi_uuid)."""
        try:
            amount = validate_transaction_entry(
                entry,
                status,
                receipt_file=receipt_file,
                has_existing_receipt=has_existing_receipt,
                supported_formats=self._settings.supported_formats_list,
                max_upload_bytes=self._settings.max_upload_size_bytes,
            )
            cfdi_uuid = None
            if entry.receipt_type == ReceiptType.CFDI and xml_file is not None:
                validate_upload(xml_file, ["xml"], self._settings.max_upload_size_bytes)
                try:
                    cfdi_uuid = extract_cfdi_uuid(xml_file.content)
                except ValueError as e:
                    raise ValidationError(str(e), "xml_file")
        except ValidationError as e:
            await self._audit.log_validation_failed(
                entity_type="transaction",
                field=e.field or "form",
                message=str(e),
                correlation_id=correlation_id,
            )
            raise
        return amount, cfdi_uuid

    async def _upload_files(
        self,
        entry: TransactionEntry,
        receipt_file: Optional[FileUpload],
        xml_file: Optional[FileUpload],
        correlation_id: UUID,
    ) -> Optional[str]:
        """Upload the receipt (and CFDI XML). Returns the receipt URL, if any."""
        receipt_url = None
        if receipt_file is not None:
            receipt_url = await self._uploader.upload(receipt_file, "receipts", correlation_id)
        if entry.receipt_type == ReceiptType.CFDI and xml_file is not None:
            await self._uploader.upload(xml_file, "cfdi", correlation_id)
        return receipt_url

    async def create(
        self,
        entry: TransactionEntry,
        status: TransactionStatus,
        user_id: str,
        today: Optional[date] = None,
        receipt_file: Optional[FileUpload] = None,
        xml_file: Optional[FileUpload] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Save a new transaction dated today.

        Raises:
            ValidationError: If the form is incomplete (nothing is written)
            UploadError: If a file could not be stored (no row is written)
            RemoteOperationError: If the insert fails
        """
        correlation_id = correlation_id or create_correlation_id()
        amount, cfdi_uuid = await self._validate(
            entry, status, receipt_file, xml_file, False, correlation_id
        )

        receipt_url = await self._upload_files(entry, receipt_file, xml_file, correlation_id)
        breakdown = compute_vat(amount, entry.vat_rate, entry.vat_included)

        transaction = Transaction(
            type=entry.type,
            transaction_date=today or date.today(),
            method=entry.method,
            bank_account_id=entry.bank_account_id,
            amount=amount,
            concept=entry.concept,
            category=entry.category,
            vat_rate=entry.vat_rate,
            vat_included=entry.vat_included,
            vat_creditable=True,
            subtotal=breakdown.subtotal,
            vat_amount=breakdown.vat,
            total=breakdown.total,
            receipt_type=entry.receipt_type,
            receipt_url=receipt_url,
            uuid_cfdi=cfdi_uuid,
            notes=entry.notes or None,
            status=status,
            created_by=user_id,
        )

        stored = await self._remote(
            self._tables.insert(TRANSACTIONS_TABLE, transaction.to_row()),
            correlation_id,
        )
        saved = Transaction.from_row(stored)

        await self._audit.log_transaction_created(
            transaction_id=saved.id,
            transaction_type=saved.type.value,
            status=saved.status.value,
            total=breakdown.total,
            correlation_id=correlation_id,
        )
        return saved

    async def get(self, transaction_id: UUID) -> Transaction:
        """
        Read one live transaction.

        Raises:
            NotFoundError: If it does not exist or was soft-deleted
        """
        row = await self._remote(
            self._tables.select_one(
                TRANSACTIONS_TABLE,
                [Filter.eq("id", transaction_id), Filter.is_null("deleted_at")],
            ),
            None,
        )
        return Transaction.from_row(row)

    async def update(
        self,
        transaction_id: UUID,
        entry: TransactionEntry,
        status: TransactionStatus,
        receipt_file: Optional[FileUpload] = None,
        xml_file: Optional[FileUpload] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Edit a transaction. VAT is recomputed from the new amount and rate.

        Raises:
            TransactionLockedError: If the transaction is reconciled
        """
        correlation_id = correlation_id or create_correlation_id()
        current = await self.get(transaction_id)
        if current.reconciled:
            raise TransactionLockedError(transaction_id, "reconciled")

        amount, cfdi_uuid = await self._validate(
            entry,
            status,
            receipt_file,
            xml_file,
            current.receipt_url is not None,
            correlation_id,
        )
        new_receipt_url = await self._upload_files(entry, receipt_file, xml_file, correlation_id)
        breakdown = compute_vat(amount, entry.vat_rate, entry.vat_included)

        updated = Transaction.model_validate({
            **current.model_dump(),
            "type": entry.type,
            "method": entry.method,
            "bank_account_id": entry.bank_account_id or current.bank_account_id,
            "amount": amount,
            "concept": entry.concept,
            "category": entry.category,
            "vat_rate": entry.vat_rate,
            "vat_included": entry.vat_included,
            "subtotal": breakdown.subtotal,
            "vat_amount": breakdown.vat,
            "total": breakdown.total,
            "receipt_type": entry.receipt_type,
            "receipt_url": new_receipt_url or current.receipt_url,
            "uuid_cfdi": cfdi_uuid or current.uuid_cfdi,
            "notes": entry.notes or None,
            "status": status,
            "updated_at": datetime.utcnow(),
        })

        values = updated.to_row()
        for key in ("id", "created_at", "created_by"):
            values.pop(key, None)

        await self._remote(
            self._tables.update(
                TRANSACTIONS_TABLE,
                values,
                [Filter.eq("id", transaction_id)],
            ),
            correlation_id,
        )
        await self._audit.log_transaction_updated(
            transaction_id=transaction_id,
            status=status.value,
            correlation_id=correlation_id,
        )
        return updated

    async def delete(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete a transaction.

        Drafts are removed; anything else gets ``deleted_at`` set.

        Returns:
            True if the row was soft-deleted, False if it was removed

        Raises:
            TransactionLockedError: If the transaction is reconciled or already deleted
        """
        if transaction.reconciled:
            raise TransactionLockedError(transaction.id, "reconciled")
        if transaction.is_deleted:
            raise TransactionLockedError(transaction.id, "deleted")

        correlation_id = correlation_id or create_correlation_id()
        key = [Filter.eq("id", transaction.id)]
        soft = transaction.status != TransactionStatus.DRAFT

        if soft:
            await self._remote(
                self._tables.update(
                    TRANSACTIONS_TABLE,
                    {"deleted_at": datetime.utcnow().isoformat()},
                    key,
                ),
                correlation_id,
            )
        else:
            await self._remote(self._tables.delete(TRANSACTIONS_TABLE, key), correlation_id)

        await self._audit.log_transaction_deleted(
            transaction_id=transaction.id,
            soft=soft,
            correlation_id=correlation_id,
        )
        return soft

    async def dashboard_stats(self, today: Optional[date] = None) -> DashboardStats:
        """Count of live rows, all-time balance and this month's balance."""
        today = today or date.today()
        month_start = today.replace(day=1)

        transactions = await self.list()
        balance = Decimal("0")
        this_month = Decimal("0")
        for transaction in transactions:
            signed = _signed_total(transaction)
            balance += signed
            if transaction.transaction_date >= month_start:
                this_month += signed

        return DashboardStats(
            total_transactions=len(transactions),
            balance=balance,
            this_month=this_month,
        )

    async def bank_accounts(self) -> list[BankAccount]:
        rows = await self._remote(
            self._tables.select(BANK_ACCOUNTS_TABLE, order_by="name"),
            None,
        )
        return [BankAccount.model_validate(row) for row in rows]

    async def list_with_accounts(self) -> list[Transaction]:
        """Live transactions with ``bank_account_label`` filled in, for export."""
        transactions = await self.list()
        labels = {account.id: account.label for account in await self.bank_accounts()}
        return [
            t.model_copy(update={"bank_account_label": labels.get(t.bank_account_id)})
            if t.bank_account_id in labels
            else t
            for t in transactions
        ]

    async def list(
        self,
        type_filter: Optional[TransactionType] = None,
    ) -> list[Transaction]:
        """Live transactions, newest date first, optionally of one type."""
        filters = [Filter.is_null("deleted_at")]
        if type_filter is not None:
            filters.append(Filter.eq("type", type_filter))

        rows = await self._remote(
            self._tables.select(
                TRANSACTIONS_TABLE,
                filters,
                order_by="date",
                descending=True,
            ),
            None,
        )
        return [Transaction.from_row(row) for row in rows]
