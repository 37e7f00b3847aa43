"""
Abstract Storage Interface

DESIGN DECISION: Business logic never talks to a backend SDK directly.
It receives these interfaces by injection, which allows us to:
1. Swap Google Sheets for a hosted database later
2. Use in-memory storage for testing
3. Keep billing, ledger and export code decoupled from storage

The table interface mirrors what a hosted row store offers:
select / insert / update / delete by table name, filtered by simple
predicates. Rows are flat dicts of JSON-compatible values.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, Sequence
from uuid import UUID

from vela_ledger.models.audit import AuditEvent

Row = dict[str, Any]


def normalize_value(value: Any) -> Any:
    """
    Bring a Python value into the form rows are stored in.

    Filters compare normalized values, so a UUID matches its string form
    and a date matches its ISO string.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, str):
        return value
    return str(value)


def sort_key(value: Any) -> tuple:
    """Order numerically when a value looks like a number, else as text. None sorts last."""
    if value is None or value == "":
        return (2, "")
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        return (1, str(value))
    if not number.is_finite():
        return (1, str(value))
    return (0, number)


@dataclass(frozen=True)
class Filter:
    """
    A single row predicate.

    Range operators (gte/lte) compare normalized strings, which is
    correct for ISO dates and timestamps. Use them on date columns.
    """
    column: str
    op: str
    value: Any = None

    @classmethod
    def eq(cls, column: str, value: Any) -> "Filter":
        return cls(column, "eq", value)

    @classmethod
    def is_null(cls, column: str) -> "Filter":
        return cls(column, "is_null")

    @classmethod
    def not_null(cls, column: str) -> "Filter":
        return cls(column, "not_null")

    @classmethod
    def gte(cls, column: str, value: Any) -> "Filter":
        return cls(column, "gte", value)

    @classmethod
    def lte(cls, column: str, value: Any) -> "Filter":
        return cls(column, "lte", value)

    @classmethod
    def in_(cls, column: str, values: Sequence[Any]) -> "Filter":
        return cls(column, "in", tuple(values))

    def matches(self, row: Row) -> bool:
        actual = normalize_value(row.get(self.column))
        if actual == "":
            actual = None

        if self.op == "is_null":
            return actual is None
        if self.op == "not_null":
            return actual is not None
        if self.op == "in":
            return actual in {normalize_value(v) for v in self.value}

        expected = normalize_value(self.value)
        if self.op == "eq":
            return actual == expected
        if actual is None:
            return False
        if self.op == "gte":
            return actual >= expected
        if self.op == "lte":
            return actual <= expected

        raise ValueError(f"Unknown filter operator: {self.op}")


def apply_query(
    rows: list[Row],
    filters: Sequence[Filter] = (),
    order_by: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
) -> list[Row]:
    """Filter, order and cut a list of rows the way a remote store would."""
    result = [row for row in rows if all(f.matches(row) for f in filters)]
    if order_by:
        result.sort(key=lambda r: sort_key(r.get(order_by)), reverse=descending)
    if limit is not None:
        result = result[:limit]
    return result


class TableStorageInterface(ABC):
    """
    Abstract interface for table storage operations.

    Every method raises RemoteOperationError (or a subclass) when the
    backend call fails; the backend's message is preserved.
    """

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Row]:
        """
        Read rows matching every filter.

        Args:
            table: Table name (e.g. "transactions")
            filters: Predicates combined with AND
            order_by: Column to order by
            descending: Reverse the ordering
            limit: Maximum number of rows

        Returns:
            Matching rows
        """
        pass

    @abstractmethod
    async def insert(self, table: str, row: Row) -> Row:
        """
        Insert a row and return it as stored.

        Raises:
            RemoteOperationError: If the insert fails
        """
        pass

    @abstractmethod
    async def update(
        self,
        table: str,
        values: Row,
        filters: Sequence[Filter],
    ) -> list[Row]:
        """
        Update every row matching the filters.

        Returns:
            The updated rows (possibly empty)
        """
        pass

    @abstractmethod
    async def delete(self, table: str, filters: Sequence[Filter]) -> int:
        """
        Delete every row matching the filters.

        Returns:
            Number of rows deleted
        """
        pass

    async def upsert(self, table: str, row: Row, key: str = "id") -> Row:
        """Insert the row, or update the existing row with the same key."""
        existing = await self.select(table, [Filter.eq(key, row[key])], limit=1)
        if existing:
            updated = await self.update(table, row, [Filter.eq(key, row[key])])
            return updated[0]
        return await self.insert(table, row)

    async def select_one(self, table: str, filters: Sequence[Filter]) -> Row:
        """
        Read exactly one row.

        Raises:
            NotFoundError: If no row matches
        """
        rows = await self.select(table, filters, limit=1)
        if not rows:
            described = ", ".join(f"{f.column} {f.op} {f.value}" for f in filters)
            raise NotFoundError(
                f"No row in {table} where {described}", "select", table,
            )
        return rows[0]


class ObjectStorageInterface(ABC):
    """
    Abstract interface for file storage (receipts, invoices, CFDI XML).
    """

    @abstractmethod
    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        """
        Store a file at a path inside the bucket.

        Returns:
            The stored path

        Raises:
            UploadError: If the upload fails
        """
        pass

    @abstractmethod
    async def create_signed_url(self, path: str, expires_in: int) -> str:
        """
        Issue a time-limited URL for a stored file.

        Args:
            path: Path returned by upload()
            expires_in: Lifetime in seconds

        Raises:
            UploadError: If no URL could be issued
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Returns True if logged successfully."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events of one user action, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class RemoteOperationError(StorageError):
    """A table query, insert, update or delete failed."""

    def __init__(self, message: str, operation: str = "", table: str = ""):
        self.operation = operation
        self.table = table
        super().__init__(message)


class NotFoundError(RemoteOperationError):
    """Entity not found in storage."""
    pass


class ConnectionError(RemoteOperationError):
    """Could not connect to storage backend."""
    pass


class UploadError(StorageError):
    """File upload or signed URL generation failed."""
    pass
