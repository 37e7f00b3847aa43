"""
In-Memory Storage Implementation

Used by the test suite and by the app when no backend is configured.
Behaves like the remote store: rows are copied in and out, inserts
get an id and created_at when missing, and filters use the same
predicate semantics as every other backend.
"""

import copy
from datetime import datetime
from typing import Optional, Sequence
from uuid import UUID, uuid4

from vela_ledger.models.audit import AuditEvent
from vela_ledger.services.storage.interface import (
    AuditStorageInterface,
    Filter,
    ObjectStorageInterface,
    Row,
    TableStorageInterface,
    UploadError,
    apply_query,
)


class InMemoryTableStorage(TableStorageInterface):
    """Dict-of-lists table store."""

    def __init__(self, tables: Optional[dict[str, list[Row]]] = None):
        self._tables: dict[str, list[Row]] = {}
        for name, rows in (tables or {}).items():
            self._tables[name] = [copy.deepcopy(r) for r in rows]

    def _table(self, table: str) -> list[Row]:
        return self._tables.setdefault(table, [])

    def rows(self, table: str) -> list[Row]:
        """Raw copy of a table, for inspection in tests."""
        return copy.deepcopy(self._table(table))

    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Row]:
        rows = apply_query(self._table(table), filters, order_by, descending, limit)
        return copy.deepcopy(rows)

    async def insert(self, table: str, row: Row) -> Row:
        stored = copy.deepcopy(row)
        stored.setdefault("id", str(uuid4()))
        if stored.get("created_at") is None:
            stored["created_at"] = datetime.utcnow().isoformat()
        self._table(table).append(stored)
        return copy.deepcopy(stored)

    async def update(
        self,
        table: str,
        values: Row,
        filters: Sequence[Filter],
    ) -> list[Row]:
        updated = []
        for row in self._table(table):
            if all(f.matches(row) for f in filters):
                row.update(copy.deepcopy(values))
                updated.append(copy.deepcopy(row))
        return updated

    async def delete(self, table: str, filters: Sequence[Filter]) -> int:
        rows = self._table(table)
        keep = [r for r in rows if not all(f.matches(r) for f in filters)]
        deleted = len(rows) - len(keep)
        self._tables[table] = keep
        return deleted


class InMemoryObjectStorage(ObjectStorageInterface):
    """Keeps uploaded bytes in a dict and hands out fake signed URLs."""

    def __init__(self, base_url: str = "memory://receipts"):
        self._base_url = base_url
        self.files: dict[str, bytes] = {}

    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        if path in self.files:
            raise UploadError(f"File already exists: {path}")
        self.files[path] = data
        return path

    async def create_signed_url(self, path: str, expires_in: int) -> str:
        if path not in self.files:
            raise UploadError(f"Object not found: {path}")
        return f"{self._base_url}/{path}?expires_in={expires_in}"


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
