"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets serves as the hosted table store because:
1. The accountant can look at the raw ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

Each table is one worksheet whose first row holds the column names.

TRADEOFFS:
- No transactions across worksheets (the billing cycle is not atomic anyway)
- Limited query capabilities (we filter in Python with the shared predicates)
- Every cell is text; typed conversion happens in the models

The implementation follows the abstract interface, so a hosted
database can replace it without touching business logic.
"""

import json
from datetime import datetime
from typing import Any, Optional, Sequence
from uuid import UUID, uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import retry, stop_after_attempt, wait_exponential

from vela_ledger.config import get_settings
from vela_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from vela_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    Filter,
    RemoteOperationError,
    Row,
    StorageError,
    TableStorageInterface,
    apply_query,
)

logger = structlog.get_logger(__name__)


# Column layout per table; order is the worksheet column order
TABLE_COLUMNS: dict[str, list[str]] = {
    "transactions": [
        "id",
        "type",
        "date",
        "method",
        "concept",
        "category",
        "amount",
        "vat_rate",
        "vat_included",
        "vat_creditable",
        "subtotal",
        "vat_amount",
        "total",
        "status",
        "reconciled",
        "deleted_at",
        "receipt_url",
        "receipt_type",
        "signature_url",
        "uuid_cfdi",
        "recurring_client_id",
        "bank_account_id",
        "created_by",
        "notes",
        "created_at",
        "updated_at",
    ],
    "recurring_clients": [
        "id",
        "user_id",
        "name",
        "amount",
        "billing_day",
        "due_date",
        "notes",
        "created_at",
    ],
    "bank_accounts": [
        "id",
        "name",
        "institution",
        "created_at",
    ],
    "user_preferences": [
        "id",
        "theme",
        "created_at",
    ],
}

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def cell_value(value: Any) -> str:
    """Render a row value as worksheet text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=self._settings.default_sheet_rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS)


class GoogleSheetsTableStorage(TableStorageInterface):
    """
    Google Sheets implementation of table storage.

    One worksheet per table, one row per record. Empty cells read back as None.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _columns(self, table: str) -> list[str]:
        try:
            return TABLE_COLUMNS[table]
        except KeyError:
            raise RemoteOperationError(f"Unknown table: {table}", table=table)

    def _sheet(self, table: str) -> gspread.Worksheet:
        return self._client.get_worksheet(table, self._columns(table))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _read(self, table: str) -> list[tuple[int, Row]]:
        """Read every data row as (sheet_row_number, row_dict)."""
        values = self._sheet(table).get_all_values()
        if not values:
            return []

        header = values[0]
        rows = []
        for idx, raw in enumerate(values[1:], start=2):  # Row 1 is header
            if not raw or not raw[0]:
                continue
            row = {}
            for col_idx, column in enumerate(header):
                cell = raw[col_idx] if col_idx < len(raw) else ""
                row[column] = cell if cell != "" else None
            rows.append((idx, row))
        return rows

    def _to_values(self, table: str, row: Row) -> list[str]:
        return [cell_value(row.get(column)) for column in self._columns(table)]

    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Row]:
        try:
            rows = [row for _, row in self._read(table)]
        except StorageError:
            raise
        except Exception as e:
            raise RemoteOperationError(f"Failed to query {table}: {e}", "select", table)
        return apply_query(rows, filters, order_by, descending, limit)

    async def insert(self, table: str, row: Row) -> Row:
        stored = dict(row)
        stored.setdefault("id", str(uuid4()))
        if stored.get("created_at") is None:
            stored["created_at"] = datetime.utcnow().isoformat()
        try:
            self._sheet(table).append_row(
                self._to_values(table, stored),
                value_input_option="RAW",
            )
        except StorageError:
            raise
        except Exception as e:
            raise RemoteOperationError(f"Failed to insert into {table}: {e}", "insert", table)
        logger.debug("sheets_insert", table=table, id=stored["id"])
        return stored

    async def update(
        self,
        table: str,
        values: Row,
        filters: Sequence[Filter],
    ) -> list[Row]:
        columns = self._columns(table)
        updated = []
        try:
            sheet = self._sheet(table)
            for idx, row in self._read(table):
                if not all(f.matches(row) for f in filters):
                    continue
                row.update(values)
                sheet.update(
                    range_name=f"{rowcol_to_a1(idx, 1)}:{rowcol_to_a1(idx, len(columns))}",
                    values=[self._to_values(table, row)],
                    value_input_option="RAW",
                )
                updated.append(row)
        except StorageError:
            raise
        except Exception as e:
            raise RemoteOperationError(f"Failed to update {table}: {e}", "update", table)
        return updated

    async def delete(self, table: str, filters: Sequence[Filter]) -> int:
        try:
            sheet = self._sheet(table)
            targets = [
                idx for idx, row in self._read(table)
                if all(f.matches(row) for f in filters)
            ]
            # Bottom-up so earlier row numbers stay valid
            for idx in sorted(targets, reverse=True):
                sheet.delete_rows(idx)
        except StorageError:
            raise
        except Exception as e:
            raise RemoteOperationError(f"Failed to delete from {table}: {e}", "delete", table)
        return len(targets)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _all_events(self) -> list[AuditEvent]:
        events = []
        for row in self._client.get_audit_sheet().get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, KeyError) as e:
                logger.warning("audit_row_skipped", error=str(e), event_id=row[0])
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._all_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._all_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
