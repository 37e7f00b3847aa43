"""
Main Orchestrator for Vela Ledger

This module ties together all the components the UI calls:
1. Transactions (create / edit / delete, dashboard numbers)
2. Recurring billing (clients, pending charges, payment cycles)
3. Reports (cash-flow series, statement by category)
4. Export (accountant workbook, statement workbook)
5. Appearance (saved theme)

DESIGN DECISION: Nothing here is a module-level singleton. The factory
builds one set of services around one pair of storage backends and
hands them to the UI, which keeps its lists in an explicit AppState
instead of scattered globals.

When Google Sheets or Cloudinary is not configured the factory falls
back to in-memory storage so the app still starts (nothing persists).
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

import structlog

from vela_ledger.audit import AuditLogger
from vela_ledger.billing import RecurringBillingEngine
from vela_ledger.config import get_settings
from vela_ledger.config.settings import AppSettings
from vela_ledger.export import ExportService
from vela_ledger.ledger import DashboardStats, TransactionService
from vela_ledger.models import RecurringClientView, Transaction, TransactionType
from vela_ledger.reports import CashFlowService
from vela_ledger.services.files import CloudinaryObjectStorage
from vela_ledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryObjectStorage,
    InMemoryTableStorage,
    ObjectStorageInterface,
    StorageError,
    TableStorageInterface,
)
from vela_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTableStorage,
)
from vela_ledger.theme import ThemePreferenceStore

logger = structlog.get_logger(__name__)


@dataclass
class AppComponents:
    """Every service the UI needs, wired to the same storage."""

    transactions: TransactionService
    billing: RecurringBillingEngine
    cash_flow: CashFlowService
    export: ExportService
    themes: ThemePreferenceStore
    audit_logger: AuditLogger
    persistent: bool = False
    sheets_client: Optional[GoogleSheetsClient] = None


@dataclass
class AppState:
    """
    What one signed-in user currently sees.

    Reloads are plain re-reads; overlapping reloads are harmless and the
    last one to finish wins.
    """

    user_id: str
    transactions: list[Transaction] = field(default_factory=list)
    clients: list[RecurringClientView] = field(default_factory=list)
    stats: DashboardStats = field(default_factory=DashboardStats)
    theme: str = "system"

    async def load_transactions(
        self,
        components: AppComponents,
        type_filter: Optional[TransactionType] = None,
    ) -> list[Transaction]:
        self.transactions = await components.transactions.list(type_filter)
        return self.transactions

    async def load_clients(self, components: AppComponents) -> list[RecurringClientView]:
        self.clients = await components.billing.load_clients(self.user_id)
        return self.clients

    async def load_stats(
        self,
        components: AppComponents,
        today: Optional[date] = None,
    ) -> DashboardStats:
        self.stats = await components.transactions.dashboard_stats(today)
        return self.stats

    async def load_theme(self, components: AppComponents) -> str:
        """Load the saved theme; an unreadable preference keeps the current one."""
        try:
            self.theme = await components.themes.load(self.user_id)
        except StorageError as e:
            logger.warning("theme_load_failed", user_id=self.user_id, error=str(e))
        return self.theme


def build_components(
    table_storage: TableStorageInterface,
    object_storage: ObjectStorageInterface,
    audit_logger: Optional[AuditLogger] = None,
    settings: Optional[AppSettings] = None,
) -> AppComponents:
    """Wire the services around the given backends."""
    settings = settings or get_settings().app
    audit_logger = audit_logger or AuditLogger()

    transactions = TransactionService(table_storage, object_storage, audit_logger, settings)
    cash_flow = CashFlowService(table_storage)
    return AppComponents(
        transactions=transactions,
        billing=RecurringBillingEngine(table_storage, object_storage, audit_logger, settings),
        cash_flow=cash_flow,
        export=ExportService(transactions, cash_flow, audit_logger),
        themes=ThemePreferenceStore(table_storage, audit_logger, settings.default_theme),
        audit_logger=audit_logger,
    )


def create_app_components(
    use_storage: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to connect to Google Sheets and Cloudinary.
                    Set to False for testing without storage.

    Returns:
        AppComponents; ``persistent`` tells whether remote storage is in use
    """
    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.get_spreadsheet()
            components = build_components(
                GoogleSheetsTableStorage(sheets_client),
                CloudinaryObjectStorage(),
                AuditLogger(GoogleSheetsAuditStorage(sheets_client)),
            )
            components.persistent = True
            components.sheets_client = sheets_client
            return components
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))

    return build_components(
        InMemoryTableStorage(),
        InMemoryObjectStorage(),
        AuditLogger(InMemoryAuditStorage()),
    )
