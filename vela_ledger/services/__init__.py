"""Services package."""

from vela_ledger.services.files import CloudinaryObjectStorage
from vela_ledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    Filter,
    InMemoryAuditStorage,
    InMemoryObjectStorage,
    InMemoryTableStorage,
    NotFoundError,
    ObjectStorageInterface,
    RemoteOperationError,
    StorageError,
    TableStorageInterface,
    UploadError,
)
from vela_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTableStorage,
)

__all__ = [
    # File services
    "CloudinaryObjectStorage",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "Filter",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTableStorage",
    "InMemoryAuditStorage",
    "InMemoryObjectStorage",
    "InMemoryTableStorage",
    "NotFoundError",
    "ObjectStorageInterface",
    "RemoteOperationError",
    "StorageError",
    "TableStorageInterface",
    "UploadError",
]
