"""
Storage Services Package

Provides abstract interfaces and concrete implementations for table,
file and audit storage. Google Sheets is the hosted table backend and
the in-memory variants serve tests and offline mode.
"""

from vela_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    Filter,
    NotFoundError,
    ObjectStorageInterface,
    RemoteOperationError,
    Row,
    StorageError,
    TableStorageInterface,
    UploadError,
)
from vela_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryObjectStorage,
    InMemoryTableStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ObjectStorageInterface",
    "TableStorageInterface",
    "Filter",
    "Row",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "RemoteOperationError",
    "StorageError",
    "UploadError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryObjectStorage",
    "InMemoryTableStorage",
]
