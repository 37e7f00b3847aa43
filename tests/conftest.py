"""Shared fixtures: in-memory backends and services wired to them."""

import pytest

from vela_ledger.audit import AuditLogger
from vela_ledger.billing import RecurringBillingEngine
from vela_ledger.config import AppSettings
from vela_ledger.ledger import TransactionService
from vela_ledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryObjectStorage,
    InMemoryTableStorage,
)


@pytest.fixture
def settings():
    return AppSettings(_env_file=None)


@pytest.fixture
def tables():
    return InMemoryTableStorage()


@pytest.fixture
def files():
    return InMemoryObjectStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def transaction_service(tables, files, audit_logger, settings):
    return TransactionService(tables, files, audit_logger, settings)


@pytest.fixture
def billing_engine(tables, files, audit_logger, settings):
    return RecurringBillingEngine(tables, files, audit_logger, settings)
