"""
Tests for the storage layer.

The in-memory store is what every service test runs against, so its
filter semantics must match the remote backends: normalized
comparisons, empty strings treated as null, ISO strings for dates.
"""

import asyncio
from datetime import date
from uuid import uuid4

import pytest

from vela_ledger.models.audit import AuditEvent, AuditEventType
from vela_ledger.services.storage import (
    Filter,
    InMemoryAuditStorage,
    InMemoryObjectStorage,
    InMemoryTableStorage,
    NotFoundError,
    UploadError,
)
from vela_ledger.services.storage.interface import apply_query, normalize_value, sort_key


class TestFilter:
    """Tests for single-row predicates."""

    def test_eq_matches_uuid_against_string(self):
        """A UUID filter value matches the stored string form."""
        row_id = uuid4()
        assert Filter.eq("id", row_id).matches({"id": str(row_id)})

    def test_eq_matches_enum_value(self):
        from vela_ledger.models import TransactionStatus
        assert Filter.eq("status", TransactionStatus.PENDING).matches({"status": "pending"})

    def test_is_null_treats_empty_string_as_null(self):
        """Sheets cells come back as '' when blank."""
        assert Filter.is_null("deleted_at").matches({"deleted_at": ""})
        assert Filter.is_null("deleted_at").matches({})
        assert not Filter.is_null("deleted_at").matches({"deleted_at": "2024-01-01T00:00:00"})

    def test_not_null(self):
        assert Filter.not_null("recurring_client_id").matches({"recurring_client_id": "abc"})
        assert not Filter.not_null("recurring_client_id").matches({"recurring_client_id": None})

    def test_date_range(self):
        row = {"date": "2024-03-15"}
        assert Filter.gte("date", date(2024, 3, 1)).matches(row)
        assert Filter.lte("date", date(2024, 3, 15)).matches(row)
        assert not Filter.gte("date", date(2024, 3, 16)).matches(row)

    def test_range_never_matches_null(self):
        assert not Filter.gte("date", date(2024, 1, 1)).matches({"date": None})

    def test_in(self):
        f = Filter.in_("type", ["income", "expense"])
        assert f.matches({"type": "income"})
        assert not f.matches({"type": "transfer"})

    def test_unknown_operator_raises(self):
        with pytest.raises(ValueError):
            Filter("x", "like", "a").matches({"x": "a"})

    def test_normalize_bool(self):
        assert normalize_value(True) == "true"


class TestApplyQuery:
    """Ordering and limits."""

    def test_orders_numbers_numerically(self):
        rows = [{"day": "10"}, {"day": 2}, {"day": "31"}]
        ordered = apply_query(rows, order_by="day")
        assert [r["day"] for r in ordered] == [2, "10", "31"]

    def test_none_sorts_last(self):
        assert sort_key(None) > sort_key("zzz") > sort_key("5")

    def test_descending_dates_and_limit(self):
        rows = [{"date": "2024-01-01"}, {"date": "2024-03-01"}, {"date": "2024-02-01"}]
        result = apply_query(rows, order_by="date", descending=True, limit=2)
        assert [r["date"] for r in result] == ["2024-03-01", "2024-02-01"]


class TestInMemoryTableStorage:
    """Tests for the dict-of-lists table store."""

    def test_insert_assigns_id_and_created_at(self):
        storage = InMemoryTableStorage()
        row = asyncio.run(storage.insert("t", {"name": "a"}))
        assert row["id"]
        assert row["created_at"]

    def test_select_returns_copies(self):
        """Mutating a selected row must not change the stored one."""
        storage = InMemoryTableStorage({"t": [{"id": "1", "name": "a"}]})
        rows = asyncio.run(storage.select("t"))
        rows[0]["name"] = "changed"
        assert storage.rows("t")[0]["name"] == "a"

    def test_update_and_delete(self):
        storage = InMemoryTableStorage({"t": [{"id": "1", "v": 1}, {"id": "2", "v": 2}]})
        updated = asyncio.run(storage.update("t", {"v": 9}, [Filter.eq("id", "2")]))
        assert updated == [{"id": "2", "v": 9}]
        assert asyncio.run(storage.delete("t", [Filter.eq("id", "1")])) == 1
        assert storage.rows("t") == [{"id": "2", "v": 9}]

    def test_upsert_inserts_then_updates(self):
        storage = InMemoryTableStorage()
        asyncio.run(storage.upsert("prefs", {"id": "u1", "theme": "system"}))
        asyncio.run(storage.upsert("prefs", {"id": "u1", "theme": "vela-noir"}))
        rows = storage.rows("prefs")
        assert len(rows) == 1
        assert rows[0]["theme"] == "vela-noir"

    def test_select_one_raises_not_found(self):
        storage = InMemoryTableStorage()
        with pytest.raises(NotFoundError):
            asyncio.run(storage.select_one("t", [Filter.eq("id", "missing")]))


class TestInMemoryObjectStorage:
    """Tests for the fake bucket."""

    def test_upload_and_sign(self):
        storage = InMemoryObjectStorage()
        path = asyncio.run(storage.upload("receipts/a.pdf", b"%PDF"))
        url = asyncio.run(storage.create_signed_url(path, 60))
        assert url == "memory://receipts/receipts/a.pdf?expires_in=60"

    def test_upload_does_not_overwrite(self):
        storage = InMemoryObjectStorage()
        asyncio.run(storage.upload("receipts/a.pdf", b"1"))
        with pytest.raises(UploadError):
            asyncio.run(storage.upload("receipts/a.pdf", b"2"))

    def test_sign_missing_object(self):
        with pytest.raises(UploadError):
            asyncio.run(InMemoryObjectStorage().create_signed_url("nope.pdf", 60))


class TestInMemoryAuditStorage:
    """Audit storage is append-only and queryable by correlation id."""

    def test_events_by_correlation_id(self):
        storage = InMemoryAuditStorage()
        cid = uuid4()
        asyncio.run(storage.append_event(AuditEvent(
            event_type=AuditEventType.CLIENT_ADDED, description="a", correlation_id=cid,
        )))
        asyncio.run(storage.append_event(AuditEvent(
            event_type=AuditEventType.CLIENT_DELETED, description="b",
        )))
        events = asyncio.run(storage.get_events_by_correlation_id(cid))
        assert [e.event_type for e in events] == [AuditEventType.CLIENT_ADDED]
        assert len(asyncio.run(storage.get_recent_events(limit=10))) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
