"""
Tests for recurring billing.

Test strategy:
1. Date arithmetic as pure functions (month-end clamping)
2. Full payment cycles against in-memory storage
3. Partial failures: the failing step is audited and nothing is rolled back
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from vela_ledger.billing import (
    get_initial_due_date,
    get_month_date,
    get_next_due_date,
)
from vela_ledger.billing.engine import CLIENTS_TABLE, TRANSACTIONS_TABLE
from vela_ledger.models import (
    AuditEventType,
    BillingState,
    FileUpload,
    ReceiptType,
    TransactionStatus,
    TransactionType,
)
from vela_ledger.services.storage import RemoteOperationError
from vela_ledger.validation import ValidationError

USER_ID = "user-1"


class TestBillingDates:
    """Tests for the billing date helpers."""

    def test_month_overflow_rolls_year(self):
        assert get_month_date(2024, 13, 5) == date(2025, 1, 5)

    def test_month_date_clamps_to_last_day(self):
        assert get_month_date(2023, 2, 31) == date(2023, 2, 28)
        assert get_month_date(2024, 4, 31) == date(2024, 4, 30)

    def test_next_due_date_clamps_in_leap_february(self):
        assert get_next_due_date(date(2024, 1, 31), 31) == date(2024, 2, 29)

    def test_next_due_date_recovers_full_day(self):
        """A 31st client billed on Feb 29 goes back to the 31st in March."""
        assert get_next_due_date(date(2024, 2, 29), 31) == date(2024, 3, 31)

    def test_next_due_date_across_year(self):
        assert get_next_due_date(date(2024, 12, 15), 15) == date(2025, 1, 15)

    def test_initial_due_date_later_this_month(self):
        assert get_initial_due_date(15, date(2024, 5, 10)) == date(2024, 5, 15)

    def test_initial_due_date_today(self):
        assert get_initial_due_date(15, date(2024, 5, 15)) == date(2024, 5, 15)

    def test_initial_due_date_already_passed(self):
        assert get_initial_due_date(15, date(2024, 5, 20)) == date(2024, 6, 15)

    def test_initial_due_date_clamped_day_is_today(self):
        """Billing day 31 on Feb 29 is due today (clamped)."""
        assert get_initial_due_date(31, date(2024, 2, 29)) == date(2024, 2, 29)


class TestAddClient:
    """Tests for registering a recurring client."""

    def test_add_client_seeds_pending_charge(self, billing_engine, tables):
        view = asyncio.run(billing_engine.add_client(
            USER_ID, "Gym Norte", "1,500", "15", today=date(2024, 5, 20),
        ))

        assert view.client.due_date == date(2024, 6, 15)
        assert view.client.amount == Decimal("1500")
        assert view.state == BillingState.PENDING_CHARGE

        charge = view.pending_charge
        assert charge.status == TransactionStatus.PENDING
        assert charge.type == TransactionType.INCOME
        assert charge.transaction_date == date(2024, 6, 15)
        assert charge.concept == "Membresía Gym Norte"
        assert charge.category == "Mensualidades del sistema"
        assert charge.vat_rate == Decimal("0")
        assert charge.total == Decimal("1500")
        assert charge.recurring_client_id == view.client.id

        assert len(tables.rows(CLIENTS_TABLE)) == 1
        assert len(tables.rows(TRANSACTIONS_TABLE)) == 1

    @pytest.mark.parametrize("name, amount, day, field", [
        ("", "100", 1, "name"),
        ("Ana", "0", 1, "amount"),
        ("Ana", "abc", 1, "amount"),
        ("Ana", "100", 32, "billing_day"),
        ("Ana", "100", "x", "billing_day"),
    ])
    def test_invalid_input_writes_nothing(self, billing_engine, tables, name, amount, day, field):
        with pytest.raises(ValidationError) as exc:
            asyncio.run(billing_engine.add_client(USER_ID, name, amount, day))
        assert exc.value.field == field
        assert tables.rows(CLIENTS_TABLE) == []
        assert tables.rows(TRANSACTIONS_TABLE) == []

    def test_load_clients_orders_by_billing_day(self, billing_engine):
        today = date(2024, 5, 1)
        asyncio.run(billing_engine.add_client(USER_ID, "Late", "100", 28, today=today))
        asyncio.run(billing_engine.add_client(USER_ID, "Early", "100", 3, today=today))
        asyncio.run(billing_engine.add_client("someone-else", "Other", "100", 1, today=today))

        views = asyncio.run(billing_engine.load_clients(USER_ID))
        assert [v.client.name for v in views] == ["Early", "Late"]
        assert all(v.pending_charge is not None for v in views)

    def test_delete_client_keeps_transactions(self, billing_engine, tables):
        view = asyncio.run(billing_engine.add_client(USER_ID, "Ana", "100", 10))
        assert asyncio.run(billing_engine.delete_client(USER_ID, view.client.id)) == 1
        assert tables.rows(CLIENTS_TABLE) == []
        assert len(tables.rows(TRANSACTIONS_TABLE)) == 1

    def test_delete_client_of_other_user_is_noop(self, billing_engine):
        view = asyncio.run(billing_engine.add_client(USER_ID, "Ana", "100", 10))
        assert asyncio.run(billing_engine.delete_client("intruder", view.client.id)) == 0


class TestPaymentCycle:
    """Tests for settle / advance / seed."""

    def test_mark_paid_full_cycle(self, billing_engine, tables, audit_storage):
        view = asyncio.run(billing_engine.add_client(
            USER_ID, "Gym Norte", "1500", 15, today=date(2024, 5, 20),
        ))
        paid_on = date(2024, 6, 14)

        next_due = asyncio.run(billing_engine.mark_paid(view, today=paid_on))
        assert next_due == date(2024, 7, 15)

        rows = tables.rows(TRANSACTIONS_TABLE)
        posted = [r for r in rows if r["status"] == "posted"]
        pending = [r for r in rows if r["status"] == "pending"]
        assert len(posted) == 1
        assert posted[0]["date"] == paid_on.isoformat()
        assert posted[0]["id"] == str(view.pending_charge.id)
        assert len(pending) == 1
        assert pending[0]["date"] == "2024-07-15"

        client_row = tables.rows(CLIENTS_TABLE)[0]
        assert client_row["due_date"] == "2024-07-15"

        reloaded = asyncio.run(billing_engine.load_clients(USER_ID))
        assert reloaded[0].pending_charge.transaction_date == date(2024, 7, 15)

        types = [e.event_type for e in audit_storage.events]
        assert AuditEventType.PAYMENT_CYCLE_COMPLETED in types

    def test_cycle_without_pending_charge_inserts_posted(self, billing_engine, tables):
        view = asyncio.run(billing_engine.add_client(
            USER_ID, "Ana", "800", 5, today=date(2024, 1, 1),
        ))
        no_pending = view.model_copy(update={"pending_charge": None})
        asyncio.run(tables.delete(TRANSACTIONS_TABLE, []))

        next_due = asyncio.run(billing_engine.mark_paid(no_pending, today=date(2024, 1, 3)))
        assert next_due == date(2024, 2, 5)

        rows = tables.rows(TRANSACTIONS_TABLE)
        assert sorted(r["status"] for r in rows) == ["pending", "posted"]
        posted = next(r for r in rows if r["status"] == "posted")
        assert posted["receipt_url"] is None
        assert Decimal(posted["total"]) == Decimal("800")

    def test_attach_invoice_requires_file(self, billing_engine, tables):
        view = asyncio.run(billing_engine.add_client(USER_ID, "Ana", "100", 10))
        before = tables.rows(TRANSACTIONS_TABLE)

        with pytest.raises(ValidationError):
            asyncio.run(billing_engine.attach_invoice_and_complete(view, None))
        assert tables.rows(TRANSACTIONS_TABLE) == before

    def test_attach_invoice_marks_invoice_pdf(self, billing_engine, tables, files):
        view = asyncio.run(billing_engine.add_client(
            USER_ID, "Ana", "100", 10, today=date(2024, 3, 1),
        ))
        upload = FileUpload(filename="factura.pdf", content=b"%PDF-1.4", content_type="application/pdf")

        asyncio.run(billing_engine.attach_invoice_and_complete(view, upload, today=date(2024, 3, 9)))

        [path] = files.files.keys()
        assert path.startswith("receipts/membresia_")
        posted = next(r for r in tables.rows(TRANSACTIONS_TABLE) if r["status"] == "posted")
        assert posted["receipt_type"] == ReceiptType.INVOICE_PDF.value
        assert posted["receipt_url"].startswith("memory://")

    def test_failed_advance_is_audited_and_not_rolled_back(
        self, billing_engine, tables, audit_storage, monkeypatch,
    ):
        view = asyncio.run(billing_engine.add_client(
            USER_ID, "Ana", "100", 10, today=date(2024, 3, 1),
        ))
        original_update = tables.update

        async def failing_update(table, values, filters):
            if table == CLIENTS_TABLE:
                raise RemoteOperationError("sheet is read-only", "update", table)
            return await original_update(table, values, filters)

        monkeypatch.setattr(tables, "update", failing_update)

        with pytest.raises(RemoteOperationError):
            asyncio.run(billing_engine.mark_paid(view, today=date(2024, 3, 10)))

        statuses = [r["status"] for r in tables.rows(TRANSACTIONS_TABLE)]
        assert statuses == ["posted"]
        assert tables.rows(CLIENTS_TABLE)[0]["due_date"] == "2024-03-10"

        failed = [e for e in audit_storage.events if e.event_type == AuditEventType.PAYMENT_CYCLE_FAILED]
        assert len(failed) == 1
        assert failed[0].details["step"] == "advance"

    def test_failed_seed_leaves_client_paid(self, billing_engine, tables, monkeypatch):
        """Settled and advanced but not re-seeded: the client reads as paid."""
        view = asyncio.run(billing_engine.add_client(
            USER_ID, "Ana", "100", 10, today=date(2024, 3, 1),
        ))

        async def failing_seed(client, due_date, correlation_id=None):
            raise RemoteOperationError("quota exceeded", "insert", TRANSACTIONS_TABLE)

        monkeypatch.setattr(billing_engine, "create_pending_charge", failing_seed)
        with pytest.raises(RemoteOperationError):
            asyncio.run(billing_engine.mark_paid(view, today=date(2024, 3, 9)))

        [reloaded] = asyncio.run(billing_engine.load_clients(USER_ID))
        assert reloaded.pending_charge is None
        assert reloaded.last_paid_on == date(2024, 3, 9)
        assert reloaded.state == BillingState.PAID
        assert reloaded.client.due_date == date(2024, 4, 10)

    def test_last_payment_is_the_latest(self, billing_engine):
        view = asyncio.run(billing_engine.add_client(
            USER_ID, "Ana", "100", 10, today=date(2024, 3, 1),
        ))
        asyncio.run(billing_engine.mark_paid(view, today=date(2024, 3, 9)))
        [view] = asyncio.run(billing_engine.load_clients(USER_ID))
        asyncio.run(billing_engine.mark_paid(view, today=date(2024, 4, 8)))

        [view] = asyncio.run(billing_engine.load_clients(USER_ID))
        assert view.last_paid_on == date(2024, 4, 8)
        assert view.state == BillingState.PENDING_CHARGE


class TestDueSoon:
    """Tests for the reminder window."""

    def test_due_soon_window(self, billing_engine):
        today = date(2024, 5, 1)
        for name, day in [("Today", 1), ("Week", 8), ("Later", 20)]:
            asyncio.run(billing_engine.add_client(USER_ID, name, "100", day, today=today))
        views = asyncio.run(billing_engine.load_clients(USER_ID))

        due = billing_engine.due_soon(views, today=today)
        assert [v.client.name for v in due] == ["Today", "Week"]
        assert billing_engine.due_soon(views, today=today, window_days=30) == views


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
