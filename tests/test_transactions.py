"""
Tests for the transaction service.

Test strategy:
1. Validation failures write nothing and upload nothing
2. Stored rows carry a consistent VAT triple
3. Lifecycle: drafts hard-deleted, posted soft-deleted, reconciled locked
"""

import asyncio
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from vela_ledger.ledger import TransactionLockedError, build_upload_path, extract_cfdi_uuid
from vela_ledger.ledger.transactions import BANK_ACCOUNTS_TABLE, TRANSACTIONS_TABLE
from vela_ledger.models import (
    AuditEventType,
    FileUpload,
    PaymentMethod,
    ReceiptType,
    Transaction,
    TransactionEntry,
    TransactionStatus,
    TransactionType,
)
from vela_ledger.services.storage import NotFoundError, UploadError
from vela_ledger.validation import ValidationError, parse_amount

USER_ID = "user-1"

CFDI_UUID = "6f1c2a3b-4d5e-4f60-8a7b-9c0d1e2f3a4b"
CFDI_XML = f"""<?xml version="1.0" encoding="UTF-8"?>
<cfdi:Comprobante xmlns:cfdi="http://www.sat.gob.mx/cfd/4"
                  xmlns:tfd="http://www.sat.gob.mx/TimbreFiscalDigital"
                  Total="1160.00">
  <cfdi:Complemento>
    <tfd:TimbreFiscalDigital Version="1.1" UUID="{CFDI_UUID}"/>
  </cfdi:Complemento>
</cfdi:Comprobante>
""".encode()


def make_entry(**overrides) -> TransactionEntry:
    values = dict(
        type=TransactionType.INCOME,
        amount="1160",
        concept="Implementación CRM",
        category="Ventas de servicios CRM",
        method=PaymentMethod.BANK,
        vat_rate=Decimal("0.16"),
        vat_included=True,
    )
    values.update(overrides)
    return TransactionEntry(**values)


def pdf(name: str = "ticket.pdf") -> FileUpload:
    return FileUpload(filename=name, content=b"%PDF-1.4 test", content_type="application/pdf")


class TestParseAmount:
    """Amounts are parsed, never coerced."""

    @pytest.mark.parametrize("raw, expected", [
        ("1160", Decimal("1160")),
        ("1,160.50", Decimal("1160.50")),
        (250, Decimal("250")),
    ])
    def test_valid(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "  ", "abc", "0", "-5", "NaN", "Infinity"])
    def test_invalid(self, raw):
        with pytest.raises(ValidationError):
            parse_amount(raw)


class TestCreateTransaction:
    """Tests for saving new movements."""

    def test_stores_vat_breakdown(self, transaction_service, tables):
        saved = asyncio.run(transaction_service.create(
            make_entry(), TransactionStatus.POSTED, USER_ID, today=date(2024, 5, 2),
        ))

        assert saved.subtotal == Decimal("1000.00")
        assert saved.vat_amount == Decimal("160.00")
        assert saved.total == Decimal("1160")
        assert saved.transaction_date == date(2024, 5, 2)
        assert saved.created_by == USER_ID

        [row] = tables.rows(TRANSACTIONS_TABLE)
        assert row["date"] == "2024-05-02"
        assert row["status"] == "posted"
        assert "bank_account_label" not in row

    def test_vat_not_included(self, transaction_service):
        saved = asyncio.run(transaction_service.create(
            make_entry(amount="1000", vat_included=False), TransactionStatus.DRAFT, USER_ID,
        ))
        assert saved.subtotal == Decimal("1000")
        assert saved.total == Decimal("1160.00")

    @pytest.mark.parametrize("overrides, field", [
        ({"concept": ""}, "concept"),
        ({"amount": ""}, "amount"),
        ({"amount": "abc"}, "amount"),
        ({"amount": "0"}, "amount"),
        ({"category": None}, "category"),
    ])
    def test_invalid_form_writes_nothing(
        self, transaction_service, tables, audit_storage, overrides, field,
    ):
        with pytest.raises(ValidationError) as exc:
            asyncio.run(transaction_service.create(
                make_entry(**overrides), TransactionStatus.POSTED, USER_ID,
            ))
        assert exc.value.field == field
        assert tables.rows(TRANSACTIONS_TABLE) == []
        assert audit_storage.events[-1].event_type == AuditEventType.VALIDATION_FAILED

    def test_posted_bank_expense_requires_receipt(self, transaction_service, tables, files):
        entry = make_entry(type=TransactionType.EXPENSE, receipt_type=ReceiptType.TICKET)
        with pytest.raises(ValidationError) as exc:
            asyncio.run(transaction_service.create(entry, TransactionStatus.POSTED, USER_ID))
        assert exc.value.field == "receipt"
        assert tables.rows(TRANSACTIONS_TABLE) == []
        assert files.files == {}

    def test_draft_bank_expense_needs_no_receipt(self, transaction_service):
        entry = make_entry(type=TransactionType.EXPENSE)
        saved = asyncio.run(transaction_service.create(entry, TransactionStatus.DRAFT, USER_ID))
        assert saved.receipt_url is None

    def test_posted_bank_expense_with_receipt(self, transaction_service, files):
        entry = make_entry(type=TransactionType.EXPENSE, receipt_type=ReceiptType.TICKET)
        saved = asyncio.run(transaction_service.create(
            entry, TransactionStatus.POSTED, USER_ID, receipt_file=pdf(),
        ))
        [path] = files.files.keys()
        assert path.startswith("receipts/")
        assert path.endswith(".pdf")
        assert saved.receipt_url.startswith("memory://")
        assert saved.receipt_type == ReceiptType.TICKET

    def test_unsupported_receipt_format(self, transaction_service, files):
        entry = make_entry(type=TransactionType.EXPENSE, receipt_type=ReceiptType.TICKET)
        bad = FileUpload(filename="virus.exe", content=b"MZ")
        with pytest.raises(ValidationError):
            asyncio.run(transaction_service.create(
                entry, TransactionStatus.POSTED, USER_ID, receipt_file=bad,
            ))
        assert files.files == {}

    def test_upload_failure_writes_no_row(self, transaction_service, tables, files, monkeypatch):
        async def broken_upload(path, data, content_type="application/octet-stream"):
            raise UploadError("bucket unavailable")

        monkeypatch.setattr(files, "upload", broken_upload)
        entry = make_entry(type=TransactionType.EXPENSE, receipt_type=ReceiptType.TICKET)

        with pytest.raises(UploadError):
            asyncio.run(transaction_service.create(
                entry, TransactionStatus.POSTED, USER_ID, receipt_file=pdf(),
            ))
        assert tables.rows(TRANSACTIONS_TABLE) == []

    def test_cfdi_uuid_is_extracted(self, transaction_service, files):
        xml = FileUpload(filename="factura.xml", content=CFDI_XML, content_type="application/xml")
        saved = asyncio.run(transaction_service.create(
            make_entry(receipt_type=ReceiptType.CFDI),
            TransactionStatus.POSTED,
            USER_ID,
            xml_file=xml,
        ))
        assert saved.uuid_cfdi == CFDI_UUID.upper()
        assert any(path.startswith("cfdi/") for path in files.files)

    def test_malformed_cfdi_rejected(self, transaction_service, tables):
        xml = FileUpload(filename="factura.xml", content=b"<cfdi:Comprobante")
        with pytest.raises(ValidationError) as exc:
            asyncio.run(transaction_service.create(
                make_entry(receipt_type=ReceiptType.CFDI),
                TransactionStatus.POSTED,
                USER_ID,
                xml_file=xml,
            ))
        assert exc.value.field == "xml_file"
        assert tables.rows(TRANSACTIONS_TABLE) == []


class TestCfdi:
    """Tests for the fiscal UUID reader."""

    def test_missing_stamp(self):
        assert extract_cfdi_uuid(b"<Comprobante/>") is None

    def test_entity_expansion_refused(self):
        payload = (
            b'<?xml version="1.0"?>'
            b'<!DOCTYPE c [<!ENTITY a "aaaaaaaaaa"><!ENTITY b "&a;&a;&a;&a;&a;">]>'
            b"<Comprobante>&b;</Comprobante>"
        )
        with pytest.raises(ValueError, match="rejected"):
            extract_cfdi_uuid(payload)

    def test_invalid_uuid_ignored(self):
        xml = b'<Comprobante><TimbreFiscalDigital UUID="not-a-uuid"/></Comprobante>'
        assert extract_cfdi_uuid(xml) is None

    def test_not_xml(self):
        with pytest.raises(ValueError):
            extract_cfdi_uuid(b"%PDF-1.4")


class TestUploadPath:
    def test_path_shape(self):
        path = build_upload_path("receipts", "pdf", "membresia_")
        folder, name = path.split("/")
        assert folder == "receipts"
        assert name.startswith("membresia_")
        assert name.endswith(".pdf")


class TestLifecycle:
    """Tests for edit and delete rules."""

    def test_draft_is_hard_deleted(self, transaction_service, tables, audit_storage):
        saved = asyncio.run(transaction_service.create(make_entry(), TransactionStatus.DRAFT, USER_ID))
        soft = asyncio.run(transaction_service.delete(saved))
        assert soft is False
        assert tables.rows(TRANSACTIONS_TABLE) == []
        assert audit_storage.events[-1].event_type == AuditEventType.TRANSACTION_DELETED

    def test_posted_is_soft_deleted(self, transaction_service, tables, audit_storage):
        saved = asyncio.run(transaction_service.create(make_entry(), TransactionStatus.POSTED, USER_ID))
        soft = asyncio.run(transaction_service.delete(saved))
        assert soft is True

        [row] = tables.rows(TRANSACTIONS_TABLE)
        assert row["deleted_at"]
        assert asyncio.run(transaction_service.list()) == []
        with pytest.raises(NotFoundError):
            asyncio.run(transaction_service.get(saved.id))
        assert audit_storage.events[-1].event_type == AuditEventType.TRANSACTION_SOFT_DELETED

    def test_missing_row_is_not_a_remote_failure(self, transaction_service, audit_storage):
        """A not-found read names the table and leaves the audit trail alone."""
        with pytest.raises(NotFoundError) as excinfo:
            asyncio.run(transaction_service.get(uuid4()))
        assert excinfo.value.operation == "select"
        assert excinfo.value.table == TRANSACTIONS_TABLE
        assert all(
            e.event_type != AuditEventType.REMOTE_OPERATION_ERROR
            for e in audit_storage.events
        )

    def test_deleted_transaction_cannot_be_deleted_again(self, transaction_service):
        saved = asyncio.run(transaction_service.create(make_entry(), TransactionStatus.POSTED, USER_ID))
        asyncio.run(transaction_service.delete(saved))
        deleted = saved.model_copy(update={"deleted_at": saved.created_at})
        with pytest.raises(TransactionLockedError):
            asyncio.run(transaction_service.delete(deleted))

    def test_reconciled_is_locked(self, transaction_service, tables):
        saved = asyncio.run(transaction_service.create(make_entry(), TransactionStatus.POSTED, USER_ID))
        asyncio.run(tables.update(TRANSACTIONS_TABLE, {"reconciled": True}, []))
        reconciled = asyncio.run(transaction_service.get(saved.id))

        with pytest.raises(TransactionLockedError):
            asyncio.run(transaction_service.update(
                saved.id, make_entry(amount="10"), TransactionStatus.POSTED,
            ))
        with pytest.raises(TransactionLockedError):
            asyncio.run(transaction_service.delete(reconciled))
        assert len(tables.rows(TRANSACTIONS_TABLE)) == 1

    def test_update_recomputes_vat(self, transaction_service, tables):
        saved = asyncio.run(transaction_service.create(
            make_entry(), TransactionStatus.DRAFT, USER_ID, today=date(2024, 5, 2),
        ))
        updated = asyncio.run(transaction_service.update(
            saved.id,
            make_entry(amount="2320", concept="Implementación CRM fase 2"),
            TransactionStatus.POSTED,
        ))

        assert updated.total == Decimal("2320")
        assert updated.subtotal == Decimal("2000.00")
        assert updated.status == TransactionStatus.POSTED
        assert updated.transaction_date == date(2024, 5, 2)
        assert updated.updated_at is not None

        reread = asyncio.run(transaction_service.get(saved.id))
        assert reread.concept == "Implementación CRM fase 2"
        assert reread.vat_amount == Decimal("320.00")
        assert reread.created_by == USER_ID


class TestReads:
    """Tests for listing and dashboard numbers."""

    def test_list_newest_first_and_by_type(self, transaction_service):
        for day, kind in [(3, TransactionType.INCOME), (9, TransactionType.EXPENSE), (1, TransactionType.INCOME)]:
            asyncio.run(transaction_service.create(
                make_entry(type=kind, method=PaymentMethod.CASH),
                TransactionStatus.POSTED,
                USER_ID,
                today=date(2024, 5, day),
            ))

        dates = [t.transaction_date.day for t in asyncio.run(transaction_service.list())]
        assert dates == [9, 3, 1]

        incomes = asyncio.run(transaction_service.list(TransactionType.INCOME))
        assert [t.transaction_date.day for t in incomes] == [3, 1]

    def test_dashboard_stats(self, transaction_service):
        asyncio.run(transaction_service.create(
            make_entry(amount="1160"), TransactionStatus.POSTED, USER_ID, today=date(2024, 5, 2),
        ))
        asyncio.run(transaction_service.create(
            make_entry(type=TransactionType.EXPENSE, method=PaymentMethod.CASH, amount="500", vat_rate=Decimal("0")),
            TransactionStatus.POSTED,
            USER_ID,
            today=date(2024, 4, 28),
        ))

        stats = asyncio.run(transaction_service.dashboard_stats(today=date(2024, 5, 20)))
        assert stats.total_transactions == 2
        assert stats.balance == Decimal("660")
        assert stats.this_month == Decimal("1160")

    def test_list_with_accounts_fills_label(self, transaction_service, tables):
        account_id = uuid4()
        asyncio.run(tables.insert(BANK_ACCOUNTS_TABLE, {
            "id": str(account_id), "name": "Operativa", "institution": "Banregio",
        }))
        asyncio.run(transaction_service.create(
            make_entry(bank_account_id=account_id), TransactionStatus.POSTED, USER_ID,
        ))

        [transaction] = asyncio.run(transaction_service.list_with_accounts())
        assert transaction.bank_account_label == "Banregio – Operativa"

    def test_row_without_vat_triple_is_recomputed(self, transaction_service, tables):
        """Rows saved before the VAT columns existed still report a total."""
        asyncio.run(tables.insert(TRANSACTIONS_TABLE, {
            "type": "income",
            "date": "2024-01-10",
            "concept": "Legacy",
            "amount": "116",
            "vat_rate": "0.16",
            "vat_included": True,
            "status": "posted",
        }))
        [legacy] = asyncio.run(transaction_service.list())
        assert isinstance(legacy, Transaction)
        assert legacy.effective_total == Decimal("116")
        assert legacy.vat_breakdown.subtotal == Decimal("100.00")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
