"""
Tests for the Supabase storage gateway (against FakeSupabase).
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

import httpx
from postgrest.exceptions import APIError

from family_finance.errors import ConnectionError, NotFoundError, StorageError
from family_finance.ledger.installments import expand_installments
from family_finance.models.account import Account
from family_finance.models.ledger import (
    Category,
    InstallmentInfo,
    STARTER_CATEGORIES,
    TransactionStatus,
    TransactionType,
)
from family_finance.services.storage.supabase_store import (
    account_to_row,
    category_to_row,
    row_to_account,
    row_to_category,
    row_to_transaction,
    transaction_to_row,
)


class TestRowMapping:
    """Tests for the row <-> model mapping."""

    def test_transaction_row_shape(self, make_transaction):
        context_id = uuid4()
        t = make_transaction(
            amount="12.34",
            payment_date=date(2024, 1, 11),
            installments=InstallmentInfo(current=1, total=2),
        )
        row = transaction_to_row(t, context_id)

        assert row["id"] == str(t.id)
        assert row["amount"] == 12.34
        assert row["date"] == "2024-01-10"
        assert row["payment_date"] == "2024-01-11"
        assert row["installments"] == {"current": 1, "total": 2}
        assert row["data_context_id"] == str(context_id)

    def test_update_payload_has_no_identity(self, make_transaction):
        row = transaction_to_row(make_transaction())
        assert "id" not in row
        assert "data_context_id" not in row
        assert "created_at" not in row

    def test_legacy_transaction_row(self):
        """String amount, missing status, installments as JSON text."""
        row = {
            "id": str(uuid4()),
            "title": "TV",
            "amount": "1500.5",
            "type": "expense",
            "category": "Casa",
            "date": "2023-12-01",
            "installments": '{"current": 2, "total": 10}',
            "created_at": "2023-12-01T10:00:00+00:00",
            "data_context_id": str(uuid4()),
        }
        t = row_to_transaction(row)

        assert t.amount == Decimal("1500.50")
        assert t.status == TransactionStatus.PAID
        assert t.installments == InstallmentInfo(current=2, total=10)

    def test_unparseable_amount_becomes_zero(self):
        row = {"id": str(uuid4()), "title": "X", "amount": "n/a", "date": "2024-01-01"}
        assert row_to_transaction(row).amount == Decimal("0.00")

    @pytest.mark.parametrize("installments", [
        "{bad json",
        "[1, 2]",
        {"current": 3, "total": 2},
        {"current": "x"},
    ])
    def test_malformed_installments_are_dropped(self, installments):
        row = {"id": str(uuid4()), "title": "TV", "amount": "10", "date": "2024-01-01",
               "installments": installments}
        assert row_to_transaction(row).installments is None

    def test_negative_amount_keeps_magnitude(self):
        row = {"id": str(uuid4()), "title": "X", "amount": "-10", "date": "2024-01-01"}
        assert row_to_transaction(row).amount == Decimal("10.00")

    def test_row_without_date_is_a_storage_error(self):
        with pytest.raises(StorageError):
            row_to_transaction({"id": str(uuid4()), "title": "X", "amount": "1"})

    def test_negative_budget_reads_as_no_budget(self):
        row = {"id": str(uuid4()), "name": "Casa", "budget": "-50"}
        assert row_to_category(row).budget == Decimal("0.00")

    def test_category_row(self):
        context_id = uuid4()
        row = category_to_row(Category(name="Pets", budget="80"), context_id)
        assert row["budget"] == 80.0
        assert row["type"] == "expense"
        assert row["data_context_id"] == str(context_id)

    def test_account_row_round_trip(self):
        owner_id = uuid4()
        member = Account(
            id=uuid4(),
            name="Bia",
            email="bia@example.com",
            parent_id=owner_id,
            data_context_id=owner_id,
        )
        row = account_to_row(member, "managed_profile")

        assert row["password"] == "managed_profile"
        assert row["parent_id"] == str(owner_id)
        assert row_to_account(row).profile_fields() == member.profile_fields()


class TestLedgerStorage:
    """Tests for SupabaseLedgerStorage."""

    @pytest.mark.asyncio
    async def test_seed_and_fetch_categories(self, ledger_storage, fake_db):
        context_id = uuid4()
        seeded = await ledger_storage.seed_categories(context_id)
        fetched = await ledger_storage.fetch_categories(context_id)

        assert len(seeded) == len(STARTER_CATEGORIES)
        assert {c.name for c in fetched} == {name for name, _ in STARTER_CATEGORIES}
        assert len(fake_db.calls_to("categories", "insert")) == 1

    @pytest.mark.asyncio
    async def test_fetch_is_scoped_by_context(self, ledger_storage, make_transaction):
        mine, other = uuid4(), uuid4()
        await ledger_storage.add_transaction(make_transaction(title="Mine"), mine)
        await ledger_storage.add_transaction(make_transaction(title="Other"), other)

        titles = [t.title for t in await ledger_storage.fetch_transactions(mine)]
        assert titles == ["Mine"]

    @pytest.mark.asyncio
    async def test_installments_inserted_in_one_request(
        self, ledger_storage, fake_db, make_transaction, validator,
    ):
        records = expand_installments(make_transaction(amount=900), 3, validator)
        stored = await ledger_storage.add_transactions(records, uuid4())

        assert [t.id for t in stored] == [t.id for t in records]
        assert len(fake_db.calls_to("transactions", "insert")) == 1

    @pytest.mark.asyncio
    async def test_failed_batch_stores_nothing(
        self, ledger_storage, fake_db, make_transaction, validator,
    ):
        fake_db.reject_inserts.add("transactions")
        records = expand_installments(make_transaction(amount=900), 3, validator)

        with pytest.raises(StorageError):
            await ledger_storage.add_transactions(records, uuid4())
        assert fake_db.tables.get("transactions", []) == []

    @pytest.mark.asyncio
    async def test_update_category(self, ledger_storage):
        context_id = uuid4()
        stored = await ledger_storage.add_category(Category(name="Pets"), context_id)
        changed = stored.model_copy(update={"name": "Animais", "budget": Decimal("50.00")})

        updated = await ledger_storage.update_category(changed)

        assert updated.name == "Animais"
        assert updated.budget == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_update_missing_row(self, ledger_storage, make_transaction):
        with pytest.raises(NotFoundError):
            await ledger_storage.update_transaction(make_transaction())

    @pytest.mark.asyncio
    async def test_mark_as_paid(self, ledger_storage, fake_db, make_transaction):
        context_id = uuid4()
        a = await ledger_storage.add_transaction(
            make_transaction(status=TransactionStatus.PENDING), context_id,
        )
        b = await ledger_storage.add_transaction(
            make_transaction(status=TransactionStatus.PENDING), context_id,
        )

        updated = await ledger_storage.mark_as_paid([a.id, b.id], date(2024, 2, 1))
        fetched = await ledger_storage.fetch_transactions(context_id)

        assert set(updated) == {a.id, b.id}
        assert all(t.status == TransactionStatus.PAID for t in fetched)
        assert all(t.payment_date == date(2024, 2, 1) for t in fetched)
        assert len(fake_db.calls_to("transactions", "update")) == 1

    @pytest.mark.asyncio
    async def test_mark_as_paid_skips_income(self, ledger_storage, fake_db, make_transaction):
        context_id = uuid4()
        bill = await ledger_storage.add_transaction(
            make_transaction(status=TransactionStatus.PENDING), context_id,
        )
        income = await ledger_storage.add_transaction(
            make_transaction(type=TransactionType.INCOME, status=TransactionStatus.PENDING),
            context_id,
        )

        updated = await ledger_storage.mark_as_paid([bill.id, income.id], date(2024, 2, 1))

        assert updated == [bill.id]
        [income_row] = [
            r for r in fake_db.tables["transactions"] if r["id"] == str(income.id)
        ]
        assert income_row["status"] == "pending"
        assert income_row["payment_date"] is None

    @pytest.mark.asyncio
    async def test_mark_nothing_makes_no_call(self, ledger_storage, fake_db):
        assert await ledger_storage.mark_as_paid([], date(2024, 2, 1)) == []
        assert fake_db.calls == []

    @pytest.mark.asyncio
    async def test_delete_transaction(self, ledger_storage, make_transaction):
        context_id = uuid4()
        stored = await ledger_storage.add_transaction(make_transaction(), context_id)
        await ledger_storage.delete_transaction(stored.id)
        assert await ledger_storage.fetch_transactions(context_id) == []


class TestClientErrors:
    """Tests for retries and error translation in SupabaseClient."""

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self, ledger_storage, fake_db):
        fake_db.failures = [httpx.ConnectError("connection reset")]
        categories = await ledger_storage.fetch_categories(uuid4())

        assert categories == []
        assert len(fake_db.calls) == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, ledger_storage, fake_db):
        fake_db.failures = [asyncio.TimeoutError()] * 5

        with pytest.raises(ConnectionError):
            await ledger_storage.fetch_categories(uuid4())
        assert len(fake_db.calls) == 3

    @pytest.mark.asyncio
    async def test_api_error_is_not_retried(self, ledger_storage, fake_db):
        fake_db.failures = [APIError({
            "message": "permission denied",
            "code": "42501",
            "hint": None,
            "details": None,
        })]

        with pytest.raises(StorageError) as exc_info:
            await ledger_storage.fetch_transactions(uuid4())
        assert "permission denied" in exc_info.value.message
        assert len(fake_db.calls) == 1
