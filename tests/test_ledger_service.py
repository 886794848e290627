"""
Tests for LedgerService (against the fake Supabase client).
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from family_finance.audit import AuditLogger
from family_finance.errors import StorageError, ValidationError
from family_finance.ledger import LedgerService
from family_finance.models.audit import AuditEventType
from family_finance.models.ledger import (
    CategoryType,
    STARTER_CATEGORIES,
    TransactionStatus,
    TransactionType,
)


@pytest.fixture
def audit_logger():
    return AuditLogger()


@pytest.fixture
def ledger(ledger_storage, validator, audit_logger):
    return LedgerService(ledger_storage, uuid4(), validator, audit_logger)


def event_types(audit_logger):
    return [e.event_type for e in audit_logger.recent_events]


class TestLoading:
    """Tests for load()."""

    @pytest.mark.asyncio
    async def test_empty_context_gets_starter_categories(self, ledger, fake_db, audit_logger):
        await ledger.load()

        assert len(ledger.categories) == len(STARTER_CATEGORIES)
        assert ledger.transactions == []
        assert len(fake_db.calls_to("categories", "insert")) == 1
        assert AuditEventType.CATEGORIES_SEEDED in event_types(audit_logger)

    @pytest.mark.asyncio
    async def test_existing_categories_are_not_reseeded(self, ledger, fake_db):
        await ledger.load()
        await ledger.load()

        assert len(ledger.categories) == len(STARTER_CATEGORIES)
        assert len(fake_db.calls_to("categories", "insert")) == 1

    @pytest.mark.asyncio
    async def test_transactions_sorted_newest_first(
        self, ledger, ledger_storage, make_transaction,
    ):
        for day in (5, 20, 12):
            await ledger_storage.add_transaction(
                make_transaction(date=date(2024, 1, day)), ledger.data_context_id,
            )

        await ledger.load()

        assert [t.date.day for t in ledger.transactions] == [20, 12, 5]

    @pytest.mark.asyncio
    async def test_malformed_rows_do_not_break_load(self, ledger, fake_db):
        context_id = str(ledger.data_context_id)
        fake_db.tables["transactions"] = [
            {"id": str(uuid4()), "title": "TV", "amount": "300", "date": "2024-01-05",
             "installments": "{bad json", "data_context_id": context_id},
            {"id": str(uuid4()), "title": "Estorno", "amount": "-10", "date": "2024-01-06",
             "data_context_id": context_id},
            {"id": str(uuid4()), "title": "Sem data", "amount": "5",
             "data_context_id": context_id},
        ]

        await ledger.load()

        by_title = {t.title: t for t in ledger.transactions}
        assert set(by_title) == {"TV", "Estorno"}
        assert by_title["TV"].installments is None
        assert by_title["Estorno"].amount == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_failed_load_keeps_previous_state(self, ledger, fake_db, audit_logger):
        await ledger.load()
        fake_db.failures = [StorageError("boom")]

        with pytest.raises(StorageError):
            await ledger.load()
        assert len(ledger.categories) == len(STARTER_CATEGORIES)
        assert AuditEventType.STORAGE_ERROR in event_types(audit_logger)


class TestCategories:
    """Tests for category management."""

    @pytest.mark.asyncio
    async def test_add_category(self, ledger):
        await ledger.load()
        category = await ledger.add_category("Pets", CategoryType.EXPENSE, "150")

        assert category.budget == Decimal("150.00")
        assert category.data_context_id == ledger.data_context_id
        assert "Pets" in [c.name for c in ledger.categories]

    @pytest.mark.asyncio
    async def test_duplicate_name_makes_no_storage_call(self, ledger, fake_db, audit_logger):
        await ledger.load()
        calls_before = len(fake_db.calls)

        with pytest.raises(ValidationError):
            await ledger.add_category("alimentação", CategoryType.EXPENSE, 100)
        assert len(fake_db.calls) == calls_before
        assert AuditEventType.VALIDATION_REJECTED in event_types(audit_logger)

    @pytest.mark.asyncio
    async def test_edit_category(self, ledger):
        await ledger.load()
        casa = next(c for c in ledger.categories if c.name == "Casa")

        edited = await ledger.edit_category(casa.id, "Moradia", CategoryType.EXPENSE, 2000)

        assert edited.name == "Moradia"
        assert edited.budget == Decimal("2000.00")
        names = [c.name for c in ledger.categories]
        assert "Moradia" in names
        assert "Casa" not in names

    @pytest.mark.asyncio
    async def test_delete_category_in_use_is_refused(
        self, ledger, fake_db, make_transaction,
    ):
        """A category referenced by a transaction is never deleted."""
        await ledger.load()
        await ledger.add_transaction(make_transaction(category="Alimentação"))
        food = next(c for c in ledger.categories if c.name == "Alimentação")

        with pytest.raises(ValidationError) as exc_info:
            await ledger.delete_category(food.id)

        assert "Integridade" in exc_info.value.message
        assert fake_db.calls_to("categories", "delete") == []
        assert food in ledger.categories

    @pytest.mark.asyncio
    async def test_delete_unused_category(self, ledger, fake_db):
        await ledger.load()
        lazer = next(c for c in ledger.categories if c.name == "Lazer")

        await ledger.delete_category(lazer.id)

        assert lazer.id not in [c.id for c in ledger.categories]
        assert len(fake_db.calls_to("categories", "delete")) == 1


class TestTransactions:
    """Tests for transaction mutations."""

    @pytest.mark.asyncio
    async def test_add_single_transaction(self, ledger, make_transaction):
        await ledger.load()
        stored = await ledger.add_transaction(make_transaction(amount="42.50"))

        assert len(stored) == 1
        assert ledger.transactions[0].id == stored[0].id
        assert ledger.transactions[0].amount == Decimal("42.50")

    @pytest.mark.asyncio
    async def test_installment_plan_is_one_insert(self, ledger, fake_db, make_transaction):
        await ledger.load()
        stored = await ledger.add_transaction(
            make_transaction(amount=900, date=date(2024, 1, 31)), 3,
        )

        assert [t.installments.current for t in stored] == [1, 2, 3]
        assert sum(t.amount for t in stored) == Decimal("900.00")
        assert len(fake_db.calls_to("transactions", "insert")) == 1
        assert len(ledger.transactions) == 3

    @pytest.mark.asyncio
    async def test_failed_insert_leaves_ledger_unchanged(
        self, ledger, fake_db, make_transaction, audit_logger,
    ):
        await ledger.load()
        fake_db.reject_inserts.add("transactions")

        with pytest.raises(StorageError):
            await ledger.add_transaction(make_transaction(amount=900), 3)
        assert ledger.transactions == []
        assert AuditEventType.STORAGE_ERROR in event_types(audit_logger)

    @pytest.mark.asyncio
    async def test_invalid_draft_is_rejected(self, ledger, fake_db, make_transaction):
        await ledger.load()
        with pytest.raises(ValidationError):
            await ledger.add_transaction(make_transaction(title=""))
        assert fake_db.calls_to("transactions", "insert") == []

    @pytest.mark.asyncio
    async def test_update_transaction(self, ledger, make_transaction):
        await ledger.load()
        [stored] = await ledger.add_transaction(make_transaction())

        edited = stored.model_copy(update={"title": "Feira"})
        await ledger.update_transaction(edited)

        assert ledger.transactions[0].title == "Feira"

    @pytest.mark.asyncio
    async def test_toggle_status_round_trip(self, ledger, make_transaction):
        await ledger.load()
        [stored] = await ledger.add_transaction(
            make_transaction(payment_date=date(2024, 1, 10)),
        )

        pending = await ledger.toggle_status(stored.id, today=date(2024, 2, 1))
        assert pending.status == TransactionStatus.PENDING
        assert pending.payment_date is None

        paid = await ledger.toggle_status(stored.id, today=date(2024, 2, 1))
        assert paid.status == TransactionStatus.PAID
        assert paid.payment_date == date(2024, 2, 1)

    @pytest.mark.asyncio
    async def test_delete_one_installment_keeps_siblings(self, ledger, make_transaction):
        await ledger.load()
        plan = await ledger.add_transaction(make_transaction(amount=300), 3)

        await ledger.delete_transaction(plan[1].id)

        remaining = {t.id for t in ledger.transactions}
        assert remaining == {plan[0].id, plan[2].id}

    @pytest.mark.asyncio
    async def test_mark_as_paid(self, ledger, fake_db, make_transaction):
        await ledger.load()
        plan = await ledger.add_transaction(make_transaction(amount=300), 3)
        pending_ids = [t.id for t in plan[1:]]

        confirmed = await ledger.mark_as_paid(pending_ids, date(2024, 3, 5))

        assert set(confirmed) == set(pending_ids)
        assert len(fake_db.calls_to("transactions", "update")) == 1
        for t in ledger.transactions:
            assert t.status == TransactionStatus.PAID
        settled = [t for t in ledger.transactions if t.id in set(pending_ids)]
        assert all(t.payment_date == date(2024, 3, 5) for t in settled)

    @pytest.mark.asyncio
    async def test_mark_as_paid_leaves_income_alone(self, ledger, make_transaction):
        await ledger.load()
        [bill] = await ledger.add_transaction(
            make_transaction(status=TransactionStatus.PENDING),
        )
        [income] = await ledger.add_transaction(
            make_transaction(type=TransactionType.INCOME, status=TransactionStatus.PENDING),
        )

        confirmed = await ledger.mark_as_paid([bill.id, income.id], date(2024, 3, 5))

        assert confirmed == [bill.id]
        [kept] = [t for t in ledger.transactions if t.id == income.id]
        assert kept.status == TransactionStatus.PENDING
        assert kept.payment_date is None

    @pytest.mark.asyncio
    async def test_tiny_amount_cannot_be_split(self, ledger, fake_db, make_transaction):
        await ledger.load()
        with pytest.raises(ValidationError) as exc_info:
            await ledger.add_transaction(make_transaction(amount="0.05"), 10)
        assert exc_info.value.field == "installments"
        assert fake_db.calls_to("transactions", "insert") == []

    @pytest.mark.asyncio
    async def test_mark_nothing(self, ledger, fake_db):
        assert await ledger.mark_as_paid([], date(2024, 3, 5)) == []
        assert fake_db.calls == []


class TestReports:
    """Tests for reports computed from the loaded ledger."""

    @pytest.mark.asyncio
    async def test_budget_report_uses_selected_month(self, ledger, make_transaction):
        await ledger.load()
        casa = next(c for c in ledger.categories if c.name == "Casa")
        await ledger.edit_category(casa.id, "Casa", CategoryType.EXPENSE, 1000)
        await ledger.add_transaction(make_transaction(amount=400, category="Casa"))
        await ledger.add_transaction(
            make_transaction(amount=999, category="Casa", date=date(2024, 2, 1)),
        )

        row = next(r for r in ledger.budget_report(0, 2024).rows if r.category == "Casa")

        assert row.spent == Decimal("400.00")
        assert row.percent_used == Decimal("40.00")

    @pytest.mark.asyncio
    async def test_monthly_summary_and_evolution(self, ledger, make_transaction):
        await ledger.load()
        await ledger.add_transaction(make_transaction(amount=250))

        assert ledger.monthly_summary(0, 2024).expense == Decimal("250.00")
        assert ledger.evolution(2024)[0] == Decimal("250.00")
        assert ledger.category_evolution(2024)[0].totals == {"Alimentação": Decimal("250.00")}
