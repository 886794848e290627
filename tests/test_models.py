"""
Tests for Family Finance models

Test strategy:
1. Unit tests for individual components (models, validators, queries)
2. Integration tests for services (with a fake Supabase client)
3. No real API calls in tests (use fakes)
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from family_finance.models import (
    Account,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    Category,
    CategoryType,
    InstallmentInfo,
    ReceiptData,
    STARTER_CATEGORIES,
    Transaction,
    TransactionStatus,
    TransactionType,
    starter_categories,
    to_money,
)
from family_finance.models.reports import CategoryBudgetRow


class TestMoney:
    """Tests for amount coercion."""

    def test_to_money_quantizes_to_cents(self):
        assert to_money("10.005") == Decimal("10.01")
        assert to_money(3) == Decimal("3.00")

    def test_to_money_accepts_storage_strings(self):
        """Numerics may come back from the database as strings."""
        assert to_money(" 1200.5 ") == Decimal("1200.50")

    def test_to_money_defaults_garbage_to_zero(self):
        assert to_money(None) == Decimal("0.00")
        assert to_money("") == Decimal("0.00")
        assert to_money("abc") == Decimal("0.00")
        assert to_money(float("nan")) == Decimal("0.00")


class TestCategoryModel:
    """Tests for Category."""

    def test_defaults(self):
        category = Category(name="  Casa  ")
        assert category.name == "Casa"
        assert category.type == CategoryType.EXPENSE
        assert category.budget == Decimal("0.00")

    def test_budget_coerced_from_string(self):
        category = Category(name="Casa", budget="1500")
        assert category.budget == Decimal("1500.00")

    def test_rejects_negative_budget(self):
        with pytest.raises(PydanticValidationError):
            Category(name="Casa", budget="-1")

    def test_tracks_expenses(self):
        assert Category(name="A", type=CategoryType.EXPENSE).tracks_expenses
        assert Category(name="B", type=CategoryType.BOTH).tracks_expenses
        assert not Category(name="C", type=CategoryType.INCOME).tracks_expenses

    def test_starter_set(self):
        context_id = uuid4()
        categories = starter_categories(context_id)

        assert len(categories) == len(STARTER_CATEGORIES)
        assert {c.name for c in categories} >= {"Alimentação", "Trabalho", "Outros"}
        assert all(c.data_context_id == context_id for c in categories)
        assert all(c.budget == 0 for c in categories)
        by_name = {c.name: c.type for c in categories}
        assert by_name["Trabalho"] == CategoryType.INCOME
        assert by_name["Outros"] == CategoryType.BOTH


class TestTransactionModel:
    """Tests for Transaction and the payment date rule."""

    def test_paid_expense_keeps_payment_date(self):
        t = Transaction(
            title="Luz",
            amount="150",
            type=TransactionType.EXPENSE,
            status=TransactionStatus.PAID,
            date=date(2024, 1, 10),
            payment_date=date(2024, 1, 12),
        )
        assert t.payment_date == date(2024, 1, 12)
        assert t.is_paid_expense

    def test_pending_expense_clears_payment_date(self):
        t = Transaction(
            title="Luz",
            amount="150",
            status=TransactionStatus.PENDING,
            date=date(2024, 1, 10),
            payment_date=date(2024, 1, 12),
        )
        assert t.payment_date is None

    def test_income_never_has_payment_date(self):
        t = Transaction(
            title="Salário",
            amount="5000",
            type=TransactionType.INCOME,
            status=TransactionStatus.PAID,
            date=date(2024, 1, 5),
            payment_date=date(2024, 1, 5),
        )
        assert t.payment_date is None

    def test_accepts_iso_timestamps_as_dates(self):
        t = Transaction(title="X", amount="1", date="2024-03-05T00:00:00+00:00")
        assert t.date == date(2024, 3, 5)

    def test_blank_observation_becomes_none(self):
        t = Transaction(title="X", amount="1", date=date(2024, 1, 1), observation="   ")
        assert t.observation is None

    def test_rejects_negative_amount(self):
        with pytest.raises(PydanticValidationError):
            Transaction(title="X", amount="-5", date=date(2024, 1, 1))

    def test_toggle_to_paid_uses_today(self):
        t = Transaction(title="Luz", amount="150", date=date(2024, 1, 10))
        paid = t.toggled(today=date(2024, 1, 20))

        assert paid.status == TransactionStatus.PAID
        assert paid.payment_date == date(2024, 1, 20)
        assert paid.id == t.id

    def test_toggle_back_clears_payment_date(self):
        t = Transaction(
            title="Luz",
            amount="150",
            status=TransactionStatus.PAID,
            date=date(2024, 1, 10),
            payment_date=date(2024, 1, 12),
        )
        pending = t.toggled(today=date(2024, 1, 20))

        assert pending.status == TransactionStatus.PENDING
        assert pending.payment_date is None

    def test_with_status_keeps_existing_payment_date(self):
        t = Transaction(
            title="Luz",
            amount="150",
            status=TransactionStatus.PAID,
            date=date(2024, 1, 10),
            payment_date=date(2024, 1, 12),
        )
        again = t.with_status(TransactionStatus.PAID, today=date(2024, 2, 1))
        assert again.payment_date == date(2024, 1, 12)

    def test_installment_info_bounds(self):
        assert InstallmentInfo(current=2, total=3).label() == "2/3"
        with pytest.raises(PydanticValidationError):
            InstallmentInfo(current=4, total=3)
        with pytest.raises(PydanticValidationError):
            InstallmentInfo(current=0, total=3)


class TestAccountModel:
    """Tests for Account."""

    def test_primary_account_owns_its_data(self):
        account_id = uuid4()
        account = Account(id=account_id, name="Ana", data_context_id=account_id)

        assert not account.is_member
        assert account.owns_data
        assert not account.shares_parent_data

    def test_shared_member(self):
        owner_id = uuid4()
        member = Account(
            id=uuid4(),
            name="Bia",
            parent_id=owner_id,
            data_context_id=owner_id,
        )
        assert member.is_member
        assert member.shares_parent_data
        assert not member.owns_data

    def test_profile_fields_exclude_members(self):
        owner_id = uuid4()
        member = Account(id=uuid4(), name="Bia", parent_id=owner_id, data_context_id=owner_id)
        owner = Account(id=owner_id, name="Ana", data_context_id=owner_id, members=[member])

        assert "members" not in owner.profile_fields()
        assert owner.members[0].name == "Bia"


class TestReportModels:
    """Tests for derived report rows."""

    def test_budget_row_levels(self):
        assert CategoryBudgetRow(category="A", percent_used=Decimal("50")).level == "ok"
        assert CategoryBudgetRow(category="A", percent_used=Decimal("90")).level == "warning"
        assert CategoryBudgetRow(category="A", percent_used=Decimal("120")).level == "over"

    def test_bar_width_is_capped(self):
        row = CategoryBudgetRow(category="A", percent_used=Decimal("250"))
        assert row.bar_width == Decimal(100)
        assert row.is_over_budget

    def test_receipt_amount_coercion(self):
        assert ReceiptData(title="Padaria", amount="12.5").amount == Decimal("12.50")
        assert ReceiptData(title="Padaria", amount=0).amount is None
        assert ReceiptData().is_empty


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            description="Category created: Casa",
        )
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None
        assert isinstance(event.timestamp, datetime)

    def test_audit_event_to_log_dict(self):
        context_id = uuid4()
        event = AuditEventBuilder.categories_seeded(context_id, 8)
        log_dict = event.to_log_dict()

        assert log_dict["event_type"] == "categories_seeded"
        assert log_dict["data_context_id"] == str(context_id)
        assert log_dict["details"]["count"] == 8

    def test_builder_member_added(self):
        owner_id, member_id = uuid4(), uuid4()
        event = AuditEventBuilder.member_added(owner_id, member_id, True)

        assert event.event_type == AuditEventType.MEMBER_ADDED
        assert event.entity_id == member_id
        assert event.details["shares_data"] is True
        assert event.is_user_action

    def test_builder_analysis_fallback_is_warning(self):
        event = AuditEventBuilder.analysis(False, 10, "timeout")

        assert event.event_type == AuditEventType.ANALYSIS_FALLBACK
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "timeout"
