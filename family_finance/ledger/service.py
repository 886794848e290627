"""
Ledger Service

Holds the categories and transactions of ONE data context in memory
and runs every mutation through the same flow:

    validate locally -> storage call -> apply the returned entity

DESIGN DECISION: The in-memory lists are the source of truth for what
is displayed until the next `load()`. A failed storage call raises
and leaves them untouched (no partial apply), so the UI never shows
something the database did not accept.

Reports are computed on demand from the in-memory transactions.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from family_finance.audit import AuditLogger, get_logger
from family_finance.errors import NotFoundError, StorageError, ValidationError
from family_finance.ledger.installments import expand_installments
from family_finance.models.audit import AuditEventBuilder, AuditEventType
from family_finance.models.ledger import (
    Category,
    CategoryType,
    Transaction,
    TransactionStatus,
    to_money,
)
from family_finance.models.reports import (
    CategoryBudgetReport,
    MonthlyCategoryTotals,
    MonthlySummary,
)
from family_finance.queries import aggregation
from family_finance.services.storage.interface import LedgerStorageInterface
from family_finance.validation.validator import LedgerValidator


logger = get_logger(__name__)


class LedgerService:
    """Categories and transactions of the active data context."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        data_context_id: UUID,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._context_id = data_context_id
        self._validator = validator or LedgerValidator()
        self._audit = audit_logger
        self._categories: list[Category] = []
        self._transactions: list[Transaction] = []

    @property
    def data_context_id(self) -> UUID:
        return self._context_id

    @property
    def categories(self) -> list[Category]:
        return list(self._categories)

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._transactions)

    def _log(self, event) -> None:
        if self._audit:
            self._audit.log(event)

    def _reject(self, error: ValidationError) -> None:
        self._log(AuditEventBuilder.validation_rejected(
            field=error.field,
            message=error.message,
            data_context_id=self._context_id,
        ))

    def _storage_failed(self, operation: str, error: StorageError) -> None:
        self._log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error.message,
            data_context_id=self._context_id,
        ))

    def _find_category(self, category_id: UUID) -> Category:
        for category in self._categories:
            if category.id == category_id:
                return category
        raise NotFoundError(f"Category not found: {category_id}")

    def _find_transaction(self, transaction_id: UUID) -> Transaction:
        for transaction in self._transactions:
            if transaction.id == transaction_id:
                return transaction
        raise NotFoundError(f"Transaction not found: {transaction_id}")

    def _replace_transaction(self, updated: Transaction) -> None:
        self._transactions = [
            updated if t.id == updated.id else t
            for t in self._transactions
        ]

    # =========================================================================
    # LOADING
    # =========================================================================

    async def load(self) -> None:
        """
        Fetch categories and transactions in parallel.

        A context without any category gets the starter set, strictly
        after the fetch came back empty.
        """
        try:
            categories, transactions = await asyncio.gather(
                self._storage.fetch_categories(self._context_id),
                self._storage.fetch_transactions(self._context_id),
            )
            if not categories:
                categories = await self._storage.seed_categories(self._context_id)
                self._log(AuditEventBuilder.categories_seeded(
                    self._context_id, len(categories),
                ))
        except StorageError as e:
            self._storage_failed("load", e)
            raise

        self._categories = list(categories)
        self._transactions = sorted(
            transactions,
            key=lambda t: t.date,
            reverse=True,
        )
        logger.info(
            "ledger_loaded",
            data_context_id=str(self._context_id),
            categories=len(self._categories),
            transactions=len(self._transactions),
        )

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def add_category(
        self,
        name: str,
        category_type: CategoryType = CategoryType.EXPENSE,
        budget=None,
    ) -> Category:
        """
        Create a category.

        Raises:
            ValidationError: Duplicate name or non-positive budget
            StorageError: If the insert failed
        """
        amount = to_money(budget) if budget is not None else None
        try:
            self._validator.check_category_name_unique(name, self._categories)
            self._validator.check_budget(amount)
        except ValidationError as e:
            self._reject(e)
            raise

        draft = Category(name=name, type=category_type, budget=amount)
        try:
            stored = await self._storage.add_category(draft, self._context_id)
        except StorageError as e:
            self._storage_failed("add_category", e)
            raise

        self._categories = [*self._categories, stored]
        self._log(AuditEventBuilder.category_changed(
            AuditEventType.CATEGORY_CREATED, stored.id, stored.name, self._context_id,
        ))
        return stored

    async def edit_category(
        self,
        category_id: UUID,
        name: str,
        category_type: CategoryType,
        budget=None,
    ) -> Category:
        """
        Rename / retype / rebudget a category.

        Transactions keep the category name they were saved with.
        """
        current = self._find_category(category_id)
        amount = to_money(budget) if budget is not None else None
        try:
            self._validator.check_category_name_unique(
                name, self._categories, exclude_id=category_id,
            )
            self._validator.check_budget(amount)
        except ValidationError as e:
            self._reject(e)
            raise

        changed = current.model_copy(update={
            "name": name.strip(),
            "type": category_type,
            "budget": amount,
        })
        try:
            stored = await self._storage.update_category(changed)
        except StorageError as e:
            self._storage_failed("update_category", e)
            raise

        self._categories = [
            stored if c.id == category_id else c for c in self._categories
        ]
        self._log(AuditEventBuilder.category_changed(
            AuditEventType.CATEGORY_UPDATED, stored.id, stored.name, self._context_id,
        ))
        return stored

    async def delete_category(self, category_id: UUID) -> None:
        """
        Delete an unused category.

        Raises:
            ValidationError: If any transaction references it by name.
                             No storage call is made in that case.
        """
        category = self._find_category(category_id)
        try:
            self._validator.check_category_deletable(category, self._transactions)
        except ValidationError as e:
            self._reject(e)
            raise

        try:
            await self._storage.delete_category(category_id)
        except StorageError as e:
            self._storage_failed("delete_category", e)
            raise

        self._categories = [c for c in self._categories if c.id != category_id]
        self._log(AuditEventBuilder.category_changed(
            AuditEventType.CATEGORY_DELETED, category.id, category.name, self._context_id,
        ))

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def add_transaction(
        self,
        draft: Transaction,
        installment_count: int = 1,
    ) -> list[Transaction]:
        """
        Validate, expand into installments and insert.

        An installment plan is stored in one request.

        Returns:
            The stored records, first installment first
        """
        try:
            self._validator.check_transaction_draft(draft)
            records = expand_installments(draft, installment_count, self._validator)
        except ValidationError as e:
            self._reject(e)
            raise

        try:
            if len(records) == 1:
                stored = [await self._storage.add_transaction(records[0], self._context_id)]
            else:
                stored = await self._storage.add_transactions(records, self._context_id)
        except StorageError as e:
            self._storage_failed("add_transaction", e)
            raise

        self._transactions = [*stored, *self._transactions]
        self._log(AuditEventBuilder.transactions_added(
            self._context_id,
            [t.id for t in stored],
            str(sum((t.amount for t in stored), Decimal("0.00"))),
        ))
        return stored

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        """Save an edited transaction (installment siblings untouched)."""
        self._find_transaction(transaction.id)
        try:
            self._validator.check_transaction_draft(transaction)
        except ValidationError as e:
            self._reject(e)
            raise

        try:
            stored = await self._storage.update_transaction(transaction)
        except StorageError as e:
            self._storage_failed("update_transaction", e)
            raise

        self._replace_transaction(stored)
        self._log(AuditEventBuilder.transaction_changed(
            AuditEventType.TRANSACTION_UPDATED, stored.id, self._context_id,
        ))
        return stored

    async def toggle_status(
        self,
        transaction_id: UUID,
        today: Optional[date] = None,
    ) -> Transaction:
        """
        Flip paid <-> pending.

        Becoming paid keeps an existing payment date, else uses `today`.
        """
        current = self._find_transaction(transaction_id)
        toggled = current.toggled(today or date.today())
        try:
            stored = await self._storage.update_transaction(toggled)
        except StorageError as e:
            self._storage_failed("toggle_status", e)
            raise

        self._replace_transaction(stored)
        self._log(AuditEventBuilder.transaction_changed(
            AuditEventType.TRANSACTION_STATUS_CHANGED,
            stored.id,
            self._context_id,
            details={"status": stored.status.value},
        ))
        return stored

    async def delete_transaction(self, transaction_id: UUID) -> None:
        """Delete one record. Other installments of the plan stay."""
        self._find_transaction(transaction_id)
        try:
            await self._storage.delete_transaction(transaction_id)
        except StorageError as e:
            self._storage_failed("delete_transaction", e)
            raise

        self._transactions = [t for t in self._transactions if t.id != transaction_id]
        self._log(AuditEventBuilder.transaction_changed(
            AuditEventType.TRANSACTION_DELETED, transaction_id, self._context_id,
        ))

    async def mark_as_paid(
        self,
        transaction_ids: list[UUID],
        payment_date: date,
    ) -> list[UUID]:
        """
        Settle several bills at once.

        Returns:
            The ids the database confirmed
        """
        if not transaction_ids:
            return []

        try:
            updated = await self._storage.mark_as_paid(transaction_ids, payment_date)
        except StorageError as e:
            self._storage_failed("mark_as_paid", e)
            raise

        confirmed = set(updated)
        self._transactions = [
            Transaction(**{
                **t.model_dump(),
                "status": TransactionStatus.PAID,
                "payment_date": payment_date,
            })
            if t.id in confirmed else t
            for t in self._transactions
        ]
        self._log(AuditEventBuilder.marked_paid(
            self._context_id, updated, payment_date.isoformat(),
        ))
        return updated

    # =========================================================================
    # REPORTS
    # =========================================================================

    def monthly_summary(self, month: int, year: int) -> MonthlySummary:
        return aggregation.monthly_summary(self._transactions, month, year)

    def budget_report(self, month: int, year: int) -> CategoryBudgetReport:
        window = aggregation.filter_by_month(self._transactions, month, year)
        return aggregation.category_budget_report(self._categories, window)

    def evolution(self, year: int) -> list[Decimal]:
        return aggregation.yearly_expense_series(self._transactions, year)

    def category_evolution(self, year: int) -> list[MonthlyCategoryTotals]:
        return aggregation.yearly_category_series(self._transactions, year)
