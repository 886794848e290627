"""
Supabase Storage Implementation

DESIGN DECISION: Supabase (hosted Postgres + auth + row level security)
is the storage backend because:
1. Tenant isolation is enforced by the database, on every request
2. Auth and data share one client, so table requests carry the
   signed-in user's token
3. No server of our own to run

TRADEOFFS:
- No multi-statement transactions from the client (a multi-row insert
  is still one statement, which we use for installment plans)
- Numerics can come back as strings (we coerce on read)
- Policy denials look like empty results or generic errors

This module is the ONLY place that knows the row shape of the
`accounts`, `categories` and `transactions` tables, and the single
point where provider errors become `StorageError`.
"""

import asyncio
import json
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Optional
from uuid import UUID

import httpx
from postgrest.exceptions import APIError
from pydantic import ValidationError as PydanticValidationError
from supabase import AsyncClient, acreate_client
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from family_finance.audit import get_logger
from family_finance.config import SupabaseSettings, get_settings
from family_finance.models.account import Account
from family_finance.models.ledger import (
    Category,
    InstallmentInfo,
    Transaction,
    TransactionStatus,
    TransactionType,
    starter_categories,
    to_money,
    utc_now,
)
from family_finance.services.storage.interface import (
    AccountStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


logger = get_logger(__name__)

# Transient failures worth another attempt. API errors (policy
# denials, constraint violations) are final.
TRANSIENT_ERRORS = (httpx.TransportError, asyncio.TimeoutError)


# =============================================================================
# ROW MAPPING
# =============================================================================

def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def category_to_row(category: Category, data_context_id: UUID) -> dict:
    """Convert a Category to a `categories` row."""
    return {
        "id": str(category.id),
        "name": category.name,
        "type": category.type.value,
        "budget": float(category.budget),
        "data_context_id": str(data_context_id),
    }


def row_to_category(row: dict) -> Category:
    """
    Convert a `categories` row to a Category.

    A negative budget reads as no budget.

    Raises:
        StorageError: If the row cannot be read
    """
    budget = to_money(row.get("budget"))
    try:
        return Category(
            id=UUID(str(row["id"])),
            name=row.get("name") or "",
            type=row.get("type") or "expense",
            budget=max(budget, Decimal("0.00")),
            data_context_id=row.get("data_context_id"),
            created_at=row.get("created_at"),
        )
    except (PydanticValidationError, KeyError, ValueError, TypeError) as e:
        raise StorageError(f"Unreadable category row {row.get('id')}: {e}") from e


def transaction_to_row(
    transaction: Transaction,
    data_context_id: Optional[UUID] = None,
) -> dict:
    """
    Convert a Transaction to a `transactions` row.

    Without a data context id this is the UPDATE payload: identity,
    ownership and creation time are never rewritten.
    """
    row = {
        "title": transaction.title,
        "amount": float(transaction.amount),
        "type": transaction.type.value,
        "category": transaction.category,
        "status": transaction.status.value,
        "date": transaction.date.isoformat(),
        "payment_date": _iso(transaction.payment_date),
        "observation": transaction.observation,
        "installments": (
            transaction.installments.model_dump()
            if transaction.installments
            else None
        ),
    }
    if data_context_id is not None:
        row["id"] = str(transaction.id)
        row["created_at"] = transaction.created_at.isoformat()
        row["data_context_id"] = str(data_context_id)
    return row


def _row_installments(value: Any) -> Optional[InstallmentInfo]:
    """Installment info from a row; anything malformed reads as none."""
    if isinstance(value, str):
        try:
            value = json.loads(value) if value.strip() else None
        except json.JSONDecodeError:
            return None
    if not isinstance(value, dict):
        return None
    try:
        return InstallmentInfo(**value)
    except (PydanticValidationError, TypeError):
        return None


def row_to_transaction(row: dict) -> Transaction:
    """
    Convert a `transactions` row to a Transaction.

    Tolerates legacy rows: string amounts, missing status (treated as
    paid), installments stored as a JSON string. Unreadable installments
    are dropped and a negative amount keeps its magnitude.

    Raises:
        StorageError: If the row still cannot be read (no id, no date)
    """
    amount = to_money(row.get("amount"))
    if amount < 0:
        logger.warning("negative_amount_in_row", transaction_id=row.get("id"))
        amount = -amount

    try:
        return Transaction(
            id=UUID(str(row["id"])),
            title=row.get("title") or "",
            amount=amount,
            type=row.get("type") or "expense",
            category=row.get("category") or "",
            status=row.get("status") or TransactionStatus.PAID,
            date=row["date"],
            payment_date=row.get("payment_date"),
            observation=row.get("observation"),
            installments=_row_installments(row.get("installments")),
            created_at=row.get("created_at") or utc_now(),
            data_context_id=row.get("data_context_id"),
        )
    except (PydanticValidationError, KeyError, ValueError, TypeError) as e:
        raise StorageError(f"Unreadable transaction row {row.get('id')}: {e}") from e


def readable_rows(rows: list[dict], convert: Callable[[dict], Any]) -> list:
    """Convert fetched rows, skipping (and logging) the unreadable ones."""
    converted = []
    for row in rows:
        try:
            converted.append(convert(row))
        except StorageError as e:
            logger.warning("row_skipped", row_id=row.get("id"), error=e.message)
    return converted


def account_to_row(account: Account, password_placeholder: str) -> dict:
    """Convert an Account to an `accounts` row (members are not stored)."""
    return {
        "id": str(account.id),
        "name": account.name,
        "email": account.email,
        "password": password_placeholder,
        "parent_id": str(account.parent_id) if account.parent_id else None,
        "data_context_id": str(account.data_context_id),
    }


def row_to_account(row: dict) -> Account:
    """Convert an `accounts` row to an Account (members empty)."""
    return Account(
        id=UUID(str(row["id"])),
        name=row.get("name") or (row.get("email") or "").split("@")[0] or "Usuário",
        email=row.get("email"),
        parent_id=row.get("parent_id"),
        data_context_id=row["data_context_id"],
        created_at=row.get("created_at"),
    )


# =============================================================================
# CLIENT
# =============================================================================

class SupabaseClient:
    """
    Low-level Supabase client wrapper.

    Creates the async client lazily and runs every request with an
    explicit timeout and retry logic for transient transport errors.
    """

    def __init__(
        self,
        settings: Optional[SupabaseSettings] = None,
        client: Optional[AsyncClient] = None,
        wait=None,
    ):
        self._settings = settings or get_settings().supabase
        self._client = client
        self._lock = asyncio.Lock()
        self._wait = wait or wait_exponential(multiplier=0.5, min=0.5, max=4)

    @property
    def settings(self) -> SupabaseSettings:
        return self._settings

    async def get_client(self) -> AsyncClient:
        """Get or create the async Supabase client."""
        if self._client is None:
            async with self._lock:
                if self._client is None:
                    try:
                        self._client = await acreate_client(
                            self._settings.url,
                            self._settings.anon_key,
                        )
                    except Exception as e:
                        raise ConnectionError(f"Failed to create Supabase client: {e}")
        return self._client

    async def table(self, name: str):
        """Query builder for a table."""
        client = await self.get_client()
        return client.table(name)

    async def auth(self):
        """The auth sub-client (shares the session with table requests)."""
        client = await self.get_client()
        return client.auth

    async def execute(self, builder, operation: str) -> list[dict]:
        """
        Run a query builder and return its rows.

        Raises:
            ConnectionError: Timeout or transport failure after retries
            StorageError: Any other failure, including policy denials
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._settings.max_retries),
                wait=self._wait,
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
                reraise=True,
            ):
                with attempt:
                    response = await asyncio.wait_for(
                        builder.execute(),
                        timeout=self._settings.timeout_seconds,
                    )
        except APIError as e:
            logger.warning("storage_api_error", operation=operation, code=e.code, error=e.message)
            raise StorageError(f"Failed to {operation}: {e.message}") from e
        except TRANSIENT_ERRORS as e:
            logger.error("storage_unreachable", operation=operation, error=str(e))
            raise ConnectionError(f"Failed to {operation}: connection error") from e
        except StorageError:
            raise
        except Exception as e:
            logger.error("storage_failed", operation=operation, error=str(e))
            raise StorageError(f"Failed to {operation}: {e}") from e

        data = getattr(response, "data", None)
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        return list(data)


# =============================================================================
# ACCOUNTS
# =============================================================================

class SupabaseAccountStorage(AccountStorageInterface):
    """Supabase implementation of account storage."""

    def __init__(self, client: Optional[SupabaseClient] = None):
        self._client = client or SupabaseClient()

    @property
    def _table(self) -> str:
        return self._client.settings.accounts_table

    async def get_account(self, account_id: UUID) -> Optional[Account]:
        table = await self._client.table(self._table)
        rows = await self._client.execute(
            table.select("*").eq("id", str(account_id)).limit(1),
            "load account",
        )
        return row_to_account(rows[0]) if rows else None

    async def insert_account(
        self,
        account: Account,
        password_placeholder: str,
    ) -> Account:
        table = await self._client.table(self._table)
        rows = await self._client.execute(
            table.insert(account_to_row(account, password_placeholder)),
            "create account",
        )
        return row_to_account(rows[0]) if rows else account.model_copy(update={"members": []})

    async def list_members(self, parent_id: UUID) -> list[Account]:
        table = await self._client.table(self._table)
        rows = await self._client.execute(
            table.select("*").eq("parent_id", str(parent_id)),
            "load members",
        )
        return [row_to_account(row) for row in rows]


# =============================================================================
# CATEGORIES AND TRANSACTIONS
# =============================================================================

class SupabaseLedgerStorage(LedgerStorageInterface):
    """
    Supabase implementation of ledger storage.

    Every read filters on `data_context_id`; row level security on the
    server decides whether the caller may see that context.
    """

    def __init__(self, client: Optional[SupabaseClient] = None):
        self._client = client or SupabaseClient()

    async def _categories(self):
        return await self._client.table(self._client.settings.categories_table)

    async def _transactions(self):
        return await self._client.table(self._client.settings.transactions_table)

    # --- Categories ---

    async def fetch_categories(self, data_context_id: UUID) -> list[Category]:
        table = await self._categories()
        rows = await self._client.execute(
            table.select("*").eq("data_context_id", str(data_context_id)),
            "load categories",
        )
        return readable_rows(rows, row_to_category)

    async def seed_categories(self, data_context_id: UUID) -> list[Category]:
        payload = [
            category_to_row(category, data_context_id)
            for category in starter_categories(data_context_id)
        ]
        table = await self._categories()
        rows = await self._client.execute(
            table.insert(payload),
            "create starter categories",
        )
        logger.info("categories_seeded", data_context_id=str(data_context_id), count=len(rows))
        return [row_to_category(row) for row in rows]

    async def add_category(
        self,
        category: Category,
        data_context_id: UUID,
    ) -> Category:
        table = await self._categories()
        rows = await self._client.execute(
            table.insert(category_to_row(category, data_context_id)),
            "save category",
        )
        if not rows:
            return category.model_copy(update={"data_context_id": data_context_id})
        return row_to_category(rows[0])

    async def update_category(self, category: Category) -> Category:
        table = await self._categories()
        rows = await self._client.execute(
            table.update({
                "name": category.name,
                "type": category.type.value,
                "budget": float(category.budget),
            }).eq("id", str(category.id)),
            "update category",
        )
        if not rows:
            raise NotFoundError(f"Category not found: {category.id}")
        return row_to_category(rows[0])

    async def delete_category(self, category_id: UUID) -> None:
        table = await self._categories()
        await self._client.execute(
            table.delete().eq("id", str(category_id)),
            "delete category",
        )

    # --- Transactions ---

    async def fetch_transactions(self, data_context_id: UUID) -> list[Transaction]:
        table = await self._transactions()
        rows = await self._client.execute(
            table.select("*").eq("data_context_id", str(data_context_id)),
            "load transactions",
        )
        return readable_rows(rows, row_to_transaction)

    async def add_transaction(
        self,
        transaction: Transaction,
        data_context_id: UUID,
    ) -> Transaction:
        stored = await self.add_transactions([transaction], data_context_id)
        return stored[0]

    async def add_transactions(
        self,
        transactions: list[Transaction],
        data_context_id: UUID,
    ) -> list[Transaction]:
        if not transactions:
            return []

        payload = [transaction_to_row(t, data_context_id) for t in transactions]
        table = await self._transactions()
        rows = await self._client.execute(
            table.insert(payload),
            "save transaction",
        )
        if not rows:
            # Insert accepted but nothing echoed back: trust our own copy
            return [
                t.model_copy(update={"data_context_id": data_context_id})
                for t in transactions
            ]
        return [row_to_transaction(row) for row in rows]

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        table = await self._transactions()
        rows = await self._client.execute(
            table.update(transaction_to_row(transaction)).eq("id", str(transaction.id)),
            "update transaction",
        )
        if not rows:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        return row_to_transaction(rows[0])

    async def delete_transaction(self, transaction_id: UUID) -> None:
        table = await self._transactions()
        await self._client.execute(
            table.delete().eq("id", str(transaction_id)),
            "delete transaction",
        )

    async def mark_as_paid(
        self,
        transaction_ids: list[UUID],
        payment_date: date,
    ) -> list[UUID]:
        if not transaction_ids:
            return []

        table = await self._transactions()
        rows = await self._client.execute(
            table.update({
                "status": TransactionStatus.PAID.value,
                "payment_date": payment_date.isoformat(),
            })
            .in_("id", [str(i) for i in transaction_ids])
            .eq("type", TransactionType.EXPENSE.value),
            "mark transactions as paid",
        )
        return [UUID(str(row["id"])) for row in rows]
