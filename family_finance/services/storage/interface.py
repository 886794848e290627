"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the row shape of the hosted database in one module
2. Use a fake client in tests
3. Move transactions from name-based to id-based category
   references later without touching the services

Every operation is scoped by a data context id. The database's row
level policies decide whether the caller may use that context; the
gateway does not re-check it.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from family_finance.errors import ConnectionError, NotFoundError, StorageError
from family_finance.models.account import Account
from family_finance.models.ledger import Category, Transaction


class AccountStorageInterface(ABC):
    """
    Abstract interface for account rows.
    
    Members are found by parent id; the list is never stored.
    """
    
    @abstractmethod
    async def get_account(self, account_id: UUID) -> Optional[Account]:
        """
        Load one account row (without members).
        
        Returns:
            The account, or None if it does not exist or the caller
            may not read it
        """
        pass
    
    @abstractmethod
    async def insert_account(
        self,
        account: Account,
        password_placeholder: str,
    ) -> Account:
        """
        Insert an account row.
        
        Args:
            account: The account to store (members are ignored)
            password_placeholder: Value for the unused password column
            
        Raises:
            StorageError: If the insert is rejected
        """
        pass
    
    @abstractmethod
    async def list_members(self, parent_id: UUID) -> list[Account]:
        """
        List the member accounts whose parent is `parent_id`.
        """
        pass


class LedgerStorageInterface(ABC):
    """
    Abstract interface for categories and transactions.
    
    Mutations return what was stored so the caller can update its
    in-memory state without a refetch.
    """
    
    # --- Categories ---
    
    @abstractmethod
    async def fetch_categories(self, data_context_id: UUID) -> list[Category]:
        """Read every category of a data context."""
        pass
    
    @abstractmethod
    async def seed_categories(self, data_context_id: UUID) -> list[Category]:
        """
        Bulk insert the starter category set.
        
        Called by the ledger only when `fetch_categories` came back empty.
        """
        pass
    
    @abstractmethod
    async def add_category(
        self,
        category: Category,
        data_context_id: UUID,
    ) -> Category:
        """Insert one category."""
        pass
    
    @abstractmethod
    async def update_category(self, category: Category) -> Category:
        """
        Update name, type and budget of a category.
        
        Raises:
            NotFoundError: If no row was updated
        """
        pass
    
    @abstractmethod
    async def delete_category(self, category_id: UUID) -> None:
        """
        Delete a category.
        
        No guard against orphaned transactions here: the caller checks
        that the category is unused before calling.
        """
        pass
    
    # --- Transactions ---
    
    @abstractmethod
    async def fetch_transactions(self, data_context_id: UUID) -> list[Transaction]:
        """Read every transaction of a data context (amounts coerced to Decimal)."""
        pass
    
    @abstractmethod
    async def add_transaction(
        self,
        transaction: Transaction,
        data_context_id: UUID,
    ) -> Transaction:
        """Insert one transaction."""
        pass
    
    @abstractmethod
    async def add_transactions(
        self,
        transactions: list[Transaction],
        data_context_id: UUID,
    ) -> list[Transaction]:
        """
        Insert several transactions in one request.
        
        Used for installment plans: either every installment is stored
        or none is.
        """
        pass
    
    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> Transaction:
        """
        Replace the editable fields of a transaction.
        
        Raises:
            NotFoundError: If no row was updated
        """
        pass
    
    @abstractmethod
    async def delete_transaction(self, transaction_id: UUID) -> None:
        """Delete one transaction. Sibling installments are untouched."""
        pass
    
    @abstractmethod
    async def mark_as_paid(
        self,
        transaction_ids: list[UUID],
        payment_date: date,
    ) -> list[UUID]:
        """
        Set status = paid and the payment date on every expense id, in
        one request. Income ids are left untouched.
        
        Returns:
            The ids the database reports as updated
        """
        pass


__all__ = [
    "AccountStorageInterface",
    "ConnectionError",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageError",
]
