"""Storage package: interfaces and the Supabase implementation."""

from family_finance.services.storage.interface import (
    AccountStorageInterface,
    LedgerStorageInterface,
)
from family_finance.services.storage.supabase_store import (
    SupabaseAccountStorage,
    SupabaseClient,
    SupabaseLedgerStorage,
)

__all__ = [
    "AccountStorageInterface",
    "LedgerStorageInterface",
    "SupabaseAccountStorage",
    "SupabaseClient",
    "SupabaseLedgerStorage",
]
