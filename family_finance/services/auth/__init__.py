"""Auth package: identity provider interface and Supabase implementation."""

from family_finance.services.auth.interface import (
    AuthIdentity,
    AuthProviderInterface,
)
from family_finance.services.auth.supabase_auth import SupabaseAuthProvider

__all__ = ["AuthIdentity", "AuthProviderInterface", "SupabaseAuthProvider"]
