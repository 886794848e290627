"""
Supabase Auth Provider

Uses the SAME SupabaseClient as the storage gateway: the session it
creates is what row level security sees on table requests.

Provider messages are translated with `translate_auth_message` here,
so the UI only ever shows friendly Portuguese text.
"""

import asyncio
from typing import Any, Optional
from uuid import UUID

import httpx
from supabase_auth.errors import AuthError as ProviderAuthError

from family_finance.audit import get_logger
from family_finance.errors import AuthError, translate_auth_message
from family_finance.services.auth.interface import (
    AuthIdentity,
    AuthProviderInterface,
)
from family_finance.services.storage.supabase_store import SupabaseClient


logger = get_logger(__name__)


def _identity(user: Any, session: Any) -> AuthIdentity:
    metadata = getattr(user, "user_metadata", None) or {}
    return AuthIdentity(
        user_id=UUID(str(user.id)),
        email=getattr(user, "email", None),
        name=metadata.get("name"),
        has_session=session is not None,
    )


class SupabaseAuthProvider(AuthProviderInterface):
    """Supabase Auth (e-mail + password)."""
    
    def __init__(self, client: Optional[SupabaseClient] = None):
        self._client = client or SupabaseClient()
    
    async def _call(self, operation: str, coro_factory):
        timeout = self._client.settings.timeout_seconds
        try:
            return await asyncio.wait_for(coro_factory(), timeout=timeout)
        except ProviderAuthError as e:
            logger.warning("auth_rejected", operation=operation, error=e.message)
            raise AuthError(translate_auth_message(e.message)) from e
        except (httpx.TransportError, asyncio.TimeoutError) as e:
            logger.error("auth_unreachable", operation=operation, error=str(e))
            raise AuthError(
                "Não foi possível conectar ao servidor. Verifique sua conexão."
            ) from e
    
    async def sign_up(self, name: str, email: str, password: str) -> AuthIdentity:
        auth = await self._client.auth()
        response = await self._call(
            "sign_up",
            lambda: auth.sign_up({
                "email": email,
                "password": password,
                "options": {"data": {"name": name}},
            }),
        )
        if response is None or response.user is None:
            raise AuthError("Erro desconhecido ao registrar.")
        return _identity(response.user, response.session)
    
    async def sign_in(self, email: str, password: str) -> AuthIdentity:
        auth = await self._client.auth()
        response = await self._call(
            "sign_in",
            lambda: auth.sign_in_with_password({
                "email": email,
                "password": password,
            }),
        )
        if response is None or response.user is None:
            raise AuthError("Erro ao fazer login.")
        return _identity(response.user, response.session)
    
    async def sign_out(self) -> None:
        auth = await self._client.auth()
        await self._call("sign_out", auth.sign_out)
    
    async def has_session(self) -> bool:
        auth = await self._client.auth()
        try:
            session = await self._call("get_session", auth.get_session)
        except AuthError:
            return False
        return session is not None and getattr(session, "user", None) is not None
