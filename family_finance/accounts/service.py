"""
Account Service

Primary accounts, managed member profiles and context switching.

HIERARCHY:
- A primary account is created at registration. Its id is the auth
  subject id and it owns the data context with the same id.
- A member is a managed profile created by a primary account. It has
  no login of its own; the owner reaches it by switching context.
  At creation it either shares the owner's data context or gets its
  own, and that choice never changes.

SELF-HEALING: When sign up requires e-mail confirmation there is no
session yet, so the profile row cannot be written (row level security
would refuse it). Registration stops there and the first successful
login creates the missing row.

The resolved account is cached in the session store after every
operation that changes it and cleared on logout.
"""

from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from family_finance.audit import AuditLogger, get_logger
from family_finance.errors import (
    AuthError,
    RegistrationPendingError,
    StorageError,
    ValidationError,
)
from family_finance.models.account import Account
from family_finance.models.audit import AuditEventBuilder
from family_finance.services.auth.interface import AuthProviderInterface
from family_finance.services.storage.interface import AccountStorageInterface
from family_finance.session.store import SessionCache
from family_finance.validation.validator import LedgerValidator


logger = get_logger(__name__)

# Values for the unused `password` column
PRIMARY_PASSWORD_PLACEHOLDER = "***"
MEMBER_PASSWORD_PLACEHOLDER = "managed_profile"


class ViewState(str, Enum):
    """Whose data the session is looking at."""
    LOGGED_OUT = "logged_out"
    VIEWING_OWN_CONTEXT = "viewing_own_context"
    VIEWING_MEMBER_CONTEXT = "viewing_member_context"


def view_state(account: Optional[Account]) -> ViewState:
    if account is None:
        return ViewState.LOGGED_OUT
    if account.is_member:
        return ViewState.VIEWING_MEMBER_CONTEXT
    return ViewState.VIEWING_OWN_CONTEXT


def return_target(account: Optional[Account]) -> Optional[UUID]:
    """The owner to switch back to, when viewing a member profile."""
    if view_state(account) == ViewState.VIEWING_MEMBER_CONTEXT:
        return account.parent_id
    return None


class AccountService:
    """Registration, login, members and context switching."""

    def __init__(
        self,
        auth: AuthProviderInterface,
        storage: AccountStorageInterface,
        session: SessionCache,
        validator: Optional[LedgerValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._auth = auth
        self._storage = storage
        self._session = session
        self._validator = validator or LedgerValidator()
        self._audit = audit_logger

    def _log(self, event) -> None:
        if self._audit:
            self._audit.log(event)

    async def _safe_sign_out(self) -> None:
        try:
            await self._auth.sign_out()
        except AuthError as e:
            logger.warning("sign_out_failed", error=e.message)

    async def _read_account(self, account_id: UUID) -> Optional[Account]:
        """Row by id, or None when it is missing or not readable."""
        try:
            return await self._storage.get_account(account_id)
        except StorageError as e:
            logger.warning("account_read_failed", account_id=str(account_id), error=e.message)
            return None

    async def _members_of(self, account: Account) -> list[Account]:
        try:
            return await self._storage.list_members(account.id)
        except StorageError as e:
            logger.warning("members_read_failed", account_id=str(account.id), error=e.message)
            return []

    async def _with_members(self, account: Account) -> Account:
        members = await self._members_of(account)
        return account.model_copy(update={"members": members})

    # =========================================================================
    # REGISTRATION / LOGIN
    # =========================================================================

    async def register(self, name: str, email: str, password: str) -> Account:
        """
        Create an auth identity and its primary account row.

        Raises:
            ValidationError: Incomplete form or short password
            RegistrationPendingError: E-mail confirmation required first
            AuthError: Provider rejection, or the row could not be created
        """
        self._validator.check_credentials(email, password, name, require_name=True)

        try:
            identity = await self._auth.sign_up(name.strip(), email.strip(), password)
        except AuthError as e:
            self._log(AuditEventBuilder.auth_failed("register", e.message))
            raise

        if not identity.has_session:
            self._log(AuditEventBuilder.registration_pending(email))
            raise RegistrationPendingError()

        account = Account(
            id=identity.user_id,
            name=name,
            email=email,
            data_context_id=identity.user_id,
        )
        try:
            stored = await self._storage.insert_account(account, PRIMARY_PASSWORD_PLACEHOLDER)
        except StorageError as e:
            # Someone (a trigger, a parallel request) may have created it already
            stored = await self._read_account(identity.user_id)
            if stored is None:
                await self._safe_sign_out()
                self._log(AuditEventBuilder.auth_failed("register", e.message))
                raise AuthError(
                    f"Erro ao criar perfil no banco de dados: {e.message}"
                ) from e

        self._session.save(stored)
        self._log(AuditEventBuilder.account_registered(stored.id, email))
        return stored

    async def login(self, email: str, password: str) -> Account:
        """
        Authenticate and load the account with its members.

        A missing profile row is created on the fly from the identity.

        Raises:
            ValidationError: Incomplete form
            AuthError: Bad credentials, rate limiting, or the missing
                       profile could not be created (session is ended)
        """
        self._validator.check_credentials(email, password)

        try:
            identity = await self._auth.sign_in(email.strip(), password)
        except AuthError as e:
            self._log(AuditEventBuilder.auth_failed("login", e.message))
            raise

        account = await self._read_account(identity.user_id)
        if account is None:
            account = await self._recover_profile(identity, email)

        account = await self._with_members(account)
        self._session.save(account)
        self._log(AuditEventBuilder.logged_in(account.id, len(account.members)))
        return account

    async def _recover_profile(self, identity, email: str) -> Account:
        logger.warning("profile_missing", account_id=str(identity.user_id))
        account = Account(
            id=identity.user_id,
            name=identity.display_name(email),
            email=identity.email or email,
            data_context_id=identity.user_id,
        )
        try:
            stored = await self._storage.insert_account(account, PRIMARY_PASSWORD_PLACEHOLDER)
        except StorageError as e:
            await self._safe_sign_out()
            self._log(AuditEventBuilder.auth_failed("login", e.message))
            raise AuthError(
                "Perfil de usuário não encontrado e não foi possível criá-lo: "
                f"{e.message}"
            ) from e

        self._log(AuditEventBuilder.profile_recovered(stored.id))
        return stored

    # =========================================================================
    # MEMBERS / CONTEXT
    # =========================================================================

    async def add_member(
        self,
        owner: Account,
        name: str,
        email: str = "",
        password: str = "",
        share_data: bool = False,
    ) -> Account:
        """
        Create a managed profile under `owner`.

        The password is not stored: managed profiles cannot log in.

        Returns:
            `owner` with a refreshed member list

        Raises:
            ValidationError: Missing name, or the insert was refused
        """
        if not (name or "").strip():
            raise ValidationError("name", "Informe o nome do membro.")

        member_id = uuid4()
        member = Account(
            id=member_id,
            name=name,
            email=email or None,
            parent_id=owner.id,
            data_context_id=owner.data_context_id if share_data else member_id,
        )
        try:
            stored = await self._storage.insert_account(member, MEMBER_PASSWORD_PLACEHOLDER)
        except StorageError as e:
            self._log(AuditEventBuilder.validation_rejected("member", e.message))
            raise ValidationError("member", e.message) from e

        try:
            members = await self._storage.list_members(owner.id)
        except StorageError as e:
            logger.warning("members_refresh_failed", owner_id=str(owner.id), error=e.message)
            members = [*owner.members, stored]

        updated = owner.model_copy(update={"members": members})
        self._session.save(updated)
        self._log(AuditEventBuilder.member_added(owner.id, stored.id, share_data))
        return updated

    async def switch_user(self, target_id: UUID) -> Optional[Account]:
        """
        Make another account the active one, without re-authenticating.

        Used both to open a member profile and to return to the owner.

        Returns:
            The target with its members, or None if its row cannot be
            read (e.g. the caller does not own it)
        """
        previous = self._session.load()
        target = await self._read_account(target_id)
        if target is None:
            return None

        target = await self._with_members(target)
        self._session.save(target)
        self._log(AuditEventBuilder.context_switched(
            previous.id if previous else None,
            target.id,
            target.data_context_id,
        ))
        return target

    # =========================================================================
    # SESSION
    # =========================================================================

    async def logout(self) -> None:
        """End the auth session and forget the cached account."""
        current = self._session.load()
        await self._safe_sign_out()
        self._session.clear()
        self._log(AuditEventBuilder.logged_out(current.id if current else None))

    async def restore_session(self) -> Optional[Account]:
        """The cached account, if the provider still has a live session."""
        if not await self._auth.has_session():
            return None
        return self._session.load()

    def current_account(self) -> Optional[Account]:
        return self._session.load()
