"""
Shared fixtures.

No test talks to a real Supabase project or to Gemini. `FakeSupabase`
mimics the small part of the async supabase client the storage and
auth layers use: chained table queries ending in `await execute()`,
and the auth methods sign_up / sign_in_with_password / sign_out /
get_session.
"""

from datetime import date, datetime, timezone
from types import SimpleNamespace
from typing import Callable, Optional
from uuid import uuid4

import pytest
from postgrest.exceptions import APIError
from supabase_auth.errors import AuthError as ProviderAuthError
from tenacity import wait_none

from family_finance.config import AppSettings, GeminiSettings, SupabaseSettings
from family_finance.models.ledger import (
    Transaction,
    TransactionStatus,
    TransactionType,
)
from family_finance.services.auth import SupabaseAuthProvider
from family_finance.services.storage import (
    SupabaseAccountStorage,
    SupabaseClient,
    SupabaseLedgerStorage,
)
from family_finance.session import MemoryStore, SessionCache
from family_finance.validation import LedgerValidator


# =============================================================================
# FAKE SUPABASE
# =============================================================================

class FakeQuery:
    """A chainable query builder over one in-memory table."""

    def __init__(self, db: "FakeSupabase", table: str):
        self._db = db
        self._table = table
        self._op = "select"
        self._payload = None
        self._filters: list[Callable[[dict], bool]] = []
        self._limit: Optional[int] = None

    def select(self, *columns):
        self._op = "select"
        return self

    def insert(self, payload):
        self._op = "insert"
        self._payload = payload
        return self

    def update(self, payload):
        self._op = "update"
        self._payload = payload
        return self

    def delete(self):
        self._op = "delete"
        return self

    def eq(self, column, value):
        self._filters.append(lambda row: str(row.get(column)) == str(value))
        return self

    def in_(self, column, values):
        wanted = {str(v) for v in values}
        self._filters.append(lambda row: str(row.get(column)) in wanted)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _matches(self, row: dict) -> bool:
        return all(f(row) for f in self._filters)

    async def execute(self):
        self._db.calls.append((self._table, self._op))
        if self._db.failures:
            raise self._db.failures.pop(0)

        rows = self._db.tables.setdefault(self._table, [])

        if self._op == "select":
            found = [
                dict(r) for r in rows
                if self._matches(r) and self._db.can_read(self._table, r)
            ]
            if self._limit is not None:
                found = found[:self._limit]
            return SimpleNamespace(data=found)

        if self._op == "insert":
            payload = self._payload if isinstance(self._payload, list) else [self._payload]
            if self._table in self._db.reject_inserts:
                raise APIError({
                    "message": "new row violates row-level security policy",
                    "code": "42501",
                    "hint": None,
                    "details": None,
                })
            inserted = []
            for item in payload:
                row = dict(item)
                row.setdefault("id", str(uuid4()))
                row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
                inserted.append(row)
            rows.extend(inserted)
            return SimpleNamespace(data=[dict(r) for r in inserted])

        if self._op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self._payload)
                    updated.append(dict(row))
            return SimpleNamespace(data=updated)

        if self._op == "delete":
            kept = [r for r in rows if not self._matches(r)]
            deleted = [dict(r) for r in rows if self._matches(r)]
            self._db.tables[self._table] = kept
            return SimpleNamespace(data=deleted)

        raise AssertionError(f"unsupported op {self._op}")


class FakeAuth:
    """The auth sub-client: users by e-mail, one current session."""

    def __init__(self):
        self.users: dict[str, dict] = {}
        self.session = None
        self.require_confirmation = False
        self.error: Optional[str] = None
        self.sign_out_calls = 0

    def _response(self, user: dict, with_session: bool):
        user_obj = SimpleNamespace(
            id=user["id"],
            email=user["email"],
            user_metadata=user["metadata"],
        )
        session = SimpleNamespace(user=user_obj) if with_session else None
        if with_session:
            self.session = session
        return SimpleNamespace(user=user_obj, session=session)

    async def sign_up(self, credentials):
        if self.error:
            raise ProviderAuthError(self.error, None)
        email = credentials["email"]
        if email in self.users:
            raise ProviderAuthError("User already registered", None)
        user = {
            "id": str(uuid4()),
            "email": email,
            "password": credentials["password"],
            "metadata": credentials.get("options", {}).get("data", {}),
        }
        self.users[email] = user
        return self._response(user, with_session=not self.require_confirmation)

    async def sign_in_with_password(self, credentials):
        if self.error:
            raise ProviderAuthError(self.error, None)
        user = self.users.get(credentials["email"])
        if user is None or user["password"] != credentials["password"]:
            raise ProviderAuthError("Invalid login credentials", None)
        return self._response(user, with_session=True)

    async def sign_out(self):
        self.sign_out_calls += 1
        self.session = None

    async def get_session(self):
        return self.session


class FakeSupabase:
    """In-memory stand-in for the async supabase client."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.calls: list[tuple[str, str]] = []
        self.failures: list[Exception] = []
        self.reject_inserts: set[str] = set()
        self.hidden_ids: set[str] = set()
        self.auth = FakeAuth()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def can_read(self, table: str, row: dict) -> bool:
        return str(row.get("id")) not in self.hidden_ids

    def calls_to(self, table: str, op: Optional[str] = None) -> list:
        return [c for c in self.calls if c[0] == table and (op is None or c[1] == op)]


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def supabase_settings():
    return SupabaseSettings(
        url="https://example.supabase.co/",
        anon_key="anon-" + "x" * 40,
        timeout_seconds=2,
        max_retries=3,
    )


@pytest.fixture
def gemini_settings():
    return GeminiSettings(api_key="test-key", timeout_seconds=1)


@pytest.fixture
def app_settings():
    return AppSettings()


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def client(fake_db, supabase_settings):
    return SupabaseClient(supabase_settings, client=fake_db, wait=wait_none())


@pytest.fixture
def other_client(fake_db, supabase_settings):
    """A second client on the same database, with its own auth session."""
    db = FakeSupabase()
    db.tables = fake_db.tables
    return SupabaseClient(supabase_settings, client=db, wait=wait_none())


@pytest.fixture
def ledger_storage(client):
    return SupabaseLedgerStorage(client)


@pytest.fixture
def account_storage(client):
    return SupabaseAccountStorage(client)


@pytest.fixture
def auth_provider(client):
    return SupabaseAuthProvider(client)


@pytest.fixture
def session_cache():
    return SessionCache(MemoryStore())


@pytest.fixture
def validator():
    return LedgerValidator(max_installments=120)


@pytest.fixture
def make_transaction():
    """Build a transaction with sensible defaults."""
    def _make(**overrides) -> Transaction:
        data = {
            "title": "Mercado",
            "amount": "100.00",
            "type": TransactionType.EXPENSE,
            "category": "Alimentação",
            "status": TransactionStatus.PAID,
            "date": date(2024, 1, 10),
        }
        data.update(overrides)
        return Transaction(**data)
    return _make
