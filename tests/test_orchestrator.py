"""
Tests for the per-session wiring.
"""

import pytest

from family_finance.orchestrator import SharedServices, create_app_components
from family_finance.session import MemoryStore


@pytest.fixture
def shared(validator):
    return SharedServices(preferences_store=MemoryStore(), validator=validator)


class TestSessionIsolation:
    """Two browser sessions in one process."""

    @pytest.mark.asyncio
    async def test_login_does_not_leak_into_another_session(
        self, shared, client, other_client,
    ):
        first = create_app_components(shared, client)
        second = create_app_components(shared, other_client)

        ana = await first.accounts.register("Ana", "ana@example.com", "secret123")

        assert (await first.accounts.restore_session()).id == ana.id
        assert await second.accounts.restore_session() is None
        assert second.accounts.current_account() is None

    def test_sessions_share_only_stateless_services(self, shared, client, other_client):
        first = create_app_components(shared, client)
        second = create_app_components(shared, other_client)

        assert first.accounts is not second.accounts
        assert first.audit_logger is not second.audit_logger
        assert first.validator is second.validator
        assert first.store is second.store
        assert not first.ai_enabled

    @pytest.mark.asyncio
    async def test_ledger_is_bound_to_account_context(self, shared, client):
        components = create_app_components(shared, client)
        ana = await components.accounts.register("Ana", "ana@example.com", "secret123")

        ledger = components.ledger_for(ana)

        assert ledger.data_context_id == ana.data_context_id
