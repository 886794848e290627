"""
Application Wiring for Family Finance

This module ties the components together for the UI:

    UI action -> AccountService resolves the active data context
              -> LedgerService issues scoped storage calls
              -> aggregation recomputes the derived views

DESIGN DECISION: Wiring is split in two.

- SharedServices holds what carries no user state (database settings, the
  validator, the Gemini agents, the dashboard preference store keyed
  by account id). It is built once per process.
- AppComponents is built once per browser session. It owns its own
  SupabaseClient, so the auth session created at sign in (the one row
  level security sees on every table request) and the cached current
  user never leak into another visitor's session.

The AI agents are optional: without a Gemini key the app runs with
the analysis widget and the receipt scanner disabled.
"""

from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from family_finance.accounts import AccountService
from family_finance.agents import FinancialAnalysisAgent, ReceiptExtractionAgent
from family_finance.audit import AuditLogger, get_logger
from family_finance.config import SupabaseSettings, get_settings
from family_finance.ledger import LedgerService
from family_finance.models.account import Account
from family_finance.services.auth import AuthProviderInterface, SupabaseAuthProvider
from family_finance.services.storage import (
    AccountStorageInterface,
    LedgerStorageInterface,
    SupabaseAccountStorage,
    SupabaseClient,
    SupabaseLedgerStorage,
)
from family_finance.session import (
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
    SessionCache,
)
from family_finance.validation import LedgerValidator


logger = get_logger(__name__)


class SharedServices:
    """Stateless pieces, safe to share between browser sessions."""

    def __init__(
        self,
        supabase_settings: Optional[SupabaseSettings] = None,
        preferences_store: Optional[KeyValueStore] = None,
        validator: Optional[LedgerValidator] = None,
        analysis_agent: Optional[FinancialAnalysisAgent] = None,
        receipt_agent: Optional[ReceiptExtractionAgent] = None,
    ):
        self.supabase_settings = supabase_settings
        self.preferences_store = preferences_store or MemoryStore()
        self.validator = validator or LedgerValidator()
        self.analysis_agent = analysis_agent
        self.receipt_agent = receipt_agent


class AppComponents:
    """Everything one browser session needs."""

    def __init__(
        self,
        shared: SharedServices,
        auth: AuthProviderInterface,
        account_storage: AccountStorageInterface,
        ledger_storage: LedgerStorageInterface,
        session_store: Optional[KeyValueStore] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.shared = shared
        self.audit_logger = audit_logger or AuditLogger()
        self.ledger_storage = ledger_storage
        self.accounts = AccountService(
            auth=auth,
            storage=account_storage,
            session=SessionCache(session_store or MemoryStore()),
            validator=shared.validator,
            audit_logger=self.audit_logger,
        )

    @property
    def store(self) -> KeyValueStore:
        """Where dashboard preferences live (keyed by account id)."""
        return self.shared.preferences_store

    @property
    def validator(self) -> LedgerValidator:
        return self.shared.validator

    @property
    def analysis_agent(self) -> Optional[FinancialAnalysisAgent]:
        return self.shared.analysis_agent

    @property
    def receipt_agent(self) -> Optional[ReceiptExtractionAgent]:
        return self.shared.receipt_agent

    @property
    def ai_enabled(self) -> bool:
        return self.analysis_agent is not None

    def ledger_for(self, account: Account) -> LedgerService:
        """A ledger bound to the account's data context."""
        return LedgerService(
            storage=self.ledger_storage,
            data_context_id=account.data_context_id,
            validator=self.validator,
            audit_logger=self.audit_logger,
        )


def create_shared_services(use_ai: bool = True) -> SharedServices:
    """
    Build the process-wide services.

    Args:
        use_ai: Whether to build the Gemini agents. They are skipped
                (with a warning) when Gemini is not configured.
    """
    settings = get_settings()
    # Raises on a missing database configuration
    supabase_settings = settings.supabase

    analysis_agent = None
    receipt_agent = None
    if use_ai:
        audit_logger = AuditLogger()
        try:
            analysis_agent = FinancialAnalysisAgent(audit_logger=audit_logger)
            receipt_agent = ReceiptExtractionAgent(audit_logger=audit_logger)
        except PydanticValidationError as e:
            logger.warning("ai_not_configured", error=str(e))

    return SharedServices(
        supabase_settings=supabase_settings,
        preferences_store=JsonFileStore(settings.app.session_dir),
        validator=LedgerValidator(settings.app.max_installments),
        analysis_agent=analysis_agent,
        receipt_agent=receipt_agent,
    )


def create_app_components(
    shared: SharedServices,
    client: Optional[SupabaseClient] = None,
) -> AppComponents:
    """
    Build the components of one browser session.

    Each call gets its own SupabaseClient (and therefore its own auth
    session) and its own in-memory current-user cache.
    """
    if client is None:
        client = SupabaseClient(shared.supabase_settings)

    return AppComponents(
        shared=shared,
        auth=SupabaseAuthProvider(client),
        account_storage=SupabaseAccountStorage(client),
        ledger_storage=SupabaseLedgerStorage(client),
    )
