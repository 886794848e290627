"""
Audit Models for Family Finance

Every significant action in the system is logged as an audit event.
This provides:
1. Traceability of who changed what, in which data context
2. Debugging information when a storage or AI call fails
3. Ability to reconstruct what the user saw

DESIGN DECISION: Audit events are emitted as structured logs only.
The hosted schema has no audit table, and logging must never break
a user flow.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from family_finance.models.ledger import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Accounts and sessions
    ACCOUNT_REGISTERED = "account_registered"
    REGISTRATION_PENDING = "registration_pending"
    ACCOUNT_LOGGED_IN = "account_logged_in"
    ACCOUNT_PROFILE_RECOVERED = "account_profile_recovered"
    ACCOUNT_LOGGED_OUT = "account_logged_out"
    AUTH_FAILED = "auth_failed"
    MEMBER_ADDED = "member_added"
    CONTEXT_SWITCHED = "context_switched"
    
    # Categories
    CATEGORIES_SEEDED = "categories_seeded"
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"
    
    # Transactions
    TRANSACTIONS_ADDED = "transactions_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTION_STATUS_CHANGED = "transaction_status_changed"
    TRANSACTIONS_MARKED_PAID = "transactions_marked_paid"
    
    # AI helpers
    ANALYSIS_GENERATED = "analysis_generated"
    ANALYSIS_FALLBACK = "analysis_fallback"
    RECEIPT_EXTRACTED = "receipt_extracted"
    RECEIPT_FAILED = "receipt_failed"
    
    # Failures
    VALIDATION_REJECTED = "validation_rejected"
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.
    
    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """
    
    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )
    
    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )
    
    # Context - what entity is this about, in which data context?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'category', 'transaction')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    data_context_id: Optional[UUID] = Field(
        default=None,
        description="Partition the event happened in"
    )
    
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    
    error_message: Optional[str] = None
    
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )
    
    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "data_context_id": str(self.data_context_id) if self.data_context_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.
    
    Usage:
        event = AuditEventBuilder.member_added(owner_id, member_id, shared)
        event = AuditEventBuilder.transactions_added(context_id, ids, total)
    """
    
    @staticmethod
    def account_registered(account_id: UUID, email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_REGISTERED,
            entity_type="account",
            entity_id=account_id,
            data_context_id=account_id,
            description=f"Primary account registered: {email}",
            is_user_action=True,
        )
    
    @staticmethod
    def registration_pending(email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REGISTRATION_PENDING,
            description="Registration awaiting e-mail confirmation",
            details={"email": email},
            is_user_action=True,
        )
    
    @staticmethod
    def logged_in(account_id: UUID, member_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_LOGGED_IN,
            entity_type="account",
            entity_id=account_id,
            description="Account logged in",
            details={"member_count": member_count},
            is_user_action=True,
        )
    
    @staticmethod
    def profile_recovered(account_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_PROFILE_RECOVERED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            description="Profile row was missing after sign in and was created",
        )
    
    @staticmethod
    def logged_out(account_id: Optional[UUID]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_LOGGED_OUT,
            entity_type="account",
            entity_id=account_id,
            description="Session terminated",
            is_user_action=True,
        )
    
    @staticmethod
    def auth_failed(operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTH_FAILED,
            severity=AuditSeverity.WARNING,
            description=f"Authentication failed during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
    
    @staticmethod
    def member_added(
        owner_id: UUID,
        member_id: UUID,
        shares_data: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_ADDED,
            entity_type="account",
            entity_id=member_id,
            description="Member profile added",
            details={
                "owner_id": str(owner_id),
                "shares_data": shares_data,
            },
            is_user_action=True,
        )
    
    @staticmethod
    def context_switched(
        from_account_id: Optional[UUID],
        to_account_id: UUID,
        data_context_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONTEXT_SWITCHED,
            entity_type="account",
            entity_id=to_account_id,
            data_context_id=data_context_id,
            description="Active account switched",
            details={
                "from_account_id": str(from_account_id) if from_account_id else None,
            },
            is_user_action=True,
        )
    
    @staticmethod
    def categories_seeded(data_context_id: UUID, count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORIES_SEEDED,
            data_context_id=data_context_id,
            description=f"Seeded {count} starter categories",
            details={"count": count},
        )
    
    @staticmethod
    def category_changed(
        event_type: AuditEventType,
        category_id: UUID,
        name: str,
        data_context_id: UUID,
    ) -> AuditEvent:
        verb = {
            AuditEventType.CATEGORY_CREATED: "created",
            AuditEventType.CATEGORY_UPDATED: "updated",
            AuditEventType.CATEGORY_DELETED: "deleted",
        }.get(event_type, "changed")
        return AuditEvent(
            event_type=event_type,
            entity_type="category",
            entity_id=category_id,
            data_context_id=data_context_id,
            description=f"Category {verb}: {name}",
            is_user_action=True,
        )
    
    @staticmethod
    def transactions_added(
        data_context_id: UUID,
        transaction_ids: list[UUID],
        total_amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_ADDED,
            entity_type="transaction",
            entity_id=transaction_ids[0] if transaction_ids else None,
            data_context_id=data_context_id,
            description=f"{len(transaction_ids)} transaction(s) added",
            details={
                "transaction_ids": [str(i) for i in transaction_ids],
                "total_amount": total_amount,
            },
            is_user_action=True,
        )
    
    @staticmethod
    def transaction_changed(
        event_type: AuditEventType,
        transaction_id: UUID,
        data_context_id: UUID,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="transaction",
            entity_id=transaction_id,
            data_context_id=data_context_id,
            description=f"Transaction {event_type.value.replace('transaction_', '')}",
            details=details or {},
            is_user_action=True,
        )
    
    @staticmethod
    def marked_paid(
        data_context_id: UUID,
        transaction_ids: list[UUID],
        payment_date: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_MARKED_PAID,
            entity_type="transaction",
            data_context_id=data_context_id,
            description=f"{len(transaction_ids)} bill(s) marked as paid",
            details={
                "transaction_ids": [str(i) for i in transaction_ids],
                "payment_date": payment_date,
            },
            is_user_action=True,
        )
    
    @staticmethod
    def analysis(generated: bool, record_count: int, error_message: Optional[str] = None) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.ANALYSIS_GENERATED
                if generated
                else AuditEventType.ANALYSIS_FALLBACK
            ),
            severity=AuditSeverity.INFO if generated else AuditSeverity.WARNING,
            description=(
                "Financial analysis generated"
                if generated
                else "Financial analysis unavailable, fallback returned"
            ),
            details={"record_count": record_count},
            error_message=error_message,
        )
    
    @staticmethod
    def receipt(extracted: bool, error_message: Optional[str] = None) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.RECEIPT_EXTRACTED
                if extracted
                else AuditEventType.RECEIPT_FAILED
            ),
            severity=AuditSeverity.INFO if extracted else AuditSeverity.WARNING,
            description=(
                "Receipt data extracted"
                if extracted
                else "Receipt extraction failed"
            ),
            error_message=error_message,
            is_user_action=True,
        )
    
    @staticmethod
    def validation_rejected(
        field: str,
        message: str,
        data_context_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_REJECTED,
            severity=AuditSeverity.WARNING,
            data_context_id=data_context_id,
            description=f"Input rejected: {field}",
            error_message=message,
            details={"field": field},
        )
    
    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        data_context_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            data_context_id=data_context_id,
            description=f"Storage operation failed: {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
    
    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
