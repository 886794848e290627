"""
Core Ledger Models for Family Finance

These models define the strict schemas for categories and transactions.
They are designed to:
1. Enforce type safety at runtime
2. Carry money as Decimal (never float)
3. Be serializable for storage and the session cache
4. Tolerate legacy rows (string amounts, ISO datetimes in date columns)

DESIGN DECISION: A transaction references its category by NAME, not by id.
The "category in use" guard and old data both depend on it. Only the
storage row mapping and `LedgerValidator` know about this.
"""

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


CENT = Decimal("0.01")

# `Transaction` has a field called `date`, which shadows the type inside
# the class body.
CalendarDate = date


def to_money(value: Any) -> Decimal:
    """
    Coerce a storage/user value to a 2-place Decimal.
    
    The database may hand numerics back as strings; anything that
    cannot be parsed becomes 0 so aggregation never sees garbage.
    """
    if value is None or value == "":
        return Decimal("0.00")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return Decimal("0.00")
    if not amount.is_finite():
        return Decimal("0.00")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_date(value: Any) -> Any:
    """Accept 'YYYY-MM-DD' as well as full ISO timestamps."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10 and value[10] in ("T", " "):
        return value[:10]
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money."""
    INCOME = "income"
    EXPENSE = "expense"


class TransactionStatus(str, Enum):
    """
    Settlement status.
    
    For expenses, PAID carries a payment date. Income has no separate
    payment date in this model.
    """
    PAID = "paid"
    PENDING = "pending"


class CategoryType(str, Enum):
    """Which transaction types a category applies to."""
    INCOME = "income"
    EXPENSE = "expense"
    BOTH = "both"


# =============================================================================
# CATEGORY
# =============================================================================

class Category(BaseModel):
    """
    A named bucket for transactions with an optional monthly budget.
    
    Names are unique per data context, case-insensitively. That rule
    is enforced by `LedgerValidator`, not by the database.
    """
    model_config = ConfigDict(str_strip_whitespace=True)
    
    id: UUID = Field(
        default_factory=uuid4,
        description="Category ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name, referenced by transactions"
    )
    type: CategoryType = Field(
        default=CategoryType.EXPENSE,
        description="Applies to income, expense or both"
    )
    budget: Decimal = Field(
        default=Decimal("0.00"),
        ge=0,
        description="Monthly budget (0 = no budget)"
    )
    data_context_id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    
    @field_validator("budget", mode="before")
    @classmethod
    def coerce_budget(cls, v: Any) -> Decimal:
        return to_money(v)
    
    @property
    def tracks_expenses(self) -> bool:
        """Does this category take part in budget reports?"""
        return self.type in (CategoryType.EXPENSE, CategoryType.BOTH)


# =============================================================================
# TRANSACTION
# =============================================================================

class InstallmentInfo(BaseModel):
    """Position of a record within an installment plan (1-based)."""
    
    current: int = Field(..., ge=1)
    total: int = Field(..., ge=1)
    
    @model_validator(mode="after")
    def validate_position(self) -> "InstallmentInfo":
        if self.current > self.total:
            raise ValueError("Installment index cannot exceed the total")
        return self
    
    def label(self) -> str:
        return f"{self.current}/{self.total}"


class Transaction(BaseModel):
    """
    The atomic financial event (an expense or an income).
    
    INVARIANT: `payment_date` exists only for PAID EXPENSES. It is
    cleared (not rejected) otherwise, so every code path that builds
    a Transaction normalises it the same way.
    """
    model_config = ConfigDict(str_strip_whitespace=True)
    
    # Identity. Generated client-side so optimistic display and the
    # stored row share the same id.
    id: UUID = Field(
        default_factory=uuid4,
        description="Transaction ID"
    )
    
    title: str = Field(
        ...,
        max_length=200,
        description="What this was"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount in BRL"
    )
    type: TransactionType = Field(
        default=TransactionType.EXPENSE
    )
    category: str = Field(
        default="",
        max_length=100,
        description="Category NAME"
    )
    status: TransactionStatus = Field(
        default=TransactionStatus.PENDING
    )
    date: CalendarDate = Field(
        ...,
        description="Due date (expense) or receipt date (income)"
    )
    payment_date: Optional[CalendarDate] = Field(
        default=None,
        description="When an expense was actually paid"
    )
    observation: Optional[str] = Field(
        default=None,
        max_length=2000,
    )
    installments: Optional[InstallmentInfo] = None
    
    created_at: datetime = Field(
        default_factory=utc_now
    )
    data_context_id: Optional[UUID] = None
    
    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Decimal:
        return to_money(v)
    
    @field_validator("date", "payment_date", mode="before")
    @classmethod
    def coerce_dates(cls, v: Any) -> Any:
        if v == "":
            return None
        return _coerce_date(v)
    
    @field_validator("observation", mode="before")
    @classmethod
    def blank_observation(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v
    
    @model_validator(mode="after")
    def normalise_payment_date(self) -> "Transaction":
        if not self.is_paid_expense:
            self.payment_date = None
        return self
    
    @property
    def is_paid_expense(self) -> bool:
        return (
            self.type == TransactionType.EXPENSE
            and self.status == TransactionStatus.PAID
        )
    
    @property
    def is_installment(self) -> bool:
        return self.installments is not None and self.installments.total > 1
    
    def with_status(
        self,
        status: TransactionStatus,
        today: CalendarDate,
    ) -> "Transaction":
        """
        Copy of this transaction moved to `status`.
        
        Moving to PAID keeps an existing payment date or uses `today`.
        Moving away from PAID clears it.
        """
        data = self.model_dump()
        data["status"] = status
        if status == TransactionStatus.PAID:
            data["payment_date"] = self.payment_date or today
        else:
            data["payment_date"] = None
        return Transaction(**data)
    
    def toggled(self, today: CalendarDate) -> "Transaction":
        """Flip between PAID and PENDING."""
        new_status = (
            TransactionStatus.PENDING
            if self.status == TransactionStatus.PAID
            else TransactionStatus.PAID
        )
        return self.with_status(new_status, today)


# =============================================================================
# STARTER SET
# =============================================================================

# Inserted the first time a data context has no categories at all.
STARTER_CATEGORIES: list[tuple[str, CategoryType]] = [
    ("Alimentação", CategoryType.EXPENSE),
    ("Casa", CategoryType.EXPENSE),
    ("Transporte", CategoryType.EXPENSE),
    ("Lazer", CategoryType.EXPENSE),
    ("Saúde", CategoryType.EXPENSE),
    ("Trabalho", CategoryType.INCOME),
    ("Educação", CategoryType.EXPENSE),
    ("Outros", CategoryType.BOTH),
]


def starter_categories(data_context_id: Optional[UUID] = None) -> list[Category]:
    """Fresh Category objects for the starter set (budget 0)."""
    return [
        Category(name=name, type=kind, data_context_id=data_context_id)
        for name, kind in STARTER_CATEGORIES
    ]
