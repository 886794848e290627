"""
Report Models

Read-only results of the aggregation engine and the AI helpers.
Nothing here is stored.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from family_finance.models.ledger import to_money


ZERO = Decimal("0.00")


class MonthlySummary(BaseModel):
    """Dashboard totals for one calendar month."""
    
    month: int = Field(..., ge=0, le=11, description="0 = January")
    year: int
    
    income: Decimal = ZERO
    expense: Decimal = ZERO
    pending: Decimal = ZERO
    balance: Decimal = ZERO
    savings_rate: Decimal = Field(
        default=ZERO,
        description="Percent of income kept; may be negative"
    )


class CategoryBudgetRow(BaseModel):
    """Budget vs. actual for one category (or the totals row)."""
    
    category_id: Optional[UUID] = None
    category: str
    budget: Decimal = ZERO
    spent: Decimal = ZERO
    remaining: Decimal = ZERO
    percent_used: Decimal = ZERO
    
    @property
    def is_over_budget(self) -> bool:
        return self.percent_used > 100
    
    @property
    def bar_width(self) -> Decimal:
        """Progress bar width, capped at 100."""
        return min(self.percent_used, Decimal(100))
    
    @property
    def level(self) -> str:
        """Colour band used by the dashboard."""
        if self.percent_used > 100:
            return "over"
        if self.percent_used > 85:
            return "warning"
        return "ok"


class CategoryBudgetReport(BaseModel):
    """Ordered rows plus a totals row."""
    
    rows: list[CategoryBudgetRow] = Field(default_factory=list)
    totals: CategoryBudgetRow
    
    @property
    def is_empty(self) -> bool:
        return not self.rows


class CategoryTotal(BaseModel):
    """One slice of a per-category pie chart."""
    
    category: str
    total: Decimal = ZERO


class MonthlyCategoryTotals(BaseModel):
    """Expense totals per category name for one month of a year."""
    
    month: int = Field(..., ge=0, le=11)
    totals: dict[str, Decimal] = Field(default_factory=dict)


# =============================================================================
# AI RESULTS
# =============================================================================

class FinancialAnalysis(BaseModel):
    """
    Natural-language analysis of recent transactions.
    
    `is_fallback` marks the neutral result returned when the model
    could not be reached or answered with something unusable.
    """
    
    summary: str
    tips: list[str] = Field(default_factory=list)
    anomalies: list[str] = Field(default_factory=list)
    is_fallback: bool = False


class ReceiptData(BaseModel):
    """Fields read off a receipt photo, used to prefill the form."""
    
    title: str = ""
    amount: Optional[Decimal] = None
    date: Optional[str] = Field(
        default=None,
        description="YYYY-MM-DD as read from the receipt"
    )
    observation: Optional[str] = None
    
    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        if v is None or v == "":
            return None
        amount = to_money(v)
        return amount if amount > 0 else None
    
    @property
    def is_empty(self) -> bool:
        return not self.title and self.amount is None
