"""Read-only queries over the in-memory ledger."""

from family_finance.queries.aggregation import (
    category_budget_report,
    category_totals,
    filter_by_month,
    monthly_summary,
    yearly_category_series,
    yearly_expense_series,
)
from family_finance.queries.export import (
    format_currency,
    format_date,
    payables_to_csv,
)
from family_finance.queries.payables import (
    InstallmentFilter,
    PayableSort,
    PayablesFilter,
    payables,
    selected_total,
)

__all__ = [
    "InstallmentFilter",
    "PayableSort",
    "PayablesFilter",
    "category_budget_report",
    "category_totals",
    "filter_by_month",
    "format_currency",
    "format_date",
    "monthly_summary",
    "payables",
    "payables_to_csv",
    "selected_total",
    "yearly_category_series",
    "yearly_expense_series",
]
