"""
Aggregation Engine

DESIGN DECISION: Every dashboard figure is DERIVED. Nothing here is
stored or cached; each function recomputes from the raw transaction
list and never mutates it.

All arithmetic is Decimal. Percentages are rounded to 2 places only
at the end, for presentation.

Months are 0-based in this module (January = 0), matching how the
dashboard's month selector indexes them.
"""

from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from family_finance.models.ledger import (
    Category,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from family_finance.models.reports import (
    CategoryBudgetReport,
    CategoryBudgetRow,
    CategoryTotal,
    MonthlyCategoryTotals,
    MonthlySummary,
    ZERO,
)


PERCENT = Decimal("0.01")
HUNDRED = Decimal(100)


def _round_percent(value: Decimal) -> Decimal:
    return value.quantize(PERCENT, rounding=ROUND_HALF_UP)


def _in_month(transaction: Transaction, month: int, year: int) -> bool:
    return transaction.date.year == year and transaction.date.month == month + 1


def filter_by_month(
    transactions: Iterable[Transaction],
    month: int,
    year: int,
) -> list[Transaction]:
    """Transactions dated in the given calendar month (exact match)."""
    return [t for t in transactions if _in_month(t, month, year)]


def savings_rate(income: Decimal, expense: Decimal) -> Decimal:
    """Percent of income kept. 0 without income; may be negative."""
    if income == 0:
        return ZERO
    return _round_percent((income - expense) / income * HUNDRED)


def percent_used(budget: Decimal, spent: Decimal) -> Decimal:
    """
    Budget consumption in percent.

    Without a budget, any spending counts as 100% and no spending as 0%.
    """
    if budget > 0:
        return _round_percent(spent / budget * HUNDRED)
    return Decimal("100.00") if spent > 0 else ZERO


def monthly_summary(
    transactions: Iterable[Transaction],
    month: int,
    year: int,
) -> MonthlySummary:
    """
    Income, expense, pending and balance for one month.

    - income: paid income
    - expense: paid expenses
    - pending: pending expenses (pending income is not surfaced)
    """
    income = ZERO
    expense = ZERO
    pending = ZERO

    for t in transactions:
        if not _in_month(t, month, year):
            continue
        if t.type == TransactionType.INCOME:
            if t.status == TransactionStatus.PAID:
                income += t.amount
        elif t.status == TransactionStatus.PAID:
            expense += t.amount
        else:
            pending += t.amount

    return MonthlySummary(
        month=month,
        year=year,
        income=income,
        expense=expense,
        pending=pending,
        balance=income - expense,
        savings_rate=savings_rate(income, expense),
    )


def category_budget_report(
    categories: Iterable[Category],
    transactions: Iterable[Transaction],
) -> CategoryBudgetReport:
    """
    Budget vs. actual per expense category.

    `transactions` must already be restricted to the window being
    reported (see `filter_by_month`). Rows are sorted by percent used,
    highest first; ties keep category order.
    """
    spent_by_name: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for t in transactions:
        if t.type == TransactionType.EXPENSE:
            spent_by_name[t.category] += t.amount

    rows = []
    for category in categories:
        if not category.tracks_expenses:
            continue
        spent = spent_by_name.get(category.name, ZERO)
        rows.append(CategoryBudgetRow(
            category_id=category.id,
            category=category.name,
            budget=category.budget,
            spent=spent,
            remaining=category.budget - spent,
            percent_used=percent_used(category.budget, spent),
        ))

    rows.sort(key=lambda row: row.percent_used, reverse=True)

    total_budget = sum((row.budget for row in rows), ZERO)
    total_spent = sum((row.spent for row in rows), ZERO)
    totals = CategoryBudgetRow(
        category="Total",
        budget=total_budget,
        spent=total_spent,
        remaining=total_budget - total_spent,
        percent_used=percent_used(total_budget, total_spent),
    )

    return CategoryBudgetReport(rows=rows, totals=totals)


def _expenses_in_year(transactions: Iterable[Transaction], year: int):
    for t in transactions:
        if t.type == TransactionType.EXPENSE and t.date.year == year:
            yield t


def yearly_expense_series(
    transactions: Iterable[Transaction],
    year: int,
) -> list[Decimal]:
    """Twelve monthly expense totals (Jan..Dec), paid and pending alike."""
    series = [ZERO] * 12
    for t in _expenses_in_year(transactions, year):
        series[t.date.month - 1] += t.amount
    return series


def yearly_category_series(
    transactions: Iterable[Transaction],
    year: int,
) -> list[MonthlyCategoryTotals]:
    """Twelve months of expense totals pivoted by category name."""
    months: list[dict[str, Decimal]] = [{} for _ in range(12)]
    for t in _expenses_in_year(transactions, year):
        bucket = months[t.date.month - 1]
        bucket[t.category] = bucket.get(t.category, ZERO) + t.amount
    return [
        MonthlyCategoryTotals(month=index, totals=totals)
        for index, totals in enumerate(months)
    ]


def category_totals(
    transactions: Iterable[Transaction],
    transaction_type: TransactionType,
) -> list[CategoryTotal]:
    """Per-category totals of one type, largest first (pie charts)."""
    totals: dict[str, Decimal] = {}
    for t in transactions:
        if t.type != transaction_type:
            continue
        name = t.category or "Outros"
        totals[name] = totals.get(name, ZERO) + t.amount

    ordered = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [CategoryTotal(category=name, total=total) for name, total in ordered]
