"""
Accounts Payable Queries

The "contas a pagar" view: pending expenses only, narrowed by a
date window, installment kind, free-text search and amount range,
then sorted.
"""

import unicodedata
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional
from uuid import UUID

from pydantic import BaseModel

from family_finance.models.ledger import (
    Transaction,
    TransactionStatus,
    TransactionType,
)
from family_finance.models.reports import ZERO


class InstallmentFilter(str, Enum):
    ALL = "all"
    INSTALLMENT = "installment"
    SINGLE = "single"


class PayableSort(str, Enum):
    DATE_ASC = "date-asc"
    DATE_DESC = "date-desc"
    ALPHA_ASC = "alpha-asc"
    ALPHA_DESC = "alpha-desc"
    AMOUNT_ASC = "amount-asc"
    AMOUNT_DESC = "amount-desc"


class PayablesFilter(BaseModel):
    """
    Filter state of the payables view.

    An explicit date range (either bound) replaces the month/year
    window. `month` is 0-based; None or -1 means "any".
    """

    month: Optional[int] = None
    year: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    installments: InstallmentFilter = InstallmentFilter.ALL
    search: str = ""
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    sort: PayableSort = PayableSort.DATE_ASC


def _is_any(value: Optional[int]) -> bool:
    return value is None or value == -1


def _date_matches(t: Transaction, f: PayablesFilter) -> bool:
    if f.start_date or f.end_date:
        if f.start_date and t.date < f.start_date:
            return False
        if f.end_date and t.date > f.end_date:
            return False
        return True

    if not _is_any(f.year) and t.date.year != f.year:
        return False
    if not _is_any(f.month) and t.date.month != f.month + 1:
        return False
    return True


def _installment_matches(t: Transaction, kind: InstallmentFilter) -> bool:
    if kind == InstallmentFilter.INSTALLMENT:
        return t.is_installment
    if kind == InstallmentFilter.SINGLE:
        return not t.is_installment
    return True


def _search_matches(t: Transaction, term: str) -> bool:
    needle = term.strip().lower()
    if not needle:
        return True
    return needle in t.title.lower() or needle in t.category.lower()


def _amount_matches(t: Transaction, f: PayablesFilter) -> bool:
    if f.min_amount is not None and t.amount < f.min_amount:
        return False
    if f.max_amount is not None and t.amount > f.max_amount:
        return False
    return True


def _title_key(t: Transaction) -> str:
    # accents folded so "Água" sorts with "A"
    folded = unicodedata.normalize("NFKD", t.title.casefold())
    return "".join(c for c in folded if not unicodedata.combining(c))


_SORT_KEYS = {
    PayableSort.DATE_ASC: (lambda t: t.date, False),
    PayableSort.DATE_DESC: (lambda t: t.date, True),
    PayableSort.ALPHA_ASC: (_title_key, False),
    PayableSort.ALPHA_DESC: (_title_key, True),
    PayableSort.AMOUNT_ASC: (lambda t: t.amount, False),
    PayableSort.AMOUNT_DESC: (lambda t: t.amount, True),
}


def payables(
    transactions: Iterable[Transaction],
    filters: Optional[PayablesFilter] = None,
) -> list[Transaction]:
    """Pending expenses matching `filters`, sorted."""
    f = filters or PayablesFilter()

    matching = [
        t for t in transactions
        if t.type == TransactionType.EXPENSE
        and t.status == TransactionStatus.PENDING
        and _date_matches(t, f)
        and _installment_matches(t, f.installments)
        and _search_matches(t, f.search)
        and _amount_matches(t, f)
    ]

    key, reverse = _SORT_KEYS[f.sort]
    return sorted(matching, key=key, reverse=reverse)


def selected_total(
    transactions: Iterable[Transaction],
    selected_ids: Iterable[UUID],
) -> Decimal:
    """Sum of the selected transactions (bulk "mark as paid" footer)."""
    wanted = set(selected_ids)
    return sum((t.amount for t in transactions if t.id in wanted), ZERO)
