"""
Installment Expansion

Turns one expense intent ("R$ 1.000,00 in 3 installments starting
31/01") into N independent transaction records.

RULES:
- Dates step by whole calendar months, always measured from the
  ORIGINAL start day. When the target month is shorter the date
  snaps to its last day (31/01 -> 29/02 -> 31/03), so there is no
  drift into the following month.
- The amount is split in cents. Each installment gets the floored
  share and the rounding remainder goes to the FIRST installment,
  so the records always add up to the original amount.
- Only the first record keeps the draft's status, payment date and
  observation. The rest are pending, unpaid and without notes.
- The whole batch shares one `created_at`.

After expansion the records are unrelated: editing or deleting one
never touches its siblings.
"""

import calendar
from datetime import date
from decimal import ROUND_DOWN, Decimal
from typing import Optional

from family_finance.models.ledger import (
    CENT,
    InstallmentInfo,
    Transaction,
    TransactionStatus,
    TransactionType,
    utc_now,
)
from family_finance.validation.validator import LedgerValidator


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(base: date, months: int, desired_day: Optional[int] = None) -> date:
    """
    `base` moved by `months` calendar months.

    The day of month is `desired_day` (default: base.day), clamped to
    the length of the target month.
    """
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1

    day = desired_day or base.day
    return date(year, month, min(day, days_in_month(year, month)))


def split_amount(amount: Decimal, count: int) -> list[Decimal]:
    """
    Split `amount` into `count` cent-exact shares.

    >>> split_amount(Decimal("100.00"), 3)
    [Decimal('33.34'), Decimal('33.33'), Decimal('33.33')]
    """
    share = (amount / count).quantize(CENT, rounding=ROUND_DOWN)
    remainder = amount - share * count
    return [share + remainder] + [share] * (count - 1)


def expand_installments(
    draft: Transaction,
    installment_count: int = 1,
    validator: Optional[LedgerValidator] = None,
) -> list[Transaction]:
    """
    Expand a transaction draft into its stored records.

    A single record is returned (without installment info) when the
    count is 1 or the draft is an income.

    Raises:
        ValidationError: If the count is outside 1..max_installments, or
            the amount cannot give every installment at least one cent
    """
    validator = validator or LedgerValidator()
    validator.check_installment_count(installment_count)

    if installment_count == 1 or draft.type != TransactionType.EXPENSE:
        return [Transaction(**draft.model_dump(exclude={"installments"}))]

    validator.check_installment_split(draft.amount, installment_count)

    data = draft.model_dump(exclude={"id", "installments", "created_at"})

    created_at = utc_now()
    start = draft.date
    amounts = split_amount(draft.amount, installment_count)

    records = []
    for index, amount in enumerate(amounts):
        record = dict(data)
        record.update(
            amount=amount,
            date=add_months(start, index, desired_day=start.day),
            installments=InstallmentInfo(current=index + 1, total=installment_count),
            created_at=created_at,
        )
        if index > 0:
            record.update(
                status=TransactionStatus.PENDING,
                payment_date=None,
                observation=None,
            )
        records.append(Transaction(**record))

    return records
