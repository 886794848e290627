"""Ledger package: installment expansion and the ledger service."""

from family_finance.ledger.installments import add_months, expand_installments, split_amount
from family_finance.ledger.service import LedgerService

__all__ = ["LedgerService", "add_months", "expand_installments", "split_amount"]
