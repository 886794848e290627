"""Validation package."""

from family_finance.validation.validator import LedgerValidator

__all__ = ["LedgerValidator"]
