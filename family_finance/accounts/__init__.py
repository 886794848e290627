"""Accounts package: primary accounts, members and context switching."""

from family_finance.accounts.service import (
    AccountService,
    ViewState,
    return_target,
    view_state,
)

__all__ = ["AccountService", "ViewState", "return_target", "view_state"]
