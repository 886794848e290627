"""
Data Models Package

This package contains all Pydantic models used in Family Finance.
All data flowing through the system must conform to these schemas.
"""

from family_finance.models.account import Account
from family_finance.models.ledger import (
    Category,
    CategoryType,
    InstallmentInfo,
    STARTER_CATEGORIES,
    Transaction,
    TransactionStatus,
    TransactionType,
    starter_categories,
    to_money,
)
from family_finance.models.reports import (
    CategoryBudgetReport,
    CategoryBudgetRow,
    CategoryTotal,
    FinancialAnalysis,
    MonthlyCategoryTotals,
    MonthlySummary,
    ReceiptData,
)
from family_finance.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Account models
    "Account",
    # Ledger models
    "Category",
    "CategoryType",
    "InstallmentInfo",
    "STARTER_CATEGORIES",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "starter_categories",
    "to_money",
    # Report models
    "CategoryBudgetReport",
    "CategoryBudgetRow",
    "CategoryTotal",
    "FinancialAnalysis",
    "MonthlyCategoryTotals",
    "MonthlySummary",
    "ReceiptData",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
