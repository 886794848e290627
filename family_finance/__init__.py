"""
Family Finance - Source Package

A household finance tracker: income and expense transactions,
category budgets, installments, bills to pay, and member profiles
that share or isolate a data context.

DESIGN PRINCIPLES:
1. Every row belongs to exactly one data context
2. Validate locally, before any network call
3. Derived views are recomputed from raw transactions, never stored
4. The storage provider enforces access; we never re-check it
5. AI helpers degrade gracefully, they never break a flow
"""

__version__ = "1.0.0"
__author__ = "Family Finance Team"
