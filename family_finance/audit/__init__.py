"""Audit logging package."""

from family_finance.audit.logger import AuditLogger, get_logger

__all__ = ["AuditLogger", "get_logger"]
