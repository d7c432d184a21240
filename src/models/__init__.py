"""
Data Models Package

This package contains all Pydantic models used by the expense tracker.
All data flowing through the system must conform to these schemas.
"""

from src.models.transaction import (
    Category,
    CategoryAmount,
    CategoryDetail,
    ChartPoint,
    ExportRow,
    LedgerSnapshot,
    LedgerSummary,
    LedgerTotals,
    Transaction,
    TransactionDraft,
    TransactionFields,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    category_to_type,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "Category",
    "CategoryAmount",
    "CategoryDetail",
    "ChartPoint",
    "ExportRow",
    "LedgerSnapshot",
    "LedgerSummary",
    "LedgerTotals",
    "Transaction",
    "TransactionDraft",
    "TransactionFields",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    "category_to_type",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
