"""
Data Models Package

This package contains all Pydantic models used in Room Ledger.
All data flowing through the system must conform to these schemas.
"""

from roomledger.models.expense import (
    DateWindow,
    ExpenseCreate,
    ExpenseRecord,
    Money,
    PeriodTotals,
    Roster,
    Settlement,
    StatisticsReport,
    Transfer,
    ValidationIssue,
    ValidationResult,
    utcnow,
)
from roomledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "DateWindow",
    "ExpenseCreate",
    "ExpenseRecord",
    "Money",
    "PeriodTotals",
    "Roster",
    "Settlement",
    "StatisticsReport",
    "Transfer",
    "ValidationIssue",
    "ValidationResult",
    "utcnow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
