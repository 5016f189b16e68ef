"""
Audit Models for Room Ledger

Every change to the shared ledger, and every settlement we suggest, is
logged. Roommates can always see who added or removed what, and what the
statistics looked like when a settle-up was proposed.

DESIGN DECISION: Audit logs are append-only. We never delete or modify
them, not even on a full reset of the expenses.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from roomledger.models.expense import ExpenseRecord, StatisticsReport, utcnow


class AuditEventType(str, Enum):
    """What happened."""
    # Ledger changes
    EXPENSE_CREATED = "expense_created"
    EXPENSE_DELETED = "expense_deleted"
    EXPENSES_RESET = "expenses_reset"

    # Rejected input
    VALIDATION_FAILED = "validation_failed"

    # Settlement
    STATISTICS_COMPUTED = "statistics_computed"
    DATA_INTEGRITY_ERROR = "data_integrity_error"

    # Backend trouble
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


# Column order of an audit row, shared by the log dict and the sheet
AUDIT_FIELDS = (
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details",
    "error_message",
    "is_user_action",
)


class AuditEvent(BaseModel):
    """
    One entry in the audit trail.

    entity_type is "expense" or "statistics"; entity_id is set when the
    event concerns a single expense.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="Naive UTC"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    entity_type: Optional[str] = None
    entity_id: Optional[UUID] = None

    # Shared by every event raised while serving one request
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="True when a roommate's request caused the event"
    )

    def to_log_dict(self) -> dict:
        """JSON-safe fields for structlog, keyed as in AUDIT_FIELDS."""
        return self.model_dump(mode="json")

    def to_sheets_row(self) -> list[str]:
        """One text cell per AUDIT_FIELDS entry. Missing values are blank."""
        values = self.to_log_dict()
        values["details"] = json.dumps(self.details) if self.details else ""
        values["is_user_action"] = str(self.is_user_action)
        return ["" if values[name] is None else values[name] for name in AUDIT_FIELDS]


class AuditEventBuilder:
    """
    Builds the audit events the flows emit.

    Usage:
        event = AuditEventBuilder.expense_created(expense, correlation_id)
        event = AuditEventBuilder.statistics_computed(report, correlation_id)
    """

    @staticmethod
    def expense_created(
        expense: ExpenseRecord,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            entity_type="expense",
            entity_id=expense.id,
            correlation_id=correlation_id,
            description=(
                f"{expense.payer} paid {expense.amount} for {expense.item}"
            ),
            details={
                "item": expense.item,
                "payer": expense.payer,
                "amount": str(expense.amount),
                "date": expense.date.isoformat(),
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_deleted(
        expense: ExpenseRecord,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense.id,
            correlation_id=correlation_id,
            description=f"Removed {expense.item} ({expense.amount}, {expense.payer})",
            details={
                "item": expense.item,
                "payer": expense.payer,
                "amount": str(expense.amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def expenses_reset(
        deleted_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSES_RESET,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            correlation_id=correlation_id,
            description=f"Ledger reset, {deleted_count} expense(s) removed",
            details={"deleted_count": deleted_count},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        errors: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        fields = ", ".join(sorted({error["field"] for error in errors}))
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            correlation_id=correlation_id,
            description=f"Expense rejected, problems with: {fields}",
            details={"errors": errors},
            is_user_action=True,
        )

    @staticmethod
    def statistics_computed(
        report: StatisticsReport,
        correlation_id: UUID
    ) -> AuditEvent:
        transfers = report.settlement.transfers
        return AuditEvent(
            event_type=AuditEventType.STATISTICS_COMPUTED,
            entity_type="statistics",
            correlation_id=correlation_id,
            description=(
                f"{report.month}: {report.totals.record_count} expense(s), "
                f"{len(transfers)} transfer(s) suggested"
            ),
            details={
                "month": report.month,
                "total": str(report.totals.total),
                "transfers": [
                    t.model_dump(mode="json", by_alias=True) for t in transfers
                ],
            },
        )

    @staticmethod
    def data_integrity_error(
        error_message: str,
        offending: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_INTEGRITY_ERROR,
            severity=AuditSeverity.ERROR,
            entity_type="statistics",
            correlation_id=correlation_id,
            description="Stored expenses failed an integrity check",
            error_message=error_message,
            details={"offending": offending},
        )

    @staticmethod
    def storage_error(
        backend: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"{backend} failed",
            error_message=error_message,
            details={"backend": backend},
            correlation_id=correlation_id,
        )
