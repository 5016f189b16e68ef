"""
Audit Logger

DESIGN DECISION: Every change to the ledger is logged.
Roommates settle up with real money, so when a balance looks wrong
there has to be a trail of who added, removed or reset what, and which
transfers were suggested at the time.

The audit logger:
- Writes a structured local log line for every event
- Persists the event when an audit store is configured
- Never lets a failing audit store break the ledger change itself
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from roomledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from roomledger.models.expense import ExpenseRecord, StatisticsReport
from roomledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


_LOG_METHOD = {
    AuditSeverity.INFO: "info",
    AuditSeverity.WARNING: "warning",
    AuditSeverity.ERROR: "error",
}


class AuditLogger:
    """
    Records audit events for the flows.

    Without a store, events only reach the local log.
    """

    def __init__(self, storage: Optional[AuditStorageInterface] = None):
        self._storage = storage
        self._logger = structlog.get_logger("roomledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an event locally, then persist it.

        Returns False only when the store refused or failed the write.
        """
        emit = getattr(self._logger, _LOG_METHOD[event.severity])
        emit("audit_event", **event.to_log_dict())

        if self._storage is None:
            return True

        try:
            return await self._storage.append_event(event)
        except Exception as e:
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    async def log_expense_created(
        self,
        expense: ExpenseRecord,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.expense_created(expense, correlation_id))

    async def log_expense_deleted(
        self,
        expense: ExpenseRecord,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.expense_deleted(expense, correlation_id))

    async def log_expenses_reset(
        self,
        deleted_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.expenses_reset(deleted_count, correlation_id))

    async def log_validation_failed(
        self,
        errors: list[dict],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(errors, correlation_id))

    async def log_statistics_computed(
        self,
        report: StatisticsReport,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.statistics_computed(report, correlation_id))

    async def log_data_integrity_error(
        self,
        error_message: str,
        offending: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Stored expenses name someone who is not on the roster."""
        await self.log(AuditEventBuilder.data_integrity_error(
            error_message=error_message,
            offending=offending,
            correlation_id=correlation_id,
        ))

    async def log_storage_error(
        self,
        backend: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(
            backend=backend,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """A fresh ID to tie together the audit events of one request."""
    return uuid4()
