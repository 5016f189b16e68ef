"""
Main Orchestrator for Room Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Ledger changes (validate → save → audit)
2. Statistics (month window → fetch → aggregate → settle → audit)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches storage without passing validation
- The settlement engine only ever sees records fetched for one window
- Every change and every computed settlement is audited

The settlement engine itself stays pure; all I/O happens here.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

import structlog

from roomledger.audit import AuditLogger, create_correlation_id
from roomledger.config import Settings, get_settings
from roomledger.errors import DataIntegrityError, ExpenseValidationError
from roomledger.models.expense import ExpenseRecord, Roster, StatisticsReport
from roomledger.services.storage import (
    AuditStorageInterface,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    NotFoundError,
    StorageError,
)
from roomledger.settlement import compute_statistics, month_window
from roomledger.validation import ExpenseValidator


logger = structlog.get_logger(__name__)


async def _audit_storage_failure(
    audit_logger: Optional[AuditLogger],
    storage: ExpenseStorageInterface,
    error: StorageError,
    correlation_id: UUID,
) -> None:
    """Record a storage failure before it propagates to the caller."""
    backend = type(storage).__name__
    logger.error("storage_failed", backend=backend, error=str(error))
    if audit_logger:
        await audit_logger.log_storage_error(
            backend=backend,
            error_message=str(error),
            correlation_id=correlation_id,
        )


class ExpenseFlow:
    """
    Orchestrates changes to the shared ledger.

    Flow for a new expense:
    1. Validate → two-stage validation, reject with every issue found
    2. Build record → generate ID, default the date to now
    3. Save → persist to storage
    4. Audit → record who paid for what
    """

    def __init__(
        self,
        expense_storage: ExpenseStorageInterface,
        validator: ExpenseValidator,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = expense_storage
        self._validator = validator
        self._audit_logger = audit_logger

    async def list_expenses(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> list[ExpenseRecord]:
        """Every stored expense, newest date first."""
        try:
            return await self._storage.list_expenses()
        except StorageError as e:
            await _audit_storage_failure(
                self._audit_logger,
                self._storage,
                e,
                correlation_id or create_correlation_id(),
            )
            raise

    async def add_expense(
        self,
        payload: dict,
        correlation_id: Optional[UUID] = None,
    ) -> ExpenseRecord:
        """
        Validate and store a new expense.

        Raises:
            ExpenseValidationError: If the payload is rejected. The
                exception carries the full ValidationResult.
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self._validator.validate(payload)
        if not result.is_valid:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    errors=result.to_error_list(),
                    correlation_id=correlation_id,
                )
            raise ExpenseValidationError(result)

        expense = result.expense.to_record()
        try:
            await self._storage.save_expense(expense)
        except StorageError as e:
            await _audit_storage_failure(
                self._audit_logger, self._storage, e, correlation_id
            )
            raise

        if self._audit_logger:
            await self._audit_logger.log_expense_created(
                expense,
                correlation_id=correlation_id,
            )

        return expense

    async def delete_expense(
        self,
        expense_id: Union[UUID, str],
        correlation_id: Optional[UUID] = None,
    ) -> ExpenseRecord:
        """
        Delete one expense.

        Raises:
            NotFoundError: If no expense has this ID (malformed IDs included)
        """
        correlation_id = correlation_id or create_correlation_id()

        if not isinstance(expense_id, UUID):
            try:
                expense_id = UUID(str(expense_id))
            except ValueError:
                raise NotFoundError(f"Expense not found: {expense_id}")

        try:
            expense = await self._storage.delete_expense(expense_id)
        except StorageError as e:
            await _audit_storage_failure(
                self._audit_logger, self._storage, e, correlation_id
            )
            raise

        if expense is None:
            raise NotFoundError(f"Expense not found: {expense_id}")

        if self._audit_logger:
            await self._audit_logger.log_expense_deleted(
                expense,
                correlation_id=correlation_id,
            )

        return expense

    async def reset(self, correlation_id: Optional[UUID] = None) -> int:
        """Delete every expense. Returns how many were removed."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            deleted = await self._storage.delete_all()
        except StorageError as e:
            await _audit_storage_failure(
                self._audit_logger, self._storage, e, correlation_id
            )
            raise

        if self._audit_logger:
            await self._audit_logger.log_expenses_reset(
                deleted_count=deleted,
                correlation_id=correlation_id,
            )

        return deleted


class StatisticsFlow:
    """
    Orchestrates the monthly statistics.

    Flow:
    1. Window → the calendar month containing `today`
    2. Fetch → ask storage for expenses in that window only
    3. Compute → aggregate, then settle (pure, no I/O)
    4. Audit → record the suggested settlement

    If stored data is unreadable or contradicts the roster, nothing is
    returned: the error is audited and re-raised.
    """

    def __init__(
        self,
        expense_storage: ExpenseStorageInterface,
        roster: Roster,
        audit_logger: Optional[AuditLogger] = None,
        tolerance: Optional[Decimal] = None,
    ):
        self._storage = expense_storage
        self._roster = roster
        self._audit_logger = audit_logger
        self._tolerance = tolerance

    async def _audit_integrity_error(
        self,
        error: DataIntegrityError,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_data_integrity_error(
                error_message=str(error),
                offending=error.offending,
                correlation_id=correlation_id,
            )

    async def get_statistics(
        self,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> StatisticsReport:
        correlation_id = correlation_id or create_correlation_id()
        window = month_window(today)

        try:
            records = await self._storage.list_expenses(
                date_from=window.start,
                date_to=window.end,
            )
        except StorageError as e:
            await _audit_storage_failure(
                self._audit_logger, self._storage, e, correlation_id
            )
            raise
        except DataIntegrityError as e:
            await self._audit_integrity_error(e, correlation_id)
            raise

        try:
            report = compute_statistics(
                records,
                self._roster,
                window,
                tolerance=self._tolerance,
            )
        except DataIntegrityError as e:
            await self._audit_integrity_error(e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_statistics_computed(
                report,
                correlation_id=correlation_id,
            )

        return report


def _create_storage(
    settings: Settings,
) -> tuple[ExpenseStorageInterface, AuditStorageInterface]:
    """Pick the storage backend named in the settings."""
    if settings.storage.backend == "google_sheets":
        sheets_client = GoogleSheetsClient(settings.google_sheets)
        return (
            GoogleSheetsExpenseStorage(sheets_client),
            GoogleSheetsAuditStorage(sheets_client),
        )
    return InMemoryExpenseStorage(), InMemoryAuditStorage()


def create_app_components(
    settings: Optional[Settings] = None,
    expense_storage: Optional[ExpenseStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> tuple[ExpenseFlow, StatisticsFlow]:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to build from (defaults to get_settings())
        expense_storage: Use this store instead of the configured backend
        audit_storage: Use this audit store instead of the configured backend

    Returns:
        (expense_flow, statistics_flow)

    Raises:
        ConfigurationError: If the roster is empty or has duplicates
    """
    settings = settings or get_settings()
    roster = settings.roster.roster
    app_settings = settings.app

    if expense_storage is None:
        expense_storage, default_audit_storage = _create_storage(settings)
        audit_storage = audit_storage or default_audit_storage

    audit_logger = AuditLogger(audit_storage)

    logger.info(
        "components_created",
        environment=app_settings.app_environment,
        roster=list(roster.members),
        backend=type(expense_storage).__name__,
    )

    expense_flow = ExpenseFlow(
        expense_storage=expense_storage,
        validator=ExpenseValidator(roster, app_settings),
        audit_logger=audit_logger,
    )
    statistics_flow = StatisticsFlow(
        expense_storage=expense_storage,
        roster=roster,
        audit_logger=audit_logger,
        tolerance=app_settings.settlement_tolerance,
    )

    return expense_flow, statistics_flow
