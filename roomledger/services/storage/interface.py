"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing and single-process deployments
3. Keep the settlement engine decoupled from where expenses live

The settlement engine never touches storage. It only sees the records a
flow fetched for a date range.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from roomledger.models.expense import ExpenseRecord
from roomledger.models.audit import AuditEvent


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense storage operations.

    Any storage implementation (Google Sheets, in-memory, a database)
    must implement these methods.
    """

    @abstractmethod
    async def save_expense(self, expense: ExpenseRecord) -> bool:
        """
        Save a new expense.

        Returns:
            True if saved successfully

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_expense(self, expense_id: UUID) -> Optional[ExpenseRecord]:
        """
        Retrieve an expense by its ID.

        Returns:
            The expense if found, None otherwise
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: UUID) -> Optional[ExpenseRecord]:
        """
        Delete an expense by ID.

        Returns:
            The deleted expense, or None if no expense had that ID
        """
        pass

    @abstractmethod
    async def list_expenses(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[ExpenseRecord]:
        """
        List expenses, newest date first.

        Args:
            date_from: Only expenses dated on or after this moment
            date_to: Only expenses dated on or before this moment
            limit: Maximum number of results (None for all)
            offset: Number of results to skip

        Returns:
            List of matching expenses
        """
        pass

    @abstractmethod
    async def delete_all(self) -> int:
        """
        Delete every expense.

        Returns:
            Number of expenses deleted
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one API request).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


def sort_newest_first(expenses: list[ExpenseRecord]) -> list[ExpenseRecord]:
    """Order shared by every backend: date desc, then most recently stored."""
    return sorted(expenses, key=lambda e: (e.date, e.created_at), reverse=True)


def in_date_range(
    expense: ExpenseRecord,
    date_from: Optional[datetime],
    date_to: Optional[datetime],
) -> bool:
    if date_from and expense.date < date_from:
        return False
    if date_to and expense.date > date_to:
        return False
    return True


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
