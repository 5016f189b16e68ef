"""
In-Memory Storage Implementation

Used for tests and for single-process deployments that can afford to
lose their data on restart.

Writes are serialized through an asyncio.Lock. Reads take a snapshot,
so a statistics request never sees a half-applied reset.
"""

import asyncio
from datetime import datetime
from typing import Optional
from uuid import UUID

from roomledger.models.audit import AuditEvent
from roomledger.models.expense import ExpenseRecord
from roomledger.services.storage.interface import (
    AuditStorageInterface,
    ExpenseStorageInterface,
    StorageError,
    in_date_range,
    sort_newest_first,
)


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """Expenses kept in a dict keyed by ID."""

    def __init__(self, expenses: Optional[list[ExpenseRecord]] = None):
        self._expenses: dict[UUID, ExpenseRecord] = {
            expense.id: expense for expense in (expenses or [])
        }
        self._lock = asyncio.Lock()

    async def save_expense(self, expense: ExpenseRecord) -> bool:
        async with self._lock:
            if expense.id in self._expenses:
                raise StorageError(f"Expense already exists: {expense.id}")
            self._expenses[expense.id] = expense
        return True

    async def get_expense(self, expense_id: UUID) -> Optional[ExpenseRecord]:
        return self._expenses.get(expense_id)

    async def delete_expense(self, expense_id: UUID) -> Optional[ExpenseRecord]:
        async with self._lock:
            return self._expenses.pop(expense_id, None)

    async def list_expenses(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[ExpenseRecord]:
        snapshot = list(self._expenses.values())
        matching = [e for e in snapshot if in_date_range(e, date_from, date_to)]
        ordered = sort_newest_first(matching)
        if limit is None:
            return ordered[offset:]
        return ordered[offset:offset + limit]

    async def delete_all(self) -> int:
        async with self._lock:
            count = len(self._expenses)
            self._expenses.clear()
        return count


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
