"""
Storage Services Package

Provides abstract interfaces and concrete implementations for expense storage.
In-memory and Google Sheets backends are available; both are swappable.
"""

from roomledger.services.storage.interface import (
    AuditStorageInterface,
    ExpenseStorageInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
)
from roomledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
)
from roomledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ExpenseStorageInterface",
    # Exceptions
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
]
