"""
Google Sheets backend

Why a spreadsheet: the roommates already share one, they can read and
hand-correct the ledger there, and nobody has to run a database.

What it costs:
- Every read pulls the whole worksheet; date filtering happens here
- A delete looks the row up by id first, so two concurrent deletes can race
- Amounts are stored as text, otherwise Sheets would coerce them to floats

The flows only see the storage interfaces, never gspread.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from roomledger.config import GoogleSheetsSettings, get_settings
from roomledger.errors import DataIntegrityError
from roomledger.models.audit import AUDIT_FIELDS, AuditEvent
from roomledger.models.expense import ExpenseRecord
from roomledger.services.storage.interface import (
    AuditStorageInterface,
    ExpenseStorageInterface,
    StorageConnectionError,
    StorageError,
    in_date_range,
    sort_newest_first,
)


logger = structlog.get_logger(__name__)


# Column mappings for Expenses sheet
EXPENSE_COLUMNS = [
    "id",
    "item",
    "price",
    "person",
    "date",
    "note",
    "created_at",
]

# Audit sheet header, in the order AuditEvent.to_sheets_row writes cells
AUDIT_COLUMNS = list(AUDIT_FIELDS)

# open_by_key needs Drive access as well as Sheets
SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


class GoogleSheetsClient:
    """Opens the configured spreadsheet once and hands out its worksheets."""

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """Authorize with the service account key, retrying transient failures."""
        if self._client is None:
            try:
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=SCOPES,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # First use: create it with a header row
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.expenses_sheet_name, EXPENSE_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


def _cells(row: list, columns: list[str]) -> dict[str, str]:
    """Non-blank cells keyed by column name. Sheets trims trailing blanks."""
    return {name: value for name, value in zip(columns, row) if value}


class GoogleSheetsExpenseStorage(ExpenseStorageInterface):
    """
    Google Sheets implementation of expense storage.

    One expense per row. Amounts are written as strings so the sheet
    never rounds them through a float.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _expense_to_row(self, expense: ExpenseRecord) -> list:
        """Convert an ExpenseRecord to a spreadsheet row."""
        return [
            str(expense.id),
            expense.item,
            str(expense.amount),
            expense.payer,
            expense.date.isoformat(),
            expense.note or "",
            expense.created_at.isoformat(),
        ]

    def _row_to_expense(self, row: list) -> ExpenseRecord:
        """Convert a spreadsheet row to an ExpenseRecord."""
        cells = _cells(row, EXPENSE_COLUMNS)
        return ExpenseRecord(
            id=UUID(cells["id"]),
            item=cells.get("item", ""),
            amount=Decimal(cells["price"]),
            payer=cells.get("person", ""),
            date=datetime.fromisoformat(cells["date"]),
            note=cells.get("note"),
            # Rows added by hand may lack created_at
            created_at=datetime.fromisoformat(cells.get("created_at", cells["date"])),
        )

    def _read_expenses(self) -> list[ExpenseRecord]:
        sheet = self._client.get_expenses_sheet()
        all_rows = sheet.get_all_values()[1:]  # Skip header

        expenses = []
        unreadable = []
        for row_number, row in enumerate(all_rows, start=2):
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                expenses.append(self._row_to_expense(row))
            except Exception as e:
                logger.warning("expense_row_unreadable", row_id=row[0], error=str(e))
                unreadable.append({"id": row[0], "row": row_number, "error": str(e)})

        # Every row must parse before any expense is returned
        if unreadable:
            raise DataIntegrityError(
                f"{len(unreadable)} expense row(s) in the sheet could not be read",
                offending=unreadable,
            )
        return expenses

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_expense(self, expense: ExpenseRecord) -> bool:
        """Append an expense to the sheet."""
        try:
            sheet = self._client.get_expenses_sheet()
            sheet.append_row(self._expense_to_row(expense), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}")

    async def get_expense(self, expense_id: UUID) -> Optional[ExpenseRecord]:
        """Retrieve an expense by its ID."""
        try:
            sheet = self._client.get_expenses_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == str(expense_id):
                    return self._row_to_expense(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get expense: {e}")

    async def delete_expense(self, expense_id: UUID) -> Optional[ExpenseRecord]:
        """Delete an expense by ID, returning what was removed."""
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
                if row and row[0] == str(expense_id):
                    expense = self._row_to_expense(row)
                    sheet.delete_rows(idx)
                    return expense

            return None
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}")

    async def list_expenses(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[ExpenseRecord]:
        """
        List expenses in a date range, newest first.

        Raises:
            DataIntegrityError: If any expense row cannot be parsed
        """
        try:
            expenses = [
                e for e in self._read_expenses()
                if in_date_range(e, date_from, date_to)
            ]
        except DataIntegrityError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}")

        ordered = sort_newest_first(expenses)
        if limit is None:
            return ordered[offset:]
        return ordered[offset:offset + limit]

    async def delete_all(self) -> int:
        """Clear every expense row, keeping the header."""
        try:
            sheet = self._client.get_expenses_sheet()
            count = sum(1 for row in sheet.get_all_values()[1:] if row and row[0])
            sheet.clear()
            sheet.append_row(EXPENSE_COLUMNS)
            return count
        except Exception as e:
            raise StorageError(f"Failed to reset expenses: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """Audit trail worksheet. Rows are only ever appended."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row back into an AuditEvent."""
        cells = _cells(row, AUDIT_COLUMNS)
        cells["details"] = json.loads(cells.get("details", "{}"))
        cells["is_user_action"] = cells.get("is_user_action", "").lower() == "true"
        # pydantic parses the UUID, datetime and enum strings
        return AuditEvent.model_validate(cells)

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception as e:
                logger.warning("audit_row_unreadable", row_id=row[0], error=str(e))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append one row. A failed write is logged and reported as False."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.error("audit_append_failed", event_id=str(event.event_id), error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID, oldest first."""
        try:
            events = [
                e for e in self._read_events()
                if e.correlation_id == correlation_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events, newest first."""
        try:
            events = self._read_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
