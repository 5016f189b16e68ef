"""Integration tests for the flows, with in-memory storage."""

import asyncio
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from roomledger.audit import AuditLogger, create_correlation_id
from roomledger.config import Settings
from roomledger.errors import (
    ConfigurationError,
    DataIntegrityError,
    ExpenseValidationError,
)
from roomledger.models.audit import AuditEventType
from roomledger.orchestrator import (
    ExpenseFlow,
    StatisticsFlow,
    create_app_components,
)
from roomledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    NotFoundError,
    StorageError,
)
from roomledger.validation import ExpenseValidator


class BrokenExpenseStorage(InMemoryExpenseStorage):
    async def list_expenses(self, *args, **kwargs):
        raise StorageError("Failed to list expenses: quota exceeded")

    async def save_expense(self, expense):
        raise StorageError("Failed to save expense: quota exceeded")


@pytest.fixture
def storage():
    return InMemoryExpenseStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def expense_flow(storage, audit_storage, roster, app_settings):
    return ExpenseFlow(
        expense_storage=storage,
        validator=ExpenseValidator(roster, app_settings),
        audit_logger=AuditLogger(audit_storage),
    )


@pytest.fixture
def statistics_flow(storage, audit_storage, roster):
    return StatisticsFlow(
        expense_storage=storage,
        roster=roster,
        audit_logger=AuditLogger(audit_storage),
    )


def event_types(audit_storage):
    events = asyncio.run(audit_storage.get_recent_events())
    return [e.event_type for e in reversed(events)]


class TestExpenseFlow:
    """Validate → save → audit."""

    def test_add_expense(self, expense_flow, storage, audit_storage):
        correlation_id = create_correlation_id()
        expense = asyncio.run(expense_flow.add_expense(
            {"item": "Milk", "price": "45.50", "person": "A"},
            correlation_id=correlation_id,
        ))

        assert expense.amount == Decimal("45.50")
        assert asyncio.run(storage.get_expense(expense.id)) == expense

        [event] = asyncio.run(audit_storage.get_events_by_correlation_id(correlation_id))
        assert event.event_type == AuditEventType.EXPENSE_CREATED
        assert event.entity_id == expense.id

    def test_invalid_expense_is_not_stored(self, expense_flow, storage, audit_storage):
        with pytest.raises(ExpenseValidationError) as exc_info:
            asyncio.run(expense_flow.add_expense(
                {"item": "Milk", "price": 10, "person": "Zed"}
            ))

        assert exc_info.value.result.to_error_list()[0]["field"] == "person"
        assert asyncio.run(storage.list_expenses()) == []
        assert event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    def test_list_expenses_newest_first(self, expense_flow):
        for day in (3, 9, 6):
            asyncio.run(expense_flow.add_expense({
                "item": f"Day {day}",
                "price": 1,
                "person": "B",
                "date": f"2026-10-0{day}T10:00:00",
            }))

        listed = asyncio.run(expense_flow.list_expenses())
        assert [e.item for e in listed] == ["Day 9", "Day 6", "Day 3"]

    def test_delete_expense(self, expense_flow, storage, audit_storage):
        expense = asyncio.run(expense_flow.add_expense(
            {"item": "Milk", "price": 10, "person": "A"}
        ))

        removed = asyncio.run(expense_flow.delete_expense(str(expense.id)))

        assert removed.id == expense.id
        assert asyncio.run(storage.list_expenses()) == []
        assert event_types(audit_storage)[-1] == AuditEventType.EXPENSE_DELETED

    def test_delete_unknown_expense(self, expense_flow):
        with pytest.raises(NotFoundError):
            asyncio.run(expense_flow.delete_expense(uuid4()))

    def test_delete_malformed_id(self, expense_flow):
        with pytest.raises(NotFoundError):
            asyncio.run(expense_flow.delete_expense("not-a-uuid"))

    def test_reset(self, expense_flow, storage, audit_storage):
        for _ in range(3):
            asyncio.run(expense_flow.add_expense({"item": "Tea", "price": 5, "person": "C"}))

        assert asyncio.run(expense_flow.reset()) == 3
        assert asyncio.run(storage.list_expenses()) == []
        assert event_types(audit_storage)[-1] == AuditEventType.EXPENSES_RESET

    def test_storage_failure_is_audited_and_raised(self, roster, app_settings, audit_storage):
        flow = ExpenseFlow(
            expense_storage=BrokenExpenseStorage(),
            validator=ExpenseValidator(roster, app_settings),
            audit_logger=AuditLogger(audit_storage),
        )

        with pytest.raises(StorageError):
            asyncio.run(flow.add_expense({"item": "Milk", "price": 10, "person": "A"}))

        assert event_types(audit_storage) == [AuditEventType.STORAGE_ERROR]


class TestStatisticsFlow:
    """Month window → fetch → aggregate → settle → audit."""

    def test_statistics_for_current_month(
        self, statistics_flow, storage, audit_storage, make_expense
    ):
        for expense in (
            make_expense(payer="A", amount="300.00", date=datetime(2026, 10, 2)),
            make_expense(payer="B", amount="99.00", date=datetime(2026, 9, 28)),
        ):
            asyncio.run(storage.save_expense(expense))

        report = asyncio.run(statistics_flow.get_statistics(today=date(2026, 10, 19)))
        response = report.to_response()

        assert response["month"] == "October 2026"
        assert response["total"] == 300.0
        assert response["splits"] == [
            {"from": "B", "to": "A", "amount": 100.0},
            {"from": "C", "to": "A", "amount": 100.0},
        ]
        assert event_types(audit_storage) == [AuditEventType.STATISTICS_COMPUTED]

    def test_stranger_in_storage_fails_and_is_audited(
        self, statistics_flow, storage, audit_storage, make_expense
    ):
        asyncio.run(storage.save_expense(
            make_expense(payer="Zed", date=datetime(2026, 10, 2))
        ))

        with pytest.raises(DataIntegrityError) as exc_info:
            asyncio.run(statistics_flow.get_statistics(today=date(2026, 10, 19)))

        assert exc_info.value.offending[0]["payer"] == "Zed"
        assert event_types(audit_storage) == [AuditEventType.DATA_INTEGRITY_ERROR]

    def test_storage_failure(self, roster, audit_storage):
        flow = StatisticsFlow(
            expense_storage=BrokenExpenseStorage(),
            roster=roster,
            audit_logger=AuditLogger(audit_storage),
        )
        with pytest.raises(StorageError):
            asyncio.run(flow.get_statistics(today=date(2026, 10, 19)))

        assert event_types(audit_storage) == [AuditEventType.STORAGE_ERROR]

    def test_works_without_audit_logger(self, storage, roster):
        flow = StatisticsFlow(expense_storage=storage, roster=roster)
        report = asyncio.run(flow.get_statistics(today=date(2026, 10, 19)))
        assert report.settlement.transfers == []


class TestCreateAppComponents:
    """Wiring from settings."""

    def test_memory_backend(self, monkeypatch):
        monkeypatch.setenv("ROSTER_MEMBERS", "Umakanta, Vikram, Somanath")
        monkeypatch.setenv("STORAGE_BACKEND", "memory")

        expense_flow, statistics_flow = create_app_components(Settings())

        expense = asyncio.run(expense_flow.add_expense(
            {"item": "Rice", "price": 60, "person": "Vikram"}
        ))
        assert expense.payer == "Vikram"

        report = asyncio.run(statistics_flow.get_statistics())
        assert list(report.totals.per_participant) == ["Umakanta", "Vikram", "Somanath"]

    def test_flows_share_storage(self, monkeypatch, make_expense):
        monkeypatch.setenv("ROSTER_MEMBERS", "A,B,C")
        storage = InMemoryExpenseStorage()

        expense_flow, _ = create_app_components(Settings(), expense_storage=storage)
        asyncio.run(storage.save_expense(make_expense()))

        assert len(asyncio.run(expense_flow.list_expenses())) == 1

    def test_empty_roster(self, monkeypatch):
        monkeypatch.setenv("ROSTER_MEMBERS", "")
        with pytest.raises(ConfigurationError):
            create_app_components(Settings())

    def test_duplicate_roster(self, monkeypatch):
        monkeypatch.setenv("ROSTER_MEMBERS", "A,B,A")
        with pytest.raises(ConfigurationError):
            create_app_components(Settings())
