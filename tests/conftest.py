"""Shared fixtures for the Room Ledger tests."""

from datetime import datetime
from decimal import Decimal

import pytest

from roomledger.config import AppSettings
from roomledger.models.expense import ExpenseRecord, Roster


@pytest.fixture
def roster():
    return Roster(members=("A", "B", "C"))


@pytest.fixture
def app_settings():
    return AppSettings()


@pytest.fixture
def make_expense():
    """Factory for stored expenses; amounts may be given as strings."""

    def _make(payer="A", amount="10.00", item="Groceries", date=None, **kwargs):
        return ExpenseRecord(
            item=item,
            amount=Decimal(amount),
            payer=payer,
            date=date or datetime(2026, 10, 15, 12, 0),
            **kwargs,
        )

    return _make
