"""Tests for the monthly statistics composition."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from roomledger.errors import DataIntegrityError
from roomledger.settlement import compute_statistics, month_window


class TestMonthWindow:
    """Tests for picking the current month."""

    def test_window_for_given_day(self):
        window = month_window(date(2026, 10, 19))
        assert window.start == datetime(2026, 10, 1)
        assert window.end.date() == date(2026, 10, 31)

    def test_defaults_to_current_month(self):
        window = month_window()
        assert window.start.day == 1


class TestComputeStatistics:
    """Aggregate, then settle, for one window."""

    def test_report_for_october(self, roster, make_expense):
        records = [
            make_expense(payer="A", amount="90.00", date=datetime(2026, 10, 3)),
            make_expense(payer="B", amount="60.00", date=datetime(2026, 10, 12)),
            make_expense(payer="C", amount="30.00", date=datetime(2026, 10, 31, 22, 0)),
            # Previous month, must not count
            make_expense(payer="C", amount="500.00", date=datetime(2026, 9, 30, 23, 0)),
        ]
        report = compute_statistics(records, roster, month_window(date(2026, 10, 5)))

        assert report.month == "October 2026"
        assert report.totals.total == Decimal("180.00")
        assert report.totals.record_count == 3
        assert report.settlement.average == Decimal("60")

        response = report.to_response()
        assert response["splits"] == [{"from": "C", "to": "A", "amount": 30.0}]
        assert response["perPerson"] == {"A": 90.0, "B": 60.0, "C": 30.0}
        assert response["balances"] == {"A": 30.0, "B": 0.0, "C": -30.0}

    def test_empty_month(self, roster):
        report = compute_statistics([], roster, month_window(date(2026, 10, 5)))
        response = report.to_response()

        assert response["total"] == 0.0
        assert response["splits"] == []
        assert response["average"] == 0.0

    def test_unknown_payer_fails_whole_report(self, roster, make_expense):
        records = [make_expense(payer="A"), make_expense(payer="Zed")]
        with pytest.raises(DataIntegrityError):
            compute_statistics(records, roster, month_window(date(2026, 10, 5)))

    def test_custom_tolerance_is_kept(self, roster, make_expense):
        report = compute_statistics(
            [make_expense(payer="A")],
            roster,
            month_window(date(2026, 10, 5)),
            tolerance=Decimal("0.05"),
        )
        assert report.settlement.tolerance == Decimal("0.05")
        assert report.settlement.is_settled
