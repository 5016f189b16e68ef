"""Tests for the period aggregator."""

import random
from datetime import datetime
from decimal import Decimal

import pytest

from roomledger.errors import ConfigurationError, DataIntegrityError
from roomledger.models.expense import DateWindow
from roomledger.settlement import aggregate, filter_by_window


class TestAggregate:
    """Tests for folding expenses into per-roommate totals."""

    def test_sums_per_payer(self, roster, make_expense):
        records = [
            make_expense(payer="A", amount="100.00"),
            make_expense(payer="A", amount="50.25"),
            make_expense(payer="B", amount="20.00"),
        ]
        totals = aggregate(records, roster)

        assert totals.per_participant == {
            "A": Decimal("150.25"),
            "B": Decimal("20.00"),
            "C": Decimal("0"),
        }
        assert totals.total == Decimal("170.25")
        assert totals.record_count == 3

    def test_no_expenses(self, roster):
        totals = aggregate([], roster)

        assert totals.total == Decimal("0")
        assert totals.per_participant == {"A": 0, "B": 0, "C": 0}
        assert totals.record_count == 0

    def test_every_roster_member_present_in_roster_order(self, roster, make_expense):
        totals = aggregate([make_expense(payer="C")], roster)
        assert list(totals.per_participant) == ["A", "B", "C"]

    def test_accepts_plain_name_list(self, make_expense):
        totals = aggregate([make_expense(payer="B")], ["A", "B"])
        assert totals.per_participant["B"] == Decimal("10.00")

    def test_unknown_payer_raises_with_offending_records(self, roster, make_expense):
        """A stranger's expense is reported, never silently dropped."""
        stranger = make_expense(payer="Zed", item="Pizza")
        records = [make_expense(payer="A"), stranger]

        with pytest.raises(DataIntegrityError) as exc_info:
            aggregate(records, roster)

        assert exc_info.value.offending == [
            {"id": str(stranger.id), "payer": "Zed", "item": "Pizza"},
        ]
        assert "Zed" in str(exc_info.value)

    def test_unknown_payer_outside_window_is_ignored(self, roster, make_expense):
        window = DateWindow.for_month(2026, 10)
        records = [
            make_expense(payer="A"),
            make_expense(payer="Zed", date=datetime(2026, 9, 3)),
        ]
        totals = aggregate(records, roster, window)
        assert totals.total == Decimal("10.00")

    def test_empty_roster_raises_configuration_error(self, make_expense):
        with pytest.raises(ConfigurationError):
            aggregate([make_expense()], [])

    def test_does_not_mutate_input(self, roster, make_expense):
        records = [make_expense(payer="A"), make_expense(payer="B")]
        snapshot = list(records)
        aggregate(records, roster)
        assert records == snapshot


class TestWindowFiltering:
    """Tests for the reporting window."""

    def test_window_is_inclusive_at_both_ends(self, roster, make_expense):
        window = DateWindow.for_month(2026, 10)
        records = [
            make_expense(payer="A", amount="1.00", date=datetime(2026, 10, 1, 0, 0)),
            make_expense(payer="A", amount="2.00", date=datetime(2026, 10, 31, 23, 59, 59)),
            make_expense(payer="A", amount="4.00", date=datetime(2026, 9, 30, 23, 59, 59)),
            make_expense(payer="A", amount="8.00", date=datetime(2026, 11, 1, 0, 0)),
        ]
        totals = aggregate(records, roster, window)

        assert totals.total == Decimal("3.00")
        assert totals.record_count == 2

    def test_no_window_keeps_everything(self, make_expense):
        records = [
            make_expense(date=datetime(2020, 1, 1)),
            make_expense(date=datetime(2030, 1, 1)),
        ]
        assert filter_by_window(records, None) == records


class TestAggregateProperties:
    """Properties checked over seeded random ledgers."""

    def test_total_equals_sum_of_parts(self, roster, make_expense):
        rng = random.Random(7)
        for _ in range(50):
            records = [
                make_expense(
                    payer=rng.choice(roster.members),
                    amount=str(Decimal(rng.randint(0, 50000)) / 100),
                )
                for _ in range(rng.randint(0, 30))
            ]
            totals = aggregate(records, roster)
            assert sum(totals.per_participant.values()) == totals.total

    def test_many_small_amounts_do_not_drift(self, roster, make_expense):
        """A thousand 0.10 expenses add up to exactly 100.00."""
        records = [make_expense(payer="B", amount="0.10") for _ in range(1000)]
        totals = aggregate(records, roster)

        assert totals.total == Decimal("100.00")
        assert totals.per_participant["B"] == Decimal("100.00")

    def test_order_does_not_matter(self, roster, make_expense):
        rng = random.Random(11)
        records = [
            make_expense(
                payer=rng.choice(roster.members),
                amount=str(Decimal(rng.randint(1, 99999)) / 100),
            )
            for _ in range(40)
        ]
        expected = aggregate(records, roster)

        for _ in range(10):
            shuffled = list(records)
            rng.shuffle(shuffled)
            assert aggregate(shuffled, roster) == expected

    def test_idempotent(self, roster, make_expense):
        records = [make_expense(payer="A"), make_expense(payer="C", amount="3.33")]
        assert aggregate(records, roster) == aggregate(records, roster)
