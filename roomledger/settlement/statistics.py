"""
Monthly statistics: aggregate, then settle.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from roomledger.models.expense import (
    DateWindow,
    ExpenseRecord,
    StatisticsReport,
    utcnow,
)
from roomledger.settlement.aggregator import RosterLike, aggregate, as_roster
from roomledger.settlement.solver import settle


def month_window(today: Optional[date] = None) -> DateWindow:
    """The calendar month containing `today` (defaults to the current date)."""
    today = today or utcnow().date()
    return DateWindow.for_month(today.year, today.month)


def compute_statistics(
    records: Iterable[ExpenseRecord],
    roster: RosterLike,
    window: DateWindow,
    tolerance: Optional[Decimal] = None,
) -> StatisticsReport:
    """Run the aggregator and the solver for one reporting window."""
    roster = as_roster(roster)
    totals = aggregate(records, roster, window)
    settlement = settle(totals, roster, tolerance)
    return StatisticsReport(
        window=window,
        totals=totals,
        settlement=settlement,
    )
