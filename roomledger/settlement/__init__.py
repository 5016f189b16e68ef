"""
Settlement engine package.

Pure functions only: no I/O, no shared state, inputs never mutated.
"""

from roomledger.settlement.aggregator import aggregate, as_roster, filter_by_window
from roomledger.settlement.solver import compute_balances, settle
from roomledger.settlement.statistics import compute_statistics, month_window

__all__ = [
    "aggregate",
    "as_roster",
    "compute_balances",
    "compute_statistics",
    "filter_by_window",
    "month_window",
    "settle",
]
