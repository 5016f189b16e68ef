"""
Period Aggregator

Folds expense records into per-roommate spend for a reporting window.

GUARANTEES:
- Every roster member appears in the result, with zero if they paid nothing
- The total is exactly the sum of the per-roommate amounts
- The result does not depend on the order of the records
- A payer who is not on the roster is reported, never dropped or
  re-attributed
"""

from typing import Iterable, Optional, Union

from roomledger.errors import DataIntegrityError
from roomledger.models.expense import DateWindow, ExpenseRecord, PeriodTotals, Roster
from roomledger.money import ZERO


RosterLike = Union[Roster, Iterable[str]]


def as_roster(roster: RosterLike) -> Roster:
    """Accept a Roster or a plain sequence of names."""
    if isinstance(roster, Roster):
        return roster
    return Roster.from_members(roster)


def filter_by_window(
    records: Iterable[ExpenseRecord],
    window: Optional[DateWindow],
) -> list[ExpenseRecord]:
    """Records dated inside the window (inclusive). No window keeps all."""
    if window is None:
        return list(records)
    return [record for record in records if window.contains(record.date)]


def aggregate(
    records: Iterable[ExpenseRecord],
    roster: RosterLike,
    window: Optional[DateWindow] = None,
) -> PeriodTotals:
    """
    Compute total spend and spend per roommate.

    Args:
        records: Expense records, in any order
        roster: The fixed set of roommates
        window: Only count records dated inside this window

    Returns:
        PeriodTotals with every roster member present

    Raises:
        ConfigurationError: If the roster is empty or has duplicates
        DataIntegrityError: If any included record's payer is not on the roster
    """
    roster = as_roster(roster)
    included = filter_by_window(records, window)

    offending = [
        {"id": str(record.id), "payer": record.payer, "item": record.item}
        for record in included
        if record.payer not in roster
    ]
    if offending:
        names = sorted({entry["payer"] for entry in offending})
        raise DataIntegrityError(
            f"{len(offending)} expense(s) paid by someone not on the roster: "
            f"{', '.join(names)}",
            offending=offending,
        )

    per_participant = {name: ZERO for name in roster.members}
    for record in included:
        per_participant[record.payer] += record.amount

    return PeriodTotals(
        total=sum(per_participant.values(), ZERO),
        per_participant=per_participant,
        record_count=len(included),
    )
