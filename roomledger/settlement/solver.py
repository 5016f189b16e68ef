"""
Settlement Solver

Turns per-roommate spend into balances against an equal share, then
suggests the payments that clear those balances.

ALGORITHM (greedy netting):
1. average = total / number of roommates
2. balance = what they paid - average
3. Split into debtors (owe money) and creditors (are owed money)
4. Sort both largest first; equal amounts keep roster order
5. Walk both lists, paying min(owed, due) each step

KNOWN LIMITATION: Largest-first matching does not always find the
smallest possible number of transfers. Finding that is NP-hard in
general. For a handful of roommates the greedy result is deterministic,
fast and never needs more than (roommates - 1) transfers.

DESIGN DECISION: Balances are worked out in whole cents.
The equal share rarely divides evenly (100.00 / 3), so the leftover
cents of the split go one each to the first roommates in roster order.
Cent balances then sum to exactly zero and every transfer is a whole
number of cents. Matching runs until every balance is exactly zero, so
a one-cent balance is paid rather than dropped; the tolerance only
absorbs sub-cent noise in the totals handed in.
"""

from decimal import Decimal
from typing import Optional

from roomledger.errors import DataIntegrityError
from roomledger.models.expense import PeriodTotals, Settlement, Transfer
from roomledger.money import CENT, ZERO, from_cents, to_cents
from roomledger.settlement.aggregator import RosterLike, as_roster


def _check_totals(totals: PeriodTotals, members: tuple[str, ...], tolerance: Decimal) -> None:
    """Refuse totals that could only produce an inconsistent settlement."""
    strangers = sorted(set(totals.per_participant) - set(members))
    if strangers:
        raise DataIntegrityError(
            f"Totals include people not on the roster: {', '.join(strangers)}",
            offending=[{"payer": name} for name in strangers],
        )

    folded = sum(totals.per_participant.values(), ZERO)
    if abs(folded - totals.total) > tolerance:
        raise DataIntegrityError(
            f"Per-person totals ({folded}) do not add up to the total ({totals.total})"
        )


def compute_balances(totals: PeriodTotals, roster: RosterLike) -> dict[str, Decimal]:
    """
    Exact balance of each roommate against the equal share.

    Missing roster members count as having paid nothing.
    """
    roster = as_roster(roster)
    average = totals.total / len(roster)
    return {
        name: totals.per_participant.get(name, ZERO) - average
        for name in roster.members
    }


def _cent_balances(totals: PeriodTotals, members: tuple[str, ...]) -> dict[str, int]:
    """Balances in whole cents that sum to exactly zero."""
    total_cents = to_cents(totals.total)
    share, leftover = divmod(total_cents, len(members))

    balances = {}
    for position, name in enumerate(members):
        owed_share = share + (1 if position < leftover else 0)
        paid = to_cents(totals.per_participant.get(name, ZERO))
        balances[name] = paid - owed_share
    return balances


def settle(
    totals: PeriodTotals,
    roster: RosterLike,
    tolerance: Optional[Decimal] = None,
) -> Settlement:
    """
    Compute balances and the transfers that settle them.

    Args:
        totals: Spend per roommate for the period
        roster: The fixed set of roommates
        tolerance: Allowed gap between the per-person totals and the
            total, and the bar Settlement.is_settled checks against

    Returns:
        Settlement with balances for every roster member and the
        ordered list of transfers

    Raises:
        ConfigurationError: If the roster is empty or has duplicates
        DataIntegrityError: If the totals are internally inconsistent
    """
    roster = as_roster(roster)
    tolerance = CENT if tolerance is None else tolerance
    members = roster.members

    _check_totals(totals, members, tolerance)

    average = totals.total / len(members)
    cent_balances = _cent_balances(totals, members)

    debtors = [[name, -cents] for name, cents in cent_balances.items() if cents < 0]
    creditors = [[name, cents] for name, cents in cent_balances.items() if cents > 0]

    # list.sort is stable, so equal amounts stay in roster order
    debtors.sort(key=lambda entry: entry[1], reverse=True)
    creditors.sort(key=lambda entry: entry[1], reverse=True)

    transfers = []
    i = j = 0
    while i < len(debtors) and j < len(creditors):
        debtor = debtors[i]
        creditor = creditors[j]

        cents = min(debtor[1], creditor[1])
        transfers.append(Transfer(
            debtor=debtor[0],
            creditor=creditor[0],
            amount=from_cents(cents),
        ))

        debtor[1] -= cents
        creditor[1] -= cents

        if debtor[1] == 0:
            i += 1
        if creditor[1] == 0:
            j += 1

    return Settlement(
        average=average,
        balances={name: from_cents(cents) for name, cents in cent_balances.items()},
        transfers=transfers,
        tolerance=tolerance,
    )
