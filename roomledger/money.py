"""
Currency arithmetic helpers.

All money in the ledger is decimal.Decimal. Floats only appear at the
JSON boundary.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_money(value) -> Decimal:
    """Convert int/str/float/Decimal to Decimal without float artifacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() gives the shortest repr, so 0.1 stays 0.1
        return Decimal(str(value))
    return Decimal(value)


def round_cents(value: Decimal) -> Decimal:
    """Round half-up to two decimal places."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Decimal) -> int:
    """Whole number of cents, rounded half-up."""
    return int((value * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Decimal amount with exactly two decimal places."""
    return Decimal(cents).scaleb(-2)
