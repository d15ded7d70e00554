"""
Money helpers for the outcome engine.

All payouts are Decimal amounts truncated to whole cents. Truncation is a floor
because payouts are never negative, so no amount is ever rounded up.
"""
from decimal import Decimal, InvalidOperation, ROUND_FLOOR

from cluster_engine.exceptions import InvalidWagerException

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def floor_to_cents(amount) -> Decimal:
    """Truncate an amount to two decimal places."""
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return amount.quantize(CENT, rounding=ROUND_FLOOR)


def multiplier_amount(wager: Decimal, multiplier) -> Decimal:
    """wager x multiplier, without rounding. Floats go through str() to avoid binary expansion."""
    return wager * Decimal(str(multiplier))


def parse_wager(value) -> Decimal:
    """
    Convert a caller-supplied wager to Decimal.

    Raises:
        InvalidWagerException: for booleans, non-numeric values, NaN, infinities,
            zero and negative amounts.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidWagerException(details={'wager': repr(value)})
    try:
        wager = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidWagerException(details={'wager': repr(value)})
    if not wager.is_finite() or wager <= 0:
        raise InvalidWagerException(details={'wager': str(wager)})
    return wager
