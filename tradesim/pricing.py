"""Decimal rounding helpers shared by the models and the simulation.

All prices, P&L figures and percentages are rounded to 2 decimals using
ROUND_HALF_UP on the decimal representation of the float, so results never
depend on string formatting or binary float artifacts.
"""

from decimal import ROUND_HALF_UP, Decimal

PRICE_QUANTUM = Decimal("0.01")


def round_price(value: float) -> float:
    """Round a value to 2 decimal places (half up).

    Args:
        value: Value to round.

    Returns:
        Rounded value as a float.
    """
    return float(Decimal(repr(value)).quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP))


def percent_change(new: float, old: float) -> float:
    """Percentage change from ``old`` to ``new``, rounded to 2 decimals.

    A zero (or negative) prior value has no defined ratio; 0.0 is returned.
    """
    if old <= 0:
        return 0.0
    return round_price((new - old) / old * 100)
