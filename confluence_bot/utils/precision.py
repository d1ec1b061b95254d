"""Price and unit rounding helpers."""

from __future__ import annotations
import math


def round_price(price: float, decimals: int) -> float:
    """Round price to the instrument's quoted precision."""
    return round(price, decimals)


def floor_units(units: float, min_units: int) -> int:
    """Round down to whole units, never below min_units."""
    if units <= 0:
        return 0
    return max(int(math.floor(units)), min_units)
