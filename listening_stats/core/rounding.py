"""
Rounding helpers shared by the aggregations.

Half-up rounding is used throughout so that 2.5 minutes reads as 3,
not as Python's banker's-rounded 2.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float]


def round_half_up(value: Number) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_one_decimal(value: Number) -> float:
    """Round to one decimal place, halves away from zero."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def safe_ratio(numerator: Number, denominator: Number) -> float:
    """Divide, returning 0.0 when the denominator is zero."""
    if not denominator:
        return 0.0
    return numerator / denominator


def percentage(part: Number, whole: Number) -> float:
    """Percentage of ``part`` in ``whole`` to one decimal; 0.0 for an empty whole."""
    return round_one_decimal(safe_ratio(part, whole) * 100)
