"""Numeric helpers shared by the report components."""

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards positive infinity."""
    return math.floor(value + 0.5)


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def percentage(part: int, total: int) -> int:
    """Whole-number percentage of ``part`` in ``total``; 0 when total is 0."""
    if total <= 0:
        return 0
    return round_half_up(part / total * 100)
