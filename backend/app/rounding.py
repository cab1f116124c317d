"""
Rounding Helpers

Scores and percentages are rounded half up, the way browsers format them,
rather than with Python's round-half-to-even. round(2.5) is 2 in Python but
the UI shows 3; round_half_up(2.5) is 3.
"""

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)


def round_fixed(value: float, digits: int = 1) -> float:
    """
    Round to ``digits`` decimal places, halves up.

    Used for every percentage and mastery value the API returns, so 12.25
    becomes 12.3 (round() gives 12.2).
    """
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor
