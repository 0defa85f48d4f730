"""
Numeric helpers shared by the aggregation and insight stages.
"""

import math
from typing import Optional


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward +infinity (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def safe_average(total: float, count: int) -> int:
    """Rounded total/count, or 0 when count is 0."""
    if count <= 0:
        return 0
    return round_half_up(total / count)


def percent_change(previous: int, current: int) -> Optional[int]:
    """
    Rounded percentage change from previous to current.

    Returns:
        None when previous is 0 (change is undefined)
    """
    if previous == 0:
        return None
    return round_half_up((current - previous) / previous * 100)
