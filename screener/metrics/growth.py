"""Growth metrics: CAGR, trend classification, and trailing median.

All sequences are ordered most recent first. Missing observations are
None; nothing here coerces a missing value to zero.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from enum import Enum

from screener.config import TREND_TOLERANCE


class Trend(Enum):
    """Direction of a metric over its three most recent periods."""

    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"
    UNDETERMINED = "undetermined"


def _present(value: float | None) -> bool:
    """True if value is a finite number."""
    if value is None:
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def cagr(values: Sequence[float | None], periods: int) -> float | None:
    """Compound annual growth rate between values[periods] and values[0].

    Args:
        values: Annual observations, most recent first.
        periods: Number of years between the two points.

    Returns:
        Growth rate in percent, or None if either endpoint is missing or
        non-positive, or the result is not finite.
    """
    if periods < 1 or len(values) <= periods:
        return None

    end = values[0]
    start = values[periods]
    if not (_present(end) and _present(start)):
        return None

    end_f = float(end)  # type: ignore[arg-type]
    start_f = float(start)  # type: ignore[arg-type]
    if end_f <= 0 or start_f <= 0:
        return None

    try:
        rate = ((end_f / start_f) ** (1.0 / periods) - 1.0) * 100.0
    except (OverflowError, ZeroDivisionError):
        return None

    if not math.isfinite(rate):
        return None
    return rate


def trend(values: Sequence[float | None]) -> Trend:
    """Classify the newest value against the mean of the prior two.

    Args:
        values: Observations, most recent first. Only the first three
            are used.

    Returns:
        RISING if the relative change exceeds +5%, FALLING if below -5%,
        STABLE otherwise. UNDETERMINED when fewer than three values are
        present or the prior mean is zero.
    """
    window = list(values[:3])
    if len(window) < 3 or not all(_present(v) for v in window):
        return Trend.UNDETERMINED

    newest, prev1, prev2 = (float(v) for v in window)  # type: ignore[arg-type]
    base = (prev1 + prev2) / 2.0
    if base == 0:
        return Trend.UNDETERMINED

    change = (newest - base) / abs(base)
    if change > TREND_TOLERANCE:
        return Trend.RISING
    if change < -TREND_TOLERANCE:
        return Trend.FALLING
    return Trend.STABLE


def median_of_three(values: Sequence[float | None]) -> float | None:
    """Middle value of the three most recent present observations.

    Args:
        values: Observations, most recent first.

    Returns:
        Median of the first three present values, or None if fewer than
        three are present.
    """
    present = [float(v) for v in values if _present(v)]  # type: ignore[arg-type]
    if len(present) < 3:
        return None
    return sorted(present[:3])[1]
