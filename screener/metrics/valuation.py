"""Simplified intrinsic value estimation and margin of safety."""

from __future__ import annotations

import logging
import math

import numpy as np

from screener.config import EARNINGS_MULTIPLE, GRAHAM_MULTIPLIER

logger = logging.getLogger(__name__)


def _positive(*values: float | None) -> bool:
    """True if every value is a strictly positive finite number."""
    for v in values:
        if v is None:
            return False
        try:
            f = float(v)
        except (TypeError, ValueError):
            return False
        if not math.isfinite(f) or f <= 0:
            return False
    return True


def intrinsic_value_estimate(
    eps: float | None,
    book_value: float | None,
    revenue: float | None,
    net_margin: float | None,
    shares_outstanding: float | None,
) -> float | None:
    """Median of up to three independent per-share value estimates.

    Estimates:
        1. Graham number: sqrt(22.5 * EPS * book value per share).
        2. Low-multiple earnings: EPS * 15.
        3. Margin-based revenue: revenue * net margin * 15 / shares.

    An estimate is used only when all of its inputs are strictly
    positive and finite.

    Args:
        eps: Earnings per share.
        book_value: Book value per share.
        revenue: Annual revenue.
        net_margin: Net margin in percent.
        shares_outstanding: Diluted shares outstanding.

    Returns:
        Median of the valid estimates, or None if none is valid.
    """
    estimates: list[float] = []

    if _positive(eps, book_value):
        estimates.append(
            math.sqrt(GRAHAM_MULTIPLIER * float(eps) * float(book_value))  # type: ignore[arg-type]
        )

    if _positive(eps):
        estimates.append(float(eps) * EARNINGS_MULTIPLE)  # type: ignore[arg-type]

    if _positive(revenue, net_margin, shares_outstanding):
        earnings = float(revenue) * float(net_margin) / 100.0  # type: ignore[arg-type]
        estimates.append(earnings * EARNINGS_MULTIPLE / float(shares_outstanding))  # type: ignore[arg-type]

    estimates = [e for e in estimates if math.isfinite(e) and e > 0]
    if not estimates:
        return None

    return float(np.median(estimates))


def margin_of_safety(
    intrinsic_value: float | None, price: float | None
) -> float | None:
    """Discount of price to intrinsic value, in percent.

    MoS = (IV - price) / IV * 100. Positive when price is below IV.

    Returns:
        Margin of safety, or None unless both inputs are positive.
    """
    if not _positive(intrinsic_value, price):
        return None
    iv = float(intrinsic_value)  # type: ignore[arg-type]
    return (iv - float(price)) / iv * 100.0  # type: ignore[arg-type]
