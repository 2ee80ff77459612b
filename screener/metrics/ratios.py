"""Margin and leverage ratios."""

from __future__ import annotations

import math


def _finite(value: float | None) -> float | None:
    """Return value as a finite float, or None."""
    if value is None:
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(f):
        return None
    return f


def fcf_margin(fcf: float | None, revenue: float | None) -> float | None:
    """Free cash flow as a percentage of revenue.

    Args:
        fcf: Free cash flow for the period.
        revenue: Revenue for the same period.

    Returns:
        FCF margin in percent. None if either input is missing or revenue
        is zero.
    """
    fcf_f = _finite(fcf)
    revenue_f = _finite(revenue)
    if fcf_f is None or revenue_f is None or revenue_f == 0:
        return None
    return fcf_f / revenue_f * 100.0


def net_debt_to_ebitda(
    debt: float | None, cash: float | None, ebitda: float | None
) -> float | None:
    """Net debt (debt - cash) divided by EBITDA.

    Args:
        debt: Total debt.
        cash: Cash and equivalents. Treated as 0 when absent.
        ebitda: EBITDA for the period.

    Returns:
        Ratio, or None if debt or EBITDA is missing or EBITDA is zero.
    """
    debt_f = _finite(debt)
    ebitda_f = _finite(ebitda)
    if debt_f is None or ebitda_f is None or ebitda_f == 0:
        return None
    cash_f = _finite(cash)
    net_debt = debt_f - (cash_f if cash_f is not None else 0.0)
    return net_debt / ebitda_f
