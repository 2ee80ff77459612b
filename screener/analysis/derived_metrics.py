"""Derived metrics from raw provider data.

Turns one security's RawFinancials into an immutable DerivedMetrics value:
growth rates, margins, leverage, trend tags, profitability history, TTM
ratios (converted to percent) and an intrinsic value estimate. Missing
inputs stay None all the way through.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

import pandas as pd

from screener.data.models import RawFinancials
from screener.metrics.growth import Trend, cagr, median_of_three, trend
from screener.metrics.ratios import fcf_margin, net_debt_to_ebitda
from screener.metrics.valuation import intrinsic_value_estimate, margin_of_safety

logger = logging.getLogger(__name__)

PROFITABILITY_WINDOW = 10
RECENT_WINDOW = 3


@dataclass(frozen=True)
class DerivedMetrics:
    """Computed metrics consumed by the criterion evaluator.

    Percent-valued fields are in percent (12.5 means 12.5%). Every field
    is None when its inputs are missing or its computation is undefined.

    Attributes:
        eps_cagr_3y: 3-year EPS CAGR.
        eps_cagr_5y: 5-year EPS CAGR.
        eps_cagr_10y: 10-year EPS CAGR.
        revenue_cagr_3y: 3-year revenue CAGR.
        revenue_cagr_5y: 5-year revenue CAGR.
        revenue_cagr_10y: 10-year revenue CAGR.
        fcf_margin: Latest fiscal year FCF margin.
        fcf_margin_trend: Trend of annual FCF margin.
        roic_trend: Trend of annual ROIC.
        net_debt_to_ebitda: Latest net debt / EBITDA. None when EBITDA is
            non-positive.
        years_profitable: Profitable years among the last 10 reported.
        years_considered: Years with a reported net income among the last 10.
        recent_years_profitable: True if each of the 3 most recent years
            was profitable. None if fewer than 3 years are reported.
        pe_ratio: TTM price / earnings.
        roic: TTM return on invested capital.
        roe: TTM return on equity.
        net_margin: TTM net margin.
        dividend_yield: TTM dividend yield.
        interest_coverage: TTM interest coverage.
        intrinsic_value: Per-share intrinsic value estimate.
        margin_of_safety: Discount of price to intrinsic value.
    """

    eps_cagr_3y: float | None
    eps_cagr_5y: float | None
    eps_cagr_10y: float | None
    revenue_cagr_3y: float | None
    revenue_cagr_5y: float | None
    revenue_cagr_10y: float | None
    fcf_margin: float | None
    fcf_margin_trend: Trend
    roic_trend: Trend
    net_debt_to_ebitda: float | None
    years_profitable: int | None
    years_considered: int
    recent_years_profitable: bool | None
    pe_ratio: float | None
    roic: float | None
    roe: float | None
    net_margin: float | None
    dividend_yield: float | None
    interest_coverage: float | None
    intrinsic_value: float | None
    margin_of_safety: float | None


def _to_optional(value: Any) -> float | None:
    """Convert a scalar to a finite float, or None."""
    if value is None:
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(f):
        return None
    return f


def column_values(df: pd.DataFrame, column: str) -> list[float | None]:
    """Column as a list of optional floats, preserving row order."""
    if df.empty or column not in df.columns:
        return []
    return [_to_optional(v) for v in df[column].tolist()]


def ttm_value(
    record: dict[str, Any] | None, *keys: str, scale: float = 1.0
) -> float | None:
    """First present key of a TTM snapshot, multiplied by scale.

    Args:
        record: Snapshot record (may be None).
        keys: Candidate field names, in priority order.
        scale: Multiplier (100 converts a decimal ratio to percent).

    Returns:
        Scaled value, or None if no key holds a finite number.
    """
    if not record:
        return None
    for key in keys:
        value = _to_optional(record.get(key))
        if value is not None:
            return value * scale
    return None


def _eps_series(income: pd.DataFrame) -> list[float | None]:
    """Diluted EPS per year, falling back to basic EPS per row."""
    diluted = column_values(income, "eps_diluted")
    basic = column_values(income, "eps")
    n = max(len(diluted), len(basic))
    series: list[float | None] = []
    for i in range(n):
        d = diluted[i] if i < len(diluted) else None
        b = basic[i] if i < len(basic) else None
        series.append(d if d is not None else b)
    return series


def _fcf_margin_series(raw: RawFinancials) -> list[float | None]:
    """Annual FCF margin, most recent first, matched by statement date."""
    income, cashflow = raw.income, raw.cashflow
    if income.empty or cashflow.empty:
        return []
    if "date" not in income.columns or "date" not in cashflow.columns:
        return []

    merged = pd.merge(
        income[["date", "revenue"]].dropna(subset=["date"]),
        cashflow[["date", "free_cash_flow"]].dropna(subset=["date"]),
        on="date",
        how="inner",
    ).sort_values("date", ascending=False)

    return [
        fcf_margin(_to_optional(fcf), _to_optional(revenue))
        for fcf, revenue in zip(merged["free_cash_flow"], merged["revenue"])
    ]


def _profitability(
    net_income: list[float | None],
) -> tuple[int | None, int, bool | None]:
    """Profitable-year counts over the last 10 and last 3 reported years."""
    window = [v for v in net_income[:PROFITABILITY_WINDOW] if v is not None]
    if not window:
        return None, 0, None

    years_profitable = sum(1 for v in window if v > 0)
    recent = window[:RECENT_WINDOW]
    recent_ok = all(v > 0 for v in recent) if len(recent) == RECENT_WINDOW else None
    return years_profitable, len(window), recent_ok


def _intrinsic_value(raw: RawFinancials, net_margin_pct: float | None) -> float | None:
    """Intrinsic value per share from the latest annual figures."""
    eps_series = _eps_series(raw.income)
    eps = eps_series[0] if eps_series else None
    if eps is None or eps <= 0:
        # Negative latest EPS: fall back to the 3-year median when positive.
        eps = median_of_three(eps_series)

    revenue = column_values(raw.income, "revenue")
    shares = column_values(raw.income, "weighted_average_shs_out_dil")
    equity = column_values(raw.balance, "total_stockholders_equity")

    latest_revenue = revenue[0] if revenue else None
    latest_shares = shares[0] if shares else None
    latest_equity = equity[0] if equity else None

    book_value = None
    if latest_equity is not None and latest_shares:
        book_value = latest_equity / latest_shares

    return intrinsic_value_estimate(
        eps=eps,
        book_value=book_value,
        revenue=latest_revenue,
        net_margin=net_margin_pct,
        shares_outstanding=latest_shares,
    )


def compute_derived_metrics(raw: RawFinancials) -> DerivedMetrics:
    """Compute all derived metrics for one security.

    Args:
        raw: Provider data for the security.

    Returns:
        DerivedMetrics with None wherever inputs are insufficient.
    """
    eps = _eps_series(raw.income)
    revenue = column_values(raw.income, "revenue")
    net_income = column_values(raw.income, "net_income")
    ebitda = column_values(raw.income, "ebitda")

    # Leverage from the latest balance sheet and income statement.
    debt = column_values(raw.balance, "total_debt")
    cash = column_values(raw.balance, "cash_and_cash_equivalents")
    latest_ebitda = ebitda[0] if ebitda else None
    if latest_ebitda is not None and latest_ebitda <= 0:
        logger.debug(
            "%s: non-positive EBITDA (%.2f), net debt/EBITDA set to None",
            raw.symbol, latest_ebitda,
        )
        leverage = None
    else:
        leverage = net_debt_to_ebitda(
            debt[0] if debt else None,
            cash[0] if cash else None,
            latest_ebitda,
        )

    fcf_margins = _fcf_margin_series(raw)
    roic_history = [
        v * 100.0 if v is not None else None
        for v in column_values(raw.key_metrics, "roic")
    ]

    years_profitable, years_considered, recent_ok = _profitability(net_income)

    # TTM snapshot, decimals converted to percent.
    ratios, key_metrics = raw.ratios_ttm, raw.key_metrics_ttm
    pe = ttm_value(
        ratios, "priceToEarningsRatioTTM", "peRatioTTM", "priceEarningsRatioTTM"
    )
    if pe is None:
        pe = ttm_value(raw.quote, "pe")
    net_margin = ttm_value(ratios, "netProfitMarginTTM", scale=100.0)
    roic = ttm_value(
        key_metrics, "returnOnInvestedCapitalTTM", "roicTTM", scale=100.0
    )
    roe = ttm_value(key_metrics, "returnOnEquityTTM", "roeTTM", scale=100.0)
    if roe is None:
        roe = ttm_value(ratios, "returnOnEquityTTM", scale=100.0)
    dividend_yield = ttm_value(
        ratios, "dividendYieldTTM", "dividendYielTTM", scale=100.0
    )
    interest_coverage = ttm_value(
        ratios, "interestCoverageRatioTTM", "interestCoverageTTM"
    )

    intrinsic_value = _intrinsic_value(raw, net_margin)

    return DerivedMetrics(
        eps_cagr_3y=cagr(eps, 3),
        eps_cagr_5y=cagr(eps, 5),
        eps_cagr_10y=cagr(eps, 10),
        revenue_cagr_3y=cagr(revenue, 3),
        revenue_cagr_5y=cagr(revenue, 5),
        revenue_cagr_10y=cagr(revenue, 10),
        fcf_margin=fcf_margins[0] if fcf_margins else None,
        fcf_margin_trend=trend(fcf_margins),
        roic_trend=trend(roic_history),
        net_debt_to_ebitda=leverage,
        years_profitable=years_profitable,
        years_considered=years_considered,
        recent_years_profitable=recent_ok,
        pe_ratio=pe,
        roic=roic,
        roe=roe,
        net_margin=net_margin,
        dividend_yield=dividend_yield,
        interest_coverage=interest_coverage,
        intrinsic_value=intrinsic_value,
        margin_of_safety=margin_of_safety(intrinsic_value, raw.price),
    )
