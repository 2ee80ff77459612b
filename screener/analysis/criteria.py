"""Buffett criteria: turn derived metrics into named pass/fail checks."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from screener.analysis.derived_metrics import DerivedMetrics
from screener.config import CriteriaThresholds
from screener.data.models import RawFinancials
from screener.metrics.growth import Trend

logger = logging.getLogger(__name__)

CRITERIA_ORDER: tuple[str, ...] = (
    "years_of_profitability",
    "pe_ratio",
    "roic",
    "roe",
    "dividend_yield",
    "eps_growth",
    "revenue_growth",
    "net_debt_to_ebitda",
    "net_margin",
    "fcf_margin",
    "interest_coverage",
    "margin_of_safety",
)


@dataclass(frozen=True)
class Criterion:
    """Outcome of one criterion for one security.

    Attributes:
        name: Criterion identifier (one of CRITERIA_ORDER).
        passed: Whether the threshold test passed.
        value: Measured value, None if it could not be computed.
        threshold: Human-readable pass rule.
        sub_aspects: (fulfilled, total) when the criterion decomposes into
            sub-questions and was only partially fulfilled.
    """

    name: str
    passed: bool
    value: float | None
    threshold: str
    sub_aspects: tuple[int, int] | None = None

    def __post_init__(self) -> None:
        if self.value is None and self.passed:
            raise ValueError(f"{self.name}: a criterion without a value cannot pass")
        if self.sub_aspects is not None:
            fulfilled, total = self.sub_aspects
            if total <= 0 or not 0 <= fulfilled <= total:
                raise ValueError(
                    f"{self.name}: invalid sub_aspects {self.sub_aspects}"
                )


def _at_least(name: str, value: float | None, minimum: float, unit: str = "%") -> Criterion:
    return Criterion(
        name=name,
        passed=value is not None and value >= minimum,
        value=value,
        threshold=f">= {minimum:g}{unit}",
    )


def _below(name: str, value: float | None, maximum: float) -> Criterion:
    return Criterion(
        name=name,
        passed=value is not None and value < maximum,
        value=value,
        threshold=f"< {maximum:g}",
    )


def _years_of_profitability(
    derived: DerivedMetrics, t: CriteriaThresholds
) -> Criterion:
    """At least 8 of 10 years profitable, or 6 with no loss in the last 3."""
    years = derived.years_profitable
    threshold = (
        f">= {t.min_profitable_years} of {t.profitability_window} years "
        f"(or >= {t.lenient_profitable_years} with no loss in last "
        f"{t.recent_years_without_loss})"
    )
    if years is None:
        return Criterion("years_of_profitability", False, None, threshold)

    passed = years >= t.min_profitable_years or (
        years >= t.lenient_profitable_years
        and derived.recent_years_profitable is True
    )
    return Criterion("years_of_profitability", passed, float(years), threshold)


def _pe_ratio(derived: DerivedMetrics, t: CriteriaThresholds) -> Criterion:
    """P/E below the maximum, or above it with a full growth override.

    The override needs all four conditions at once: 5y revenue CAGR,
    rising FCF margin, rising ROIC and low leverage. When P/E is at or
    above the maximum the fulfilled conditions are reported as
    sub-aspects.
    """
    pe = derived.pe_ratio
    threshold = (
        f"0 < P/E < {t.max_pe:g}, or growth override "
        f"(revenue CAGR 5y >= {t.override_min_revenue_cagr_5y:g}%, "
        f"FCF margin rising, ROIC rising, "
        f"net debt/EBITDA <= {t.override_max_net_debt_to_ebitda:g})"
    )
    if pe is None:
        return Criterion("pe_ratio", False, None, threshold)
    if pe <= 0:
        # Negative earnings: multiple is meaningless for a value screen.
        return Criterion("pe_ratio", False, pe, threshold)
    if pe < t.max_pe:
        return Criterion("pe_ratio", True, pe, threshold)

    leverage = derived.net_debt_to_ebitda
    conditions = [
        derived.revenue_cagr_5y is not None
        and derived.revenue_cagr_5y >= t.override_min_revenue_cagr_5y,
        derived.fcf_margin_trend is Trend.RISING,
        derived.roic_trend is Trend.RISING,
        leverage is not None and leverage <= t.override_max_net_debt_to_ebitda,
    ]
    fulfilled = sum(conditions)
    return Criterion(
        "pe_ratio",
        fulfilled == len(conditions),
        pe,
        threshold,
        sub_aspects=(fulfilled, len(conditions)),
    )


def evaluate_criteria(
    raw: RawFinancials,
    derived: DerivedMetrics,
    thresholds: CriteriaThresholds | None = None,
) -> list[Criterion]:
    """Evaluate the full criteria catalogue for one security.

    Args:
        raw: Provider data for the security.
        derived: Metrics computed from raw.
        thresholds: Pass thresholds (defaults to CriteriaThresholds()).

    Returns:
        One Criterion per entry of CRITERIA_ORDER, in that order.
    """
    t = thresholds if thresholds is not None else CriteriaThresholds()

    criteria = [
        _years_of_profitability(derived, t),
        _pe_ratio(derived, t),
        _at_least("roic", derived.roic, t.min_roic),
        _at_least("roe", derived.roe, t.min_roe),
        _at_least("dividend_yield", derived.dividend_yield, t.min_dividend_yield),
        _at_least("eps_growth", derived.eps_cagr_5y, t.min_eps_cagr_5y),
        _at_least("revenue_growth", derived.revenue_cagr_5y, t.min_revenue_cagr_5y),
        _below("net_debt_to_ebitda", derived.net_debt_to_ebitda, t.max_net_debt_to_ebitda),
        _at_least("net_margin", derived.net_margin, t.min_net_margin),
        _at_least("fcf_margin", derived.fcf_margin, t.min_fcf_margin),
        _at_least("interest_coverage", derived.interest_coverage, t.min_interest_coverage, unit="x"),
        _at_least("margin_of_safety", derived.margin_of_safety, t.min_margin_of_safety),
    ]

    missing = [c.name for c in criteria if c.value is None]
    if missing:
        logger.debug("%s: no value for %s", raw.symbol, ", ".join(missing))

    return criteria
