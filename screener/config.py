"""Screener configuration dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from screener.errors import ConfigurationError

# Intrinsic value estimation constants.
GRAHAM_MULTIPLIER: float = 22.5
EARNINGS_MULTIPLE: float = 15.0

# Relative change separating rising/falling from stable trends.
TREND_TOLERANCE: float = 0.05


@dataclass
class ScreenerConfig:
    """Main screener configuration."""

    # Provider
    api_base_url: str = "https://financialmodelingprep.com/stable"
    request_timeout: float = 30.0
    max_retries: int = 3
    backoff_factor: float = 1.0
    statement_limit: int = 15

    # Scheduling
    batch_size: int = 100
    rate_window_seconds: float = 60.0
    ticker_retries: int = 0
    max_rate_limit_deferrals: int = 2

    # Cache
    cache_path: Path = Path("data_cache/results.db")
    max_age_hours: float = 24.0

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ConfigurationError(
                f"batch_size must be at least 1, got {self.batch_size}"
            )
        if self.rate_window_seconds < 0:
            raise ConfigurationError(
                f"rate_window_seconds must be non-negative, "
                f"got {self.rate_window_seconds}"
            )
        if self.statement_limit < 1:
            raise ConfigurationError(
                f"statement_limit must be at least 1, got {self.statement_limit}"
            )

    @property
    def max_age(self) -> timedelta:
        return timedelta(hours=self.max_age_hours)


@dataclass
class CriteriaThresholds:
    """Pass thresholds for the Buffett criteria catalogue.

    Percentages are expressed in percent (15.0 means 15%).
    """

    # Years of profitability
    profitability_window: int = 10
    min_profitable_years: int = 8
    lenient_profitable_years: int = 6
    recent_years_without_loss: int = 3

    # Valuation multiple (P/E) with growth override
    max_pe: float = 20.0
    override_min_revenue_cagr_5y: float = 15.0
    override_max_net_debt_to_ebitda: float = 1.0

    # Returns and margins
    min_roic: float = 12.0
    min_roe: float = 15.0
    min_net_margin: float = 10.0
    min_fcf_margin: float = 5.0

    # Income and growth
    min_dividend_yield: float = 2.0
    min_eps_cagr_5y: float = 7.0
    min_revenue_cagr_5y: float = 5.0

    # Leverage
    max_net_debt_to_ebitda: float = 2.5
    min_interest_coverage: float = 5.0

    # Valuation discount
    min_margin_of_safety: float = 0.0


DEFAULT_CRITERION_WEIGHTS: dict[str, float] = {
    "years_of_profitability": 12,
    "pe_ratio": 12,
    "roic": 12,
    "roe": 10,
    "dividend_yield": 5,
    "eps_growth": 10,
    "revenue_growth": 8,
    "net_debt_to_ebitda": 10,
    "net_margin": 8,
    "fcf_margin": 5,
    "interest_coverage": 4,
    "margin_of_safety": 4,
}


def validate_weights(weights: dict[str, float]) -> dict[str, float]:
    """Check that criterion weights are non-negative and sum to 100.

    Args:
        weights: Criterion name -> weight.

    Returns:
        The same mapping, for chaining.

    Raises:
        ConfigurationError: If any weight is negative or the total is not 100.
    """
    negative = sorted(name for name, w in weights.items() if w < 0)
    if negative:
        raise ConfigurationError(f"Negative criterion weights: {negative}")

    total = sum(weights.values())
    if abs(total - 100.0) > 1e-9:
        raise ConfigurationError(
            f"Criterion weights must sum to 100, got {total:g}"
        )
    return weights
