"""Single-security analysis: fetch, compute, evaluate, aggregate."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Callable

from screener.analysis.criteria import evaluate_criteria
from screener.analysis.derived_metrics import compute_derived_metrics
from screener.analysis.scoring import ScoreResult, build_score_result
from screener.config import DEFAULT_CRITERION_WEIGHTS, CriteriaThresholds, validate_weights
from screener.data import load_financials
from screener.data.fmp import MarketDataProvider
from screener.data.live_price import resolve_price
from screener.data.models import RawFinancials
from screener.errors import InsufficientData

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SecurityAnalyzer:
    """Score one security against the Buffett criteria.

    The analyzer only reads from the provider; persisting results is the
    caller's job.

    Args:
        provider: Market data provider.
        thresholds: Criterion thresholds.
        weights: Criterion weights, must sum to 100.
        statement_limit: Annual periods requested per statement.
        now: Clock used to stamp computed_at.
        price_resolver: Price lookup given symbol and quote record.
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        thresholds: CriteriaThresholds | None = None,
        weights: Mapping[str, float] | None = None,
        statement_limit: int = 15,
        now: Callable[[], datetime] = _utcnow,
        price_resolver: Callable[[str, dict[str, Any] | None], float | None] = resolve_price,
    ) -> None:
        self._provider = provider
        self._thresholds = thresholds if thresholds is not None else CriteriaThresholds()
        self._weights = dict(weights if weights is not None else DEFAULT_CRITERION_WEIGHTS)
        validate_weights(self._weights)
        self._statement_limit = statement_limit
        self._now = now
        self._price_resolver = price_resolver

    def analyze(self, ticker: str) -> ScoreResult:
        """Run the full analysis for one ticker.

        Args:
            ticker: Stock ticker symbol.

        Returns:
            ScoreResult stamped with the current time.

        Raises:
            InsufficientData: If the profile or TTM ratios are missing.
            ProviderError: If fetching fails (RateLimitExceeded on quota
                exhaustion).
            ConfigurationError: If a criterion has no configured weight.
        """
        raw = load_financials(
            ticker,
            self._provider,
            statement_limit=self._statement_limit,
            price_resolver=self._price_resolver,
        )
        return self.score(raw)

    def score(self, raw: RawFinancials) -> ScoreResult:
        """Score already-fetched data.

        Raises:
            InsufficientData: If the profile or TTM ratios are missing.
            ConfigurationError: If a criterion has no configured weight.
        """
        if not raw.profile:
            raise InsufficientData(raw.symbol, "no company profile")
        if not raw.ratios_ttm:
            raise InsufficientData(raw.symbol, "no TTM ratios")

        derived = compute_derived_metrics(raw)
        criteria = evaluate_criteria(raw, derived, self._thresholds)

        profile = raw.profile
        result = build_score_result(
            raw.symbol,
            criteria,
            computed_at=self._now(),
            weights=self._weights,
            name=str(profile.get("companyName") or ""),
            exchange=str(profile.get("exchangeShortName") or profile.get("exchange") or ""),
            sector=str(profile.get("sector") or ""),
            currency=str(profile.get("currency") or ""),
            price=raw.price,
            intrinsic_value=derived.intrinsic_value,
            margin_of_safety=derived.margin_of_safety,
        )
        logger.info(
            "%s: score %d/%d (weighted %.1f)",
            raw.symbol, result.raw_score, len(criteria), result.weighted_score,
        )
        return result
