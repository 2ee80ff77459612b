"""Tests for screener.analyzer."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

import pytest

from screener.analysis.criteria import CRITERIA_ORDER
from screener.analyzer import SecurityAnalyzer
from screener.config import DEFAULT_CRITERION_WEIGHTS
from screener.errors import ConfigurationError, InsufficientData, ProviderError

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def _make_analyzer(provider: Any, price_resolver: Callable[..., Any], **kwargs: Any) -> SecurityAnalyzer:
    return SecurityAnalyzer(
        provider, now=lambda: NOW, price_resolver=price_resolver, **kwargs
    )


class TestSecurityAnalyzer:

    def test_healthy_company(
        self,
        make_provider: Callable[..., Any],
        price_resolver: Callable[..., Any],
    ) -> None:
        result = _make_analyzer(make_provider(), price_resolver).analyze("GOOD")

        assert result.security_id == "GOOD"
        assert result.raw_score == len(CRITERIA_ORDER)
        assert result.weighted_score == pytest.approx(100.0)
        assert result.computed_at == NOW
        assert result.name == "Good Co"
        assert result.exchange == "NYSE"
        assert result.sector == "Consumer Defensive"
        assert result.currency == "USD"
        assert result.price == 20.0
        assert result.intrinsic_value == pytest.approx(30.0)

    def test_missing_profile(
        self,
        make_provider: Callable[..., Any],
        price_resolver: Callable[..., Any],
    ) -> None:
        analyzer = _make_analyzer(make_provider(profile=None), price_resolver)
        with pytest.raises(InsufficientData, match="profile") as exc_info:
            analyzer.analyze("GOOD")
        assert exc_info.value.ticker == "GOOD"

    def test_missing_ttm_ratios(
        self,
        make_provider: Callable[..., Any],
        price_resolver: Callable[..., Any],
    ) -> None:
        analyzer = _make_analyzer(make_provider(ratios_ttm=None), price_resolver)
        with pytest.raises(InsufficientData, match="TTM"):
            analyzer.analyze("GOOD")

    def test_provider_error_propagates(
        self,
        make_provider: Callable[..., Any],
        price_resolver: Callable[..., Any],
    ) -> None:
        provider = make_provider(errors={"income_statements": ProviderError("GOOD", "503")})
        with pytest.raises(ProviderError):
            _make_analyzer(provider, price_resolver).analyze("GOOD")

    def test_loss_making_company_scores_lower(
        self,
        make_provider: Callable[..., Any],
        price_resolver: Callable[..., Any],
    ) -> None:
        provider = make_provider(
            net_income=[-10.0, -5.0, -3.0, 60.0, 70.0, 80.0, 90.0, 100.0, 110.0, 120.0],
        )
        result = _make_analyzer(provider, price_resolver).analyze("GOOD")

        profitability = result.criterion("years_of_profitability")
        eps_growth = result.criterion("eps_growth")
        assert profitability is not None and profitability.passed is False
        assert eps_growth is not None and eps_growth.value is None
        assert result.raw_score < len(CRITERIA_ORDER)
        assert result.weighted_score < 100.0

    def test_weights_validated_at_construction(
        self,
        make_provider: Callable[..., Any],
        price_resolver: Callable[..., Any],
    ) -> None:
        with pytest.raises(ConfigurationError):
            _make_analyzer(make_provider(), price_resolver, weights={"roic": 50.0})

    def test_unmatched_weight(
        self,
        make_provider: Callable[..., Any],
        price_resolver: Callable[..., Any],
    ) -> None:
        weights = dict(DEFAULT_CRITERION_WEIGHTS)
        weights["moat"] = weights.pop("roic")
        analyzer = _make_analyzer(make_provider(), price_resolver, weights=weights)
        with pytest.raises(ConfigurationError, match="roic"):
            analyzer.analyze("GOOD")
