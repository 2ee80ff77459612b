"""Tests for screener.config."""

from __future__ import annotations

from datetime import timedelta

import pytest

from screener.analysis.criteria import CRITERIA_ORDER
from screener.config import DEFAULT_CRITERION_WEIGHTS, CriteriaThresholds, ScreenerConfig
from screener.errors import ConfigurationError


class TestScreenerConfig:

    def test_defaults(self) -> None:
        config = ScreenerConfig()
        assert config.batch_size == 100
        assert config.rate_window_seconds == 60.0
        assert config.statement_limit == 15
        assert config.max_age == timedelta(hours=24)

    def test_rejects_zero_batch(self) -> None:
        with pytest.raises(ConfigurationError, match="batch_size"):
            ScreenerConfig(batch_size=0)

    def test_rejects_negative_window(self) -> None:
        with pytest.raises(ConfigurationError, match="rate_window"):
            ScreenerConfig(rate_window_seconds=-1.0)


class TestCriteriaThresholds:

    def test_core_thresholds(self) -> None:
        t = CriteriaThresholds()
        assert t.min_roic == 12.0
        assert t.max_net_debt_to_ebitda == 2.5
        assert t.min_net_margin == 10.0
        assert t.max_pe == 20.0


class TestDefaultWeights:

    def test_one_weight_per_criterion(self) -> None:
        assert set(DEFAULT_CRITERION_WEIGHTS) == set(CRITERIA_ORDER)

    def test_sum_to_100(self) -> None:
        assert sum(DEFAULT_CRITERION_WEIGHTS.values()) == pytest.approx(100.0)
