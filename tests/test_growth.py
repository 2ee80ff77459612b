"""Tests for screener.metrics.growth."""

from __future__ import annotations

import math

import pytest

from screener.metrics.growth import Trend, cagr, median_of_three, trend


class TestCagr:
    """Tests for compound annual growth rate."""

    def test_doubling_over_three_years(self) -> None:
        assert cagr([200.0, None, None, 100.0], 3) == pytest.approx(25.99, abs=0.01)

    def test_one_year(self) -> None:
        assert cagr([150.0, 100.0], 1) == pytest.approx(50.0)

    def test_decline_is_negative(self) -> None:
        assert cagr([81.0, 90.0, 100.0], 2) == pytest.approx(-10.0)

    def test_missing_end_value(self) -> None:
        assert cagr([None, 100.0, 90.0, 80.0], 3) is None

    def test_missing_start_value(self) -> None:
        assert cagr([100.0, 90.0, 80.0, None], 3) is None

    def test_too_few_points(self) -> None:
        assert cagr([100.0, 90.0, 80.0], 3) is None

    def test_non_positive_base(self) -> None:
        assert cagr([100.0, 50.0, 0.0], 2) is None
        assert cagr([100.0, 50.0, -10.0], 2) is None

    def test_non_positive_end(self) -> None:
        assert cagr([-5.0, 50.0, 10.0], 2) is None

    def test_nan_is_missing(self) -> None:
        assert cagr([math.nan, 100.0], 1) is None

    def test_zero_periods(self) -> None:
        assert cagr([100.0, 90.0], 0) is None


class TestTrend:
    """Tests for three-period trend classification."""

    def test_rising(self) -> None:
        assert trend([110.0, 100.0, 90.0]) is Trend.RISING

    def test_falling(self) -> None:
        assert trend([90.0, 100.0, 110.0]) is Trend.FALLING

    def test_stable_within_tolerance(self) -> None:
        assert trend([102.0, 100.0, 100.0]) is Trend.STABLE

    def test_fewer_than_three_values(self) -> None:
        assert trend([100.0, 100.0]) is Trend.UNDETERMINED

    def test_missing_value_in_window(self) -> None:
        assert trend([100.0, None, 90.0]) is Trend.UNDETERMINED

    def test_zero_base(self) -> None:
        assert trend([5.0, 0.0, 0.0]) is Trend.UNDETERMINED

    def test_negative_base_uses_magnitude(self) -> None:
        # -90 vs mean -100 is an improvement
        assert trend([-90.0, -100.0, -100.0]) is Trend.RISING

    def test_only_first_three_used(self) -> None:
        assert trend([110.0, 100.0, 90.0, 1000.0]) is Trend.RISING


class TestMedianOfThree:
    """Tests for the trailing three-value median."""

    def test_middle_value(self) -> None:
        assert median_of_three([3.0, 1.0, 2.0, 100.0]) == 2.0

    def test_skips_missing(self) -> None:
        assert median_of_three([5.0, None, 1.0, 3.0]) == 3.0

    def test_fewer_than_three(self) -> None:
        assert median_of_three([1.0, None, 2.0]) is None
