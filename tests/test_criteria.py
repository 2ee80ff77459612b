"""Tests for screener.analysis.criteria."""

from __future__ import annotations

from dataclasses import replace
from typing import Callable

import pytest

from screener.analysis.criteria import CRITERIA_ORDER, Criterion, evaluate_criteria
from screener.analysis.derived_metrics import DerivedMetrics, compute_derived_metrics
from screener.config import CriteriaThresholds
from screener.data.models import RawFinancials
from screener.metrics.growth import Trend


@pytest.fixture
def raw(make_raw: Callable[..., RawFinancials]) -> RawFinancials:
    return make_raw()


@pytest.fixture
def derived(raw: RawFinancials) -> DerivedMetrics:
    return compute_derived_metrics(raw)


def _by_name(criteria: list[Criterion]) -> dict[str, Criterion]:
    return {c.name: c for c in criteria}


class TestEvaluateCriteria:

    def test_catalogue_order(self, raw: RawFinancials, derived: DerivedMetrics) -> None:
        criteria = evaluate_criteria(raw, derived)
        assert tuple(c.name for c in criteria) == CRITERIA_ORDER

    def test_healthy_company_passes_everything(
        self, raw: RawFinancials, derived: DerivedMetrics
    ) -> None:
        criteria = evaluate_criteria(raw, derived)
        assert all(c.passed for c in criteria)

    def test_missing_value_fails(self, raw: RawFinancials, derived: DerivedMetrics) -> None:
        criteria = _by_name(evaluate_criteria(raw, replace(derived, roic=None)))
        assert criteria["roic"].passed is False
        assert criteria["roic"].value is None

    def test_threshold_boundaries(self, raw: RawFinancials, derived: DerivedMetrics) -> None:
        criteria = _by_name(evaluate_criteria(
            raw, replace(derived, roic=12.0, net_debt_to_ebitda=2.5)
        ))
        assert criteria["roic"].passed is True
        assert criteria["net_debt_to_ebitda"].passed is False

    def test_custom_thresholds(self, raw: RawFinancials, derived: DerivedMetrics) -> None:
        thresholds = CriteriaThresholds(min_roic=25.0)
        criteria = _by_name(evaluate_criteria(raw, derived, thresholds))
        assert criteria["roic"].passed is False


class TestYearsOfProfitability:

    def test_eight_of_ten(self, raw: RawFinancials, derived: DerivedMetrics) -> None:
        d = replace(derived, years_profitable=8, recent_years_profitable=False)
        assert _by_name(evaluate_criteria(raw, d))["years_of_profitability"].passed

    def test_six_with_clean_recent_years(
        self, raw: RawFinancials, derived: DerivedMetrics
    ) -> None:
        d = replace(derived, years_profitable=6, recent_years_profitable=True)
        assert _by_name(evaluate_criteria(raw, d))["years_of_profitability"].passed

    def test_seven_with_recent_loss(
        self, raw: RawFinancials, derived: DerivedMetrics
    ) -> None:
        d = replace(derived, years_profitable=7, recent_years_profitable=False)
        c = _by_name(evaluate_criteria(raw, d))["years_of_profitability"]
        assert c.passed is False
        assert c.value == 7.0

    def test_no_history(self, raw: RawFinancials, derived: DerivedMetrics) -> None:
        d = replace(derived, years_profitable=None, recent_years_profitable=None)
        c = _by_name(evaluate_criteria(raw, d))["years_of_profitability"]
        assert c.passed is False
        assert c.value is None


class TestPeRatio:
    """Two-branch P/E rule with the growth override."""

    def _override(self, derived: DerivedMetrics, **changes: object) -> DerivedMetrics:
        base = replace(
            derived,
            pe_ratio=30.0,
            revenue_cagr_5y=16.0,
            fcf_margin_trend=Trend.RISING,
            roic_trend=Trend.RISING,
            net_debt_to_ebitda=0.5,
        )
        return replace(base, **changes)  # type: ignore[arg-type]

    def test_below_maximum(self, raw: RawFinancials, derived: DerivedMetrics) -> None:
        c = _by_name(evaluate_criteria(raw, replace(derived, pe_ratio=19.9)))["pe_ratio"]
        assert c.passed is True
        assert c.sub_aspects is None

    def test_negative_pe_fails(self, raw: RawFinancials, derived: DerivedMetrics) -> None:
        c = _by_name(evaluate_criteria(raw, replace(derived, pe_ratio=-5.0)))["pe_ratio"]
        assert c.passed is False
        assert c.value == -5.0

    def test_override_all_conditions(
        self, raw: RawFinancials, derived: DerivedMetrics
    ) -> None:
        c = _by_name(evaluate_criteria(raw, self._override(derived)))["pe_ratio"]
        assert c.passed is True
        assert c.sub_aspects == (4, 4)

    def test_override_at_maximum(self, raw: RawFinancials, derived: DerivedMetrics) -> None:
        d = self._override(derived, pe_ratio=20.0, roic_trend=Trend.STABLE)
        c = _by_name(evaluate_criteria(raw, d))["pe_ratio"]
        assert c.passed is False

    @pytest.mark.parametrize(
        "changes",
        [
            {"revenue_cagr_5y": 14.9},
            {"revenue_cagr_5y": None},
            {"fcf_margin_trend": Trend.STABLE},
            {"roic_trend": Trend.UNDETERMINED},
            {"net_debt_to_ebitda": 1.5},
            {"net_debt_to_ebitda": None},
        ],
    )
    def test_override_needs_every_condition(
        self,
        raw: RawFinancials,
        derived: DerivedMetrics,
        changes: dict[str, object],
    ) -> None:
        c = _by_name(evaluate_criteria(raw, self._override(derived, **changes)))["pe_ratio"]
        assert c.passed is False
        assert c.sub_aspects == (3, 4)


class TestCriterion:

    def test_cannot_pass_without_value(self) -> None:
        with pytest.raises(ValueError, match="cannot pass"):
            Criterion("roic", True, None, ">= 12%")

    def test_invalid_sub_aspects(self) -> None:
        with pytest.raises(ValueError, match="sub_aspects"):
            Criterion("pe_ratio", False, 25.0, "< 20", sub_aspects=(5, 4))
