"""Shared fixtures: an in-memory market data provider with FMP-shaped records."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from screener.data import load_financials
from screener.data.live_price import price_from_quote
from screener.data.models import RawFinancials

SHARES = 100.0
LATEST_YEAR = 2024


def _income_records(n_years: int, net_income: list[float] | None) -> list[dict[str, Any]]:
    records = []
    for i in range(n_years):
        revenue = 1000.0 / 1.1**i
        ni = net_income[i] if net_income is not None else 0.2 * revenue
        records.append({
            "date": f"{LATEST_YEAR - i}-12-31",
            "fiscalYear": str(LATEST_YEAR - i),
            "revenue": revenue,
            "netIncome": ni,
            "ebitda": 0.3 * revenue,
            "operatingIncome": 0.25 * revenue,
            "eps": ni / SHARES,
            "epsDiluted": ni / SHARES,
            "weightedAverageShsOutDil": SHARES,
        })
    return records


def _balance_records(n_years: int) -> list[dict[str, Any]]:
    return [
        {
            "date": f"{LATEST_YEAR - i}-12-31",
            "totalDebt": 200.0,
            "cashAndCashEquivalents": 100.0,
            "totalStockholdersEquity": 1000.0,
            "totalAssets": 3000.0,
        }
        for i in range(n_years)
    ]


def _cashflow_records(n_years: int) -> list[dict[str, Any]]:
    return [
        {
            "date": f"{LATEST_YEAR - i}-12-31",
            "operatingCashFlow": 0.2 * 1000.0 / 1.1**i,
            "freeCashFlow": 0.15 * 1000.0 / 1.1**i,
        }
        for i in range(n_years)
    ]


def _key_metrics_records(n_years: int) -> list[dict[str, Any]]:
    return [
        {
            "date": f"{LATEST_YEAR - i}-12-31",
            "returnOnInvestedCapital": 0.20 - 0.02 * i,
            "returnOnEquity": 0.25,
        }
        for i in range(n_years)
    ]


class FakeProvider:
    """MarketDataProvider serving a profitable, conservatively financed company.

    Every criterion passes with the default data. Keyword overrides replace
    individual payloads; errors maps a method name to the exception it
    raises.
    """

    def __init__(
        self,
        n_years: int = 10,
        net_income: list[float] | None = None,
        errors: dict[str, Exception] | None = None,
        **overrides: Any,
    ) -> None:
        self.calls: list[str] = []
        self.errors = errors or {}
        self.payloads: dict[str, Any] = {
            "profile": {
                "symbol": "GOOD",
                "companyName": "Good Co",
                "exchangeShortName": "NYSE",
                "sector": "Consumer Defensive",
                "currency": "USD",
            },
            "quote": {"symbol": "GOOD", "price": 20.0, "pe": 15.0},
            "income_statements": _income_records(n_years, net_income),
            "balance_sheets": _balance_records(n_years),
            "cash_flows": _cashflow_records(n_years),
            "ratios_ttm": {
                "priceToEarningsRatioTTM": 15.0,
                "netProfitMarginTTM": 0.20,
                "dividendYieldTTM": 0.03,
                "interestCoverageRatioTTM": 10.0,
            },
            "key_metrics_ttm": {
                "returnOnInvestedCapitalTTM": 0.20,
                "returnOnEquityTTM": 0.25,
            },
            "key_metrics": _key_metrics_records(n_years),
        }
        self.payloads.update(overrides)

    def _serve(self, name: str) -> Any:
        self.calls.append(name)
        if name in self.errors:
            raise self.errors[name]
        return self.payloads[name]

    def profile(self, symbol: str) -> dict[str, Any] | None:
        return self._serve("profile")

    def quote(self, symbol: str) -> dict[str, Any] | None:
        return self._serve("quote")

    def income_statements(self, symbol: str, period: str = "annual", limit: int = 15) -> list[dict[str, Any]]:
        return self._serve("income_statements")

    def balance_sheets(self, symbol: str, period: str = "annual", limit: int = 15) -> list[dict[str, Any]]:
        return self._serve("balance_sheets")

    def cash_flows(self, symbol: str, period: str = "annual", limit: int = 15) -> list[dict[str, Any]]:
        return self._serve("cash_flows")

    def ratios_ttm(self, symbol: str) -> dict[str, Any] | None:
        return self._serve("ratios_ttm")

    def key_metrics_ttm(self, symbol: str) -> dict[str, Any] | None:
        return self._serve("key_metrics_ttm")

    def key_metrics(self, symbol: str, period: str = "annual", limit: int = 15) -> list[dict[str, Any]]:
        return self._serve("key_metrics")


def quote_price_only(symbol: str, quote: dict[str, Any] | None) -> float | None:
    """Price resolver that never falls back to the network."""
    return price_from_quote(quote)


@pytest.fixture
def make_provider() -> Callable[..., FakeProvider]:
    """Factory for FakeProvider instances."""
    return FakeProvider


@pytest.fixture
def make_raw() -> Callable[..., RawFinancials]:
    """Factory for RawFinancials loaded from a FakeProvider."""

    def _make(symbol: str = "GOOD", **kwargs: Any) -> RawFinancials:
        return load_financials(
            symbol, FakeProvider(**kwargs), price_resolver=quote_price_only
        )

    return _make


@pytest.fixture
def price_resolver() -> Callable[[str, dict[str, Any] | None], float | None]:
    return quote_price_only
