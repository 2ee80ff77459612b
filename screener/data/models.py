"""Data models for the screener."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pandas as pd


def _empty_frame() -> pd.DataFrame:
    return pd.DataFrame()


@dataclass(frozen=True)
class Security:
    """One listed security as resolved by a market catalog."""

    symbol: str
    name: str
    exchange: str


@dataclass(frozen=True)
class RawFinancials:
    """Provider data for one security, as fetched. Never mutated.

    Attributes:
        symbol: Stock ticker symbol.
        profile: Company profile record. None if the provider has none.
        quote: Live quote record. None if unavailable.
        income: Annual income statements, one row per fiscal year, most
            recent first. Columns: date, fiscal_year, revenue, net_income,
            ebitda, operating_income, eps, eps_diluted,
            weighted_average_shs_out_dil.
        balance: Annual balance sheets, most recent first. Columns: date,
            total_debt, cash_and_cash_equivalents,
            total_stockholders_equity, total_assets.
        cashflow: Annual cash flow statements, most recent first.
            Columns: date, operating_cash_flow, free_cash_flow.
        ratios_ttm: Trailing-twelve-month ratio snapshot. None if missing.
        key_metrics_ttm: Trailing-twelve-month key metrics. None if missing.
        key_metrics: Annual key metrics history, most recent first.
            Columns: date, roic, roe.
        price: Current price (quote, or fallback source). None if unknown.
    """

    symbol: str
    profile: dict[str, Any] | None
    quote: dict[str, Any] | None
    income: pd.DataFrame = field(default_factory=_empty_frame)
    balance: pd.DataFrame = field(default_factory=_empty_frame)
    cashflow: pd.DataFrame = field(default_factory=_empty_frame)
    ratios_ttm: dict[str, Any] | None = None
    key_metrics_ttm: dict[str, Any] | None = None
    key_metrics: pd.DataFrame = field(default_factory=_empty_frame)
    price: float | None = None
