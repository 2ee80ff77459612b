"""Data loading orchestration."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable

from screener.data.fmp import (
    BALANCE_COLUMNS,
    CASHFLOW_COLUMNS,
    INCOME_COLUMNS,
    KEY_METRICS_COLUMNS,
    MarketDataProvider,
    statements_frame,
)
from screener.data.live_price import resolve_price
from screener.data.models import RawFinancials, Security

logger = logging.getLogger(__name__)

__all__ = ["MarketDataProvider", "RawFinancials", "Security", "load_financials"]


def load_financials(
    symbol: str,
    provider: MarketDataProvider,
    statement_limit: int = 15,
    price_resolver: Callable[[str, dict[str, Any] | None], float | None] = resolve_price,
) -> RawFinancials:
    """Fetch everything needed to score one security.

    Loading sequence:
        1. Fetch quote, profile, annual income/balance/cash-flow
           statements, TTM ratios and TTM/annual key metrics in parallel.
        2. Convert statements to most-recent-first DataFrames.
        3. Resolve the current price (quote, then fallback source), only
           when profile and TTM ratios are present; otherwise price is None.

    Provider errors from any sub-fetch propagate unchanged; the caller
    decides whether the ticker is retried.

    Args:
        symbol: Stock ticker symbol.
        provider: Market data provider.
        statement_limit: Maximum number of annual periods to request.
        price_resolver: Price lookup given the symbol and quote record.

    Returns:
        RawFinancials. Profile or TTM ratios may be None; the analyzer
        decides whether that is sufficient.
    """
    limit = statement_limit
    calls: dict[str, Callable[[], Any]] = {
        "quote": lambda: provider.quote(symbol),
        "profile": lambda: provider.profile(symbol),
        "income": lambda: provider.income_statements(symbol, "annual", limit),
        "balance": lambda: provider.balance_sheets(symbol, "annual", limit),
        "cashflow": lambda: provider.cash_flows(symbol, "annual", limit),
        "ratios_ttm": lambda: provider.ratios_ttm(symbol),
        "key_metrics_ttm": lambda: provider.key_metrics_ttm(symbol),
        "key_metrics": lambda: provider.key_metrics(symbol, "annual", limit),
    }

    with ThreadPoolExecutor(max_workers=len(calls)) as executor:
        futures = {name: executor.submit(call) for name, call in calls.items()}
        payload = {name: future.result() for name, future in futures.items()}

    income = statements_frame(payload["income"], INCOME_COLUMNS, limit)
    balance = statements_frame(payload["balance"], BALANCE_COLUMNS, limit)
    cashflow = statements_frame(payload["cashflow"], CASHFLOW_COLUMNS, limit)
    key_metrics = statements_frame(payload["key_metrics"], KEY_METRICS_COLUMNS, limit)

    logger.debug(
        "%s: loaded %d income, %d balance, %d cash flow periods",
        symbol, len(income), len(balance), len(cashflow),
    )

    price = None
    if payload["profile"] and payload["ratios_ttm"]:
        price = price_resolver(symbol, payload["quote"])

    return RawFinancials(
        symbol=symbol,
        profile=payload["profile"],
        quote=payload["quote"],
        income=income,
        balance=balance,
        cashflow=cashflow,
        ratios_ttm=payload["ratios_ttm"],
        key_metrics_ttm=payload["key_metrics_ttm"],
        key_metrics=key_metrics,
        price=price,
    )
