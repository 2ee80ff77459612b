"""Financial Modeling Prep (FMP) market data provider.

Provides the MarketDataProvider protocol consumed by the analyzer and an
FMPClient implementation over the FMP /stable REST API. Retries with
exponential backoff on 5xx status codes; quota exhaustion (HTTP 429 or an
FMP "Limit Reach" error body) raises RateLimitExceeded immediately so the
scheduler can pause the whole batch.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Protocol

import pandas as pd
import requests

from screener.config import ScreenerConfig
from screener.errors import ProviderError, RateLimitExceeded

logger = logging.getLogger(__name__)

_RETRY_STATUS_CODES = {500, 502, 503, 504}
_RATE_LIMIT_STATUS = 429

# Column mappings: FMP camelCase -> screener snake_case. Where the legacy
# v3 API used a different spelling, both map to the same column.
INCOME_COLUMNS = {
    "date": "date",
    "fiscalYear": "fiscal_year",
    "calendarYear": "fiscal_year",
    "revenue": "revenue",
    "netIncome": "net_income",
    "ebitda": "ebitda",
    "operatingIncome": "operating_income",
    "eps": "eps",
    "epsDiluted": "eps_diluted",
    "epsdiluted": "eps_diluted",
    "weightedAverageShsOutDil": "weighted_average_shs_out_dil",
}

BALANCE_COLUMNS = {
    "date": "date",
    "totalDebt": "total_debt",
    "cashAndCashEquivalents": "cash_and_cash_equivalents",
    "totalStockholdersEquity": "total_stockholders_equity",
    "totalAssets": "total_assets",
}

CASHFLOW_COLUMNS = {
    "date": "date",
    "operatingCashFlow": "operating_cash_flow",
    "freeCashFlow": "free_cash_flow",
}

KEY_METRICS_COLUMNS = {
    "date": "date",
    "returnOnInvestedCapital": "roic",
    "roic": "roic",
    "returnOnEquity": "roe",
    "roe": "roe",
}


class MarketDataProvider(Protocol):
    """Request/response data source keyed by ticker symbol."""

    def profile(self, symbol: str) -> dict[str, Any] | None: ...

    def quote(self, symbol: str) -> dict[str, Any] | None: ...

    def income_statements(
        self, symbol: str, period: str = "annual", limit: int = 15
    ) -> list[dict[str, Any]]: ...

    def balance_sheets(
        self, symbol: str, period: str = "annual", limit: int = 15
    ) -> list[dict[str, Any]]: ...

    def cash_flows(
        self, symbol: str, period: str = "annual", limit: int = 15
    ) -> list[dict[str, Any]]: ...

    def ratios_ttm(self, symbol: str) -> dict[str, Any] | None: ...

    def key_metrics_ttm(self, symbol: str) -> dict[str, Any] | None: ...

    def key_metrics(
        self, symbol: str, period: str = "annual", limit: int = 15
    ) -> list[dict[str, Any]]: ...


class FMPClient:
    """MarketDataProvider backed by the FMP /stable endpoints.

    Args:
        api_key: FMP API key (from FMP_API_KEY environment variable).
        config: Screener configuration (base URL, timeout, retry policy).
    """

    def __init__(self, api_key: str, config: ScreenerConfig | None = None) -> None:
        self._api_key = api_key
        self._config = config if config is not None else ScreenerConfig()

    # -- Per-symbol endpoints --

    def profile(self, symbol: str) -> dict[str, Any] | None:
        return _first(self._request("profile", symbol, {"symbol": symbol}))

    def quote(self, symbol: str) -> dict[str, Any] | None:
        return _first(self._request("quote", symbol, {"symbol": symbol}))

    def income_statements(
        self, symbol: str, period: str = "annual", limit: int = 15
    ) -> list[dict[str, Any]]:
        return _records(self._request(
            "income-statement", symbol,
            {"symbol": symbol, "period": period, "limit": limit},
        ))

    def balance_sheets(
        self, symbol: str, period: str = "annual", limit: int = 15
    ) -> list[dict[str, Any]]:
        return _records(self._request(
            "balance-sheet-statement", symbol,
            {"symbol": symbol, "period": period, "limit": limit},
        ))

    def cash_flows(
        self, symbol: str, period: str = "annual", limit: int = 15
    ) -> list[dict[str, Any]]:
        return _records(self._request(
            "cash-flow-statement", symbol,
            {"symbol": symbol, "period": period, "limit": limit},
        ))

    def ratios_ttm(self, symbol: str) -> dict[str, Any] | None:
        return _first(self._request("ratios-ttm", symbol, {"symbol": symbol}))

    def key_metrics_ttm(self, symbol: str) -> dict[str, Any] | None:
        return _first(self._request("key-metrics-ttm", symbol, {"symbol": symbol}))

    def key_metrics(
        self, symbol: str, period: str = "annual", limit: int = 15
    ) -> list[dict[str, Any]]:
        return _records(self._request(
            "key-metrics", symbol,
            {"symbol": symbol, "period": period, "limit": limit},
        ))

    # -- Universe endpoints --

    def company_screener(self, exchange: str, limit: int = 10_000) -> list[dict[str, Any]]:
        """Actively trading common stocks listed on one exchange."""
        return _records(self._request(
            "company-screener", exchange,
            {
                "exchange": exchange,
                "isEtf": "false",
                "isFund": "false",
                "isActivelyTrading": "true",
                "limit": limit,
            },
        ))

    def index_constituents(self, endpoint: str) -> list[dict[str, Any]]:
        """Constituents of an index (e.g. "sp500-constituent")."""
        return _records(self._request(endpoint, endpoint, {}))

    def _request(self, endpoint: str, label: str, params: dict[str, Any]) -> Any:
        """GET one endpoint with retry logic.

        Args:
            endpoint: Path below the base URL (e.g. "ratios-ttm").
            label: Ticker or identifier used in errors and log lines.
            params: Query parameters (API key added here).

        Returns:
            Decoded JSON payload.

        Raises:
            RateLimitExceeded: On HTTP 429 or an FMP limit error body.
            ProviderError: On other HTTP errors, network failures after
                all retries, or an undecodable body.
        """
        url = f"{self._config.api_base_url}/{endpoint}"
        query = dict(params)
        query["apikey"] = self._api_key
        max_retries = max(self._config.max_retries, 1)

        for attempt in range(max_retries):
            try:
                response = requests.get(
                    url, params=query, timeout=self._config.request_timeout,
                )
            except requests.RequestException as e:
                if attempt < max_retries - 1:
                    sleep_time = self._config.backoff_factor * (2**attempt)
                    logger.warning(
                        "%s: FMP %s request failed: %s. Retrying in %.1fs "
                        "(attempt %d/%d)",
                        label, endpoint, e, sleep_time, attempt + 1, max_retries,
                    )
                    time.sleep(sleep_time)
                    continue
                raise ProviderError(
                    label, f"{endpoint} request failed: {e}"
                ) from e

            status = response.status_code
            if status == _RATE_LIMIT_STATUS:
                raise RateLimitExceeded(
                    label, f"{endpoint} rate limit exceeded", status_code=status
                )

            if status in _RETRY_STATUS_CODES:
                if attempt < max_retries - 1:
                    sleep_time = self._config.backoff_factor * (2**attempt)
                    logger.warning(
                        "%s: FMP %s returned %d, retrying in %.1fs "
                        "(attempt %d/%d)",
                        label, endpoint, status, sleep_time, attempt + 1,
                        max_retries,
                    )
                    time.sleep(sleep_time)
                    continue
                raise ProviderError(
                    label,
                    f"{endpoint} returned {status} after {max_retries} attempts",
                    status_code=status,
                )

            if status >= 400:
                raise ProviderError(
                    label, f"{endpoint} returned {status}", status_code=status
                )

            try:
                data = response.json()
            except ValueError as e:
                raise ProviderError(
                    label, f"{endpoint} returned invalid JSON", status_code=status
                ) from e

            if isinstance(data, dict) and "Error Message" in data:
                message = str(data["Error Message"])
                if "limit" in message.lower():
                    raise RateLimitExceeded(label, message, status_code=status)
                raise ProviderError(label, message, status_code=status)

            return data

        raise ProviderError(label, f"{endpoint} failed after {max_retries} attempts")


def _records(data: Any) -> list[dict[str, Any]]:
    """Normalise a payload to a list of records."""
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if isinstance(data, dict):
        return [data]
    return []


def _first(data: Any) -> dict[str, Any] | None:
    """First record of a payload, or None if empty."""
    records = _records(data)
    return records[0] if records else None


def statements_frame(
    records: list[dict[str, Any]], columns: dict[str, str], limit: int | None = None
) -> pd.DataFrame:
    """Build a most-recent-first DataFrame from provider records.

    Selects and renames the mapped columns (missing ones are filled with
    NaN), sorts by date descending and truncates to limit rows.

    Args:
        records: Provider records (one per period).
        columns: FMP field -> snake_case column mapping.
        limit: Maximum number of periods to keep.

    Returns:
        DataFrame with one column per distinct mapped name.
    """
    targets = list(dict.fromkeys(columns.values()))
    if not records:
        return pd.DataFrame(columns=targets)

    raw = pd.DataFrame.from_records(records)
    df = pd.DataFrame(index=raw.index)
    for source, target in columns.items():
        if source not in raw.columns:
            continue
        values = raw[source]
        if target in df.columns:
            df[target] = df[target].where(df[target].notna(), values)
        else:
            df[target] = values
    for target in targets:
        if target not in df.columns:
            df[target] = float("nan")

    df = df[targets]
    numeric = [c for c in targets if c != "date"]
    df[numeric] = df[numeric].apply(pd.to_numeric, errors="coerce")

    if "date" in df.columns and df["date"].notna().any():
        df["date"] = pd.to_datetime(df["date"], errors="coerce")
        df = df.sort_values("date", ascending=False, na_position="last")

    df = df.reset_index(drop=True)
    if limit is not None:
        df = df.head(limit)
    return df
