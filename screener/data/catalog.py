"""Market catalog: resolve a market identifier to its constituents.

A market is either an exchange (all actively trading common stocks listed
there) or an index (its current constituents). Callers only see the
resulting list of Security records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import pandas as pd

from screener.data.fmp import FMPClient
from screener.data.models import Security
from screener.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketOption:
    """A screenable market.

    Attributes:
        id: Market identifier passed on the command line and used as the
            cache partition key.
        name: Display name.
        kind: "exchange" or "index".
        source: Exchange code or FMP constituent endpoint.
    """

    id: str
    name: str
    kind: str
    source: str


MARKETS: dict[str, MarketOption] = {
    option.id: option
    for option in (
        MarketOption("NYSE", "NYSE (New York)", "exchange", "NYSE"),
        MarketOption("NASDAQ", "NASDAQ", "exchange", "NASDAQ"),
        MarketOption("XETRA", "XETRA (Germany)", "exchange", "XETRA"),
        MarketOption("LSE", "LSE (London)", "exchange", "LSE"),
        MarketOption("EURONEXT", "EURONEXT", "exchange", "EURONEXT"),
        MarketOption("TSX", "TSX (Toronto)", "exchange", "TSX"),
        MarketOption("HKSE", "HKSE (Hong Kong)", "exchange", "HKSE"),
        MarketOption("SP500", "S&P 500", "index", "sp500-constituent"),
        MarketOption("NASDAQ100", "NASDAQ 100", "index", "nasdaq-constituent"),
        MarketOption("DOWJONES", "Dow Jones Industrial Average", "index", "dowjones-constituent"),
    )
}


class MarketCatalog(Protocol):
    """Interface for resolving a market to its securities."""

    def list_securities(self, market_id: str) -> list[Security]:
        """Return the securities belonging to market_id, sorted by symbol."""
        ...


def _dedupe_sorted(securities: list[Security]) -> list[Security]:
    """Drop duplicate symbols (first wins) and sort by symbol."""
    seen: dict[str, Security] = {}
    for security in securities:
        if security.symbol and security.symbol not in seen:
            seen[security.symbol] = security
    return sorted(seen.values(), key=lambda s: s.symbol)


class FMPMarketCatalog:
    """Resolve markets through the FMP screener and constituent endpoints.

    Args:
        client: FMP client.
        markets: Supported markets (defaults to MARKETS).
    """

    def __init__(
        self, client: FMPClient, markets: dict[str, MarketOption] | None = None
    ) -> None:
        self._client = client
        self._markets = markets if markets is not None else MARKETS

    def list_securities(self, market_id: str) -> list[Security]:
        option = self._markets.get(market_id)
        if option is None:
            raise ConfigurationError(
                f"Unknown market {market_id!r}; expected one of "
                f"{sorted(self._markets)}"
            )

        if option.kind == "index":
            records = self._client.index_constituents(option.source)
            securities = [
                Security(
                    symbol=str(r.get("symbol") or ""),
                    name=str(r.get("name") or r.get("companyName") or ""),
                    exchange=str(r.get("exchange") or r.get("exchangeShortName") or ""),
                )
                for r in records
            ]
        else:
            records = self._client.company_screener(option.source)
            securities = [
                Security(
                    symbol=str(r.get("symbol") or ""),
                    name=str(r.get("companyName") or r.get("name") or ""),
                    exchange=str(
                        r.get("exchangeShortName") or r.get("exchange") or option.source
                    ),
                )
                for r in records
            ]

        result = _dedupe_sorted(securities)
        logger.info("Market %s: %d securities", market_id, len(result))
        return result


class CsvMarketCatalog:
    """Resolve markets from seed CSV files, one per market.

    Each file must have a "symbol" column; "name" and "exchange" are
    optional.

    Args:
        seed_files: Market id -> CSV path.
    """

    def __init__(self, seed_files: dict[str, Path]) -> None:
        self._seed_files = seed_files

    def list_securities(self, market_id: str) -> list[Security]:
        path = self._seed_files.get(market_id)
        if path is None:
            raise ConfigurationError(f"No seed file configured for market {market_id!r}")

        df = pd.read_csv(path, dtype=str).fillna("")
        if "symbol" not in df.columns:
            raise ConfigurationError(f"{path}: missing required column 'symbol'")

        securities = [
            Security(
                symbol=row["symbol"].strip().upper(),
                name=row.get("name", "").strip(),
                exchange=row.get("exchange", "").strip() or market_id,
            )
            for _, row in df.iterrows()
        ]
        return _dedupe_sorted(securities)
