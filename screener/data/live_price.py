"""Live price resolution: provider quote first, yfinance fallback."""

from __future__ import annotations

import logging
import math
from typing import Any

logger = logging.getLogger(__name__)

# Prices below this floor are treated as corrupted or meaningless.
MIN_PRICE_FLOOR: float = 0.01


def price_from_quote(quote: dict[str, Any] | None) -> float | None:
    """Extract a usable price from a provider quote record.

    Args:
        quote: Quote record (may be None).

    Returns:
        Price, or None if missing, non-finite or below the floor.
    """
    if not quote:
        return None
    try:
        price = float(quote.get("price"))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price < MIN_PRICE_FLOOR:
        return None
    return price


def fetch_fallback_price(symbol: str) -> float | None:
    """Fetch the latest close via yfinance.

    Used only when the primary provider returned no quote.

    Args:
        symbol: Stock ticker symbol.

    Returns:
        Latest close, or None if unavailable.
    """
    try:
        import yfinance as yf  # type: ignore[import-untyped]  # lazy import

        hist = yf.Ticker(symbol).history(period="5d")
        if hist.empty:
            return None
        price = float(hist["Close"].iloc[-1])
    except Exception as e:
        logger.warning("%s: yfinance error: %s", symbol, e)
        return None

    if not math.isfinite(price) or price < MIN_PRICE_FLOOR:
        logger.warning("%s: yfinance price below floor (%.4f)", symbol, price)
        return None
    return price


def resolve_price(symbol: str, quote: dict[str, Any] | None) -> float | None:
    """Price from the quote, falling back to yfinance.

    Args:
        symbol: Stock ticker symbol.
        quote: Provider quote record (may be None).

    Returns:
        Current price, or None if unavailable from all sources.
    """
    price = price_from_quote(quote)
    if price is not None:
        return price
    logger.info("%s: no provider quote, trying yfinance", symbol)
    return fetch_fallback_price(symbol)
