"""Screener error taxonomy.

Mathematically undefined metrics (CAGR over a non-positive base, ratios
over a zero denominator) are not errors: they are returned as None.
"""

from __future__ import annotations


class ScreenerError(Exception):
    """Base class for all screener errors."""


class ConfigurationError(ScreenerError):
    """Invalid or inconsistent configuration (e.g. unmatched criterion weight)."""


class AnalysisError(ScreenerError):
    """Failure analysing a single security.

    Args:
        ticker: Symbol the failure belongs to.
        message: Human-readable reason.
    """

    def __init__(self, ticker: str, message: str) -> None:
        super().__init__(f"{ticker}: {message}")
        self.ticker = ticker
        self.reason = message


class InsufficientData(AnalysisError):
    """Profile or TTM ratios are missing, so the security cannot be scored."""


class ProviderError(AnalysisError):
    """Network, HTTP or payload error from the market data provider."""

    def __init__(
        self, ticker: str, message: str, status_code: int | None = None
    ) -> None:
        super().__init__(ticker, message)
        self.status_code = status_code


class RateLimitExceeded(ProviderError):
    """The provider signalled quota exhaustion.

    Treated by the scheduler as a batch-level pause, not a ticker failure.
    """
