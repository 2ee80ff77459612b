"""Market screening: cache-first analysis of every security in a market."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import timedelta

from screener.analysis.scoring import ScoreResult
from screener.cache import DEFAULT_MAX_AGE, ResultCache
from screener.data.catalog import MarketCatalog
from screener.scheduler import BatchSummary, FetchScheduler, ProgressCallback

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScreeningRun:
    """Outcome of screening one market.

    Attributes:
        market_id: Market screened.
        results: Cached and freshly computed results, ranked.
        cache_hits: Securities served from fresh cache entries.
        summary: Batch summary for the securities that were fetched.
        stale_served: Securities whose refresh failed or was skipped and
            whose older cached result was returned instead.
    """

    market_id: str
    results: list[ScoreResult]
    cache_hits: int
    summary: BatchSummary
    stale_served: int = 0

    @property
    def fetched(self) -> int:
        return len(self.summary.succeeded)


def rank_results(results: Iterable[ScoreResult]) -> list[ScoreResult]:
    """Sort by raw score, then weighted score (both descending), then symbol."""
    return sorted(
        results,
        key=lambda r: (-r.raw_score, -r.weighted_score, r.security_id),
    )


def screen_market(
    market_id: str,
    catalog: MarketCatalog,
    scheduler: FetchScheduler,
    cache: ResultCache,
    max_age: timedelta = DEFAULT_MAX_AGE,
    limit: int | None = None,
    force_refresh: bool = False,
    on_progress: ProgressCallback | None = None,
    cancel: threading.Event | None = None,
) -> ScreeningRun:
    """Screen every security of a market.

    Fresh cache entries are used as-is; only missing or stale securities
    go through the scheduler. Each new result is written to the cache as
    soon as it arrives, so a cancelled run keeps its completed work. A
    security whose refresh fails or is skipped falls back to its stale
    cached result when one exists.

    Args:
        market_id: Market identifier (cache partition key).
        catalog: Resolves the market to its securities.
        scheduler: Runs the per-ticker analysis under the rate limit.
        cache: Result cache.
        max_age: Cache freshness limit.
        limit: Screen only the first N securities (by symbol).
        force_refresh: Ignore cached results.
        on_progress: Progress callback forwarded to the scheduler.
        cancel: Cancellation event forwarded to the scheduler.

    Returns:
        ScreeningRun with ranked results.
    """
    securities = catalog.list_securities(market_id)
    if limit is not None:
        securities = securities[:limit]

    now = cache.now()
    cached: list[ScoreResult] = []
    stale: dict[str, ScoreResult] = {}
    to_fetch: list[str] = []
    for security in securities:
        entry = cache.entry(security.symbol, market_id)
        if entry is not None and not force_refresh and entry.is_fresh(now, max_age):
            cached.append(entry.result)
            continue
        if entry is not None:
            stale[security.symbol] = entry.result
        to_fetch.append(security.symbol)

    logger.info(
        "%s: %d securities, %d from cache, %d to fetch",
        market_id, len(securities), len(cached), len(to_fetch),
    )

    job = scheduler.create_job(to_fetch)
    for outcome in scheduler.run_batch(job, on_progress, cancel):
        if outcome.result is not None:
            cache.put(outcome.ticker, market_id, outcome.result)

    summary = job.summary()
    fallback = [
        stale[ticker]
        for ticker in [*summary.failed, *summary.skipped]
        if ticker in stale
    ]
    if fallback:
        logger.warning(
            "%s: serving %d stale cached results after failed or skipped refresh",
            market_id, len(fallback),
        )
    return ScreeningRun(
        market_id=market_id,
        results=rank_results([*cached, *summary.succeeded, *fallback]),
        cache_hits=len(cached),
        summary=summary,
        stale_served=len(fallback),
    )
