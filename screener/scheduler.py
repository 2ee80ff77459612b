"""Rate-limited batch scheduling of per-ticker analyses.

Tickers run in consecutive chunks of batch_size. Each chunk runs
concurrently; between chunks the scheduler waits out the rest of the
provider's rate window, measured from the start of the previous chunk.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Protocol

from screener.analysis.scoring import ScoreResult
from screener.errors import ConfigurationError, ProviderError, RateLimitExceeded

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]


class Clock(Protocol):
    """Time source used for rate-window waits."""

    def monotonic(self) -> float:
        ...

    def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Wall-clock implementation of Clock."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


@dataclass(frozen=True)
class TickerOutcome:
    """Result of one ticker: either a ScoreResult or the error raised."""

    ticker: str
    result: ScoreResult | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None


@dataclass(frozen=True)
class BatchSummary:
    """Final accounting of a batch run.

    Attributes:
        total: Tickers submitted.
        succeeded: Scored results, in completion order.
        failed: Ticker -> error for tickers that could not be scored.
        skipped: Tickers never attempted because the run was cancelled.
        cancelled: Whether cancellation stopped the run early.
        chunks: Chunks executed.
        waits: Rate-window waits performed.
    """

    total: int
    succeeded: tuple[ScoreResult, ...]
    failed: dict[str, Exception]
    skipped: tuple[str, ...] = ()
    cancelled: bool = False
    chunks: int = 0
    waits: int = 0


@dataclass
class BatchJob:
    """Mutable progress of a batch run. Safe to read from other threads."""

    tickers: list[str]
    batch_size: int
    succeeded: list[ScoreResult] = field(default_factory=list)
    failures: dict[str, Exception] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    cancelled: bool = False
    chunks: int = 0
    waits: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def completed_count(self) -> int:
        with self._lock:
            return len(self.succeeded) + len(self.failures)

    @property
    def percent(self) -> float:
        if not self.tickers:
            return 100.0
        return self.completed_count / len(self.tickers) * 100.0

    def record(self, outcome: TickerOutcome) -> None:
        with self._lock:
            if outcome.result is not None:
                self.succeeded.append(outcome.result)
            elif outcome.error is not None:
                self.failures[outcome.ticker] = outcome.error

    def summary(self) -> BatchSummary:
        with self._lock:
            return BatchSummary(
                total=len(self.tickers),
                succeeded=tuple(self.succeeded),
                failed=dict(self.failures),
                skipped=tuple(self.skipped),
                cancelled=self.cancelled,
                chunks=self.chunks,
                waits=self.waits,
            )


class FetchScheduler:
    """Run an analysis callable over many tickers within a rate limit.

    Args:
        analyze: Per-ticker analysis, e.g. SecurityAnalyzer.analyze.
        batch_size: Tickers per chunk (the provider's per-window quota).
        rate_window: Seconds each chunk is allotted.
        clock: Time source for waits.
        ticker_retries: Extra attempts after a ProviderError.
        max_rate_limit_deferrals: Times a rate-limited ticker is moved to
            the next chunk before it is recorded as failed.

    Raises:
        ConfigurationError: If batch_size < 1 or rate_window < 0.
    """

    def __init__(
        self,
        analyze: Callable[[str], ScoreResult],
        batch_size: int = 100,
        rate_window: float = 60.0,
        clock: Clock | None = None,
        ticker_retries: int = 0,
        max_rate_limit_deferrals: int = 2,
    ) -> None:
        if batch_size < 1:
            raise ConfigurationError(f"batch_size must be at least 1, got {batch_size}")
        if rate_window < 0:
            raise ConfigurationError(
                f"rate_window must be non-negative, got {rate_window}"
            )
        self._analyze = analyze
        self._batch_size = batch_size
        self._rate_window = rate_window
        self._clock = clock if clock is not None else SystemClock()
        self._ticker_retries = max(0, ticker_retries)
        self._max_deferrals = max(0, max_rate_limit_deferrals)

    def create_job(self, tickers: Sequence[str]) -> BatchJob:
        return BatchJob(tickers=list(tickers), batch_size=self._batch_size)

    def _analyze_one(self, ticker: str) -> TickerOutcome:
        """Analyze one ticker, retrying provider errors. Never raises."""
        attempt = 0
        while True:
            try:
                return TickerOutcome(ticker, result=self._analyze(ticker))
            except RateLimitExceeded as e:
                return TickerOutcome(ticker, error=e)
            except ProviderError as e:
                if attempt < self._ticker_retries:
                    attempt += 1
                    logger.warning(
                        "%s: %s, retrying (attempt %d/%d)",
                        ticker, e.reason, attempt, self._ticker_retries,
                    )
                    continue
                return TickerOutcome(ticker, error=e)
            except Exception as e:
                return TickerOutcome(ticker, error=e)

    def _run_chunk(self, chunk: list[str]) -> list[TickerOutcome]:
        with ThreadPoolExecutor(max_workers=len(chunk)) as executor:
            return list(executor.map(self._analyze_one, chunk))

    def run_batch(
        self,
        job: BatchJob,
        on_progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> Iterator[TickerOutcome]:
        """Execute a job, yielding each final ticker outcome.

        Cancellation is checked before each chunk; a chunk in flight
        always completes. Tickers not yet started are recorded as
        skipped.

        Args:
            job: Job created by create_job.
            on_progress: Called with (percent, message) after every chunk
                and once at completion.
            cancel: Event that stops the run at the next chunk boundary.

        Yields:
            TickerOutcome per ticker, success or failure.
        """
        pending: deque[str] = deque(job.tickers)
        deferrals: dict[str, int] = {}
        chunk_start: float | None = None

        while pending:
            if cancel is not None and cancel.is_set():
                job.skipped.extend(pending)
                job.cancelled = True
                logger.info(
                    "Batch cancelled: %d tickers skipped", len(pending)
                )
                break

            if chunk_start is not None:
                remaining = self._rate_window - (self._clock.monotonic() - chunk_start)
                remaining = max(0.0, remaining)
                logger.info("Rate window: waiting %.1fs before next chunk", remaining)
                self._clock.sleep(remaining)
                job.waits += 1

            chunk = [pending.popleft() for _ in range(min(self._batch_size, len(pending)))]
            chunk_start = self._clock.monotonic()
            outcomes = self._run_chunk(chunk)
            job.chunks += 1

            deferred: list[str] = []
            for outcome in outcomes:
                if isinstance(outcome.error, RateLimitExceeded):
                    count = deferrals.get(outcome.ticker, 0)
                    if count < self._max_deferrals:
                        deferrals[outcome.ticker] = count + 1
                        deferred.append(outcome.ticker)
                        continue
                if outcome.error is not None:
                    logger.warning("%s: skipped (%s)", outcome.ticker, outcome.error)
                job.record(outcome)
                yield outcome

            if deferred:
                logger.warning(
                    "Rate limit reached: deferring %d tickers to the next chunk",
                    len(deferred),
                )
                pending.extendleft(reversed(deferred))

            message = (
                f"Chunk {job.chunks}: {job.completed_count}/{len(job.tickers)} "
                "tickers processed"
            )
            logger.info(message)
            if on_progress is not None:
                on_progress(job.percent, message)

        if job.cancelled:
            if on_progress is not None:
                on_progress(job.percent, f"Cancelled after {job.chunks} chunks")
            return

        summary = job.summary()
        logger.info(
            "Batch complete: %d succeeded, %d failed",
            len(summary.succeeded), len(summary.failed),
        )
        if on_progress is not None:
            on_progress(100.0, "Batch complete")

    def run(
        self,
        tickers: Sequence[str],
        on_progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> BatchSummary:
        """Run every ticker and return the summary."""
        job = self.create_job(tickers)
        for _ in self.run_batch(job, on_progress, cancel):
            pass
        return job.summary()
