"""SQLite-backed cache of score results, partitioned by market."""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

from screener.analysis.scoring import ScoreResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = timedelta(hours=24)

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS score_results (
        security_id TEXT NOT NULL,
        market_id TEXT NOT NULL,
        fetched_at TEXT NOT NULL,
        payload TEXT NOT NULL,
        PRIMARY KEY (security_id, market_id)
    )
"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Timezone-aware UTC datetime. Naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_stamp(text: str) -> datetime:
    return as_utc(datetime.fromisoformat(text))


@dataclass(frozen=True)
class CacheEntry:
    """One cached result with the time it was fetched (UTC)."""

    security_id: str
    market_id: str
    result: ScoreResult
    fetched_at: datetime

    def is_fresh(self, now: datetime, max_age: timedelta) -> bool:
        return as_utc(now) - as_utc(self.fetched_at) <= max_age


@dataclass(frozen=True)
class CacheStats:
    """Freshness counts, computed at query time.

    Attributes:
        total: Cached entries.
        fresh: Entries within max_age.
        stale: Entries older than max_age.
        hit_rate: fresh / total, 0.0 when empty.
        by_market: Market id -> cached entries.
    """

    total: int
    fresh: int
    stale: int
    hit_rate: float
    by_market: dict[str, int] = field(default_factory=dict)


class ResultCache:
    """Persist ScoreResults keyed by (security_id, market_id).

    Stale entries are hidden from get() but never deleted; only clear()
    removes rows. Each write is one UPSERT in its own transaction, so
    concurrent writers to the same key leave exactly one of their values.
    Timestamps are stored in UTC; naive datetimes are read as UTC.

    Args:
        path: SQLite database file. Parent directories are created.
        now: Clock used for freshness checks and default fetch times.
    """

    def __init__(
        self,
        path: Path | str,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._path = Path(path)
        self._now = now
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            with conn:
                conn.execute(_SCHEMA)
        finally:
            conn.close()

    @property
    def path(self) -> Path:
        return self._path

    def now(self) -> datetime:
        """Current time in UTC according to the cache clock."""
        return as_utc(self._now())

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._path, timeout=30.0)

    def _rows(self, query: str, params: tuple) -> list[tuple]:
        conn = self._connect()
        try:
            return conn.execute(query, params).fetchall()
        finally:
            conn.close()

    @staticmethod
    def _to_entry(row: tuple) -> CacheEntry:
        security_id, market_id, fetched_at, payload = row
        return CacheEntry(
            security_id=security_id,
            market_id=market_id,
            result=ScoreResult.from_dict(json.loads(payload)),
            fetched_at=_parse_stamp(fetched_at),
        )

    def entry(self, security_id: str, market_id: str) -> CacheEntry | None:
        """Cached entry regardless of age, or None."""
        rows = self._rows(
            "SELECT security_id, market_id, fetched_at, payload "
            "FROM score_results WHERE security_id = ? AND market_id = ?",
            (security_id, market_id),
        )
        return self._to_entry(rows[0]) if rows else None

    def get(
        self,
        security_id: str,
        market_id: str,
        max_age: timedelta = DEFAULT_MAX_AGE,
    ) -> ScoreResult | None:
        """Cached result if fetched within max_age, else None.

        Args:
            security_id: Ticker symbol.
            market_id: Market partition.
            max_age: Freshness limit.

        Returns:
            ScoreResult or None if absent or stale.
        """
        cached = self.entry(security_id, market_id)
        if cached is None or not cached.is_fresh(self.now(), max_age):
            return None
        return cached.result

    def put(
        self,
        security_id: str,
        market_id: str,
        result: ScoreResult,
        fetched_at: datetime | None = None,
    ) -> None:
        """Store a result, replacing any existing entry for the key."""
        stamp = as_utc(fetched_at) if fetched_at is not None else self.now()
        payload = json.dumps(result.to_dict())
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO score_results "
                    "(security_id, market_id, fetched_at, payload) "
                    "VALUES (?, ?, ?, ?) "
                    "ON CONFLICT(security_id, market_id) DO UPDATE SET "
                    "fetched_at = excluded.fetched_at, payload = excluded.payload",
                    (security_id, market_id, stamp.isoformat(), payload),
                )
        finally:
            conn.close()

    def entries(
        self, market_id: str, max_age: timedelta | None = None
    ) -> list[CacheEntry]:
        """All entries for a market, optionally only fresh ones, by symbol."""
        rows = self._rows(
            "SELECT security_id, market_id, fetched_at, payload "
            "FROM score_results WHERE market_id = ? ORDER BY security_id",
            (market_id,),
        )
        result = [self._to_entry(row) for row in rows]
        if max_age is None:
            return result
        now = self.now()
        return [e for e in result if e.is_fresh(now, max_age)]

    def stats(
        self, market_id: str | None = None, max_age: timedelta = DEFAULT_MAX_AGE
    ) -> CacheStats:
        """Freshness counts for one market, or for every market if None.

        Read-only.
        """
        if market_id is None:
            rows = self._rows("SELECT market_id, fetched_at FROM score_results", ())
        else:
            rows = self._rows(
                "SELECT market_id, fetched_at FROM score_results WHERE market_id = ?",
                (market_id,),
            )
        now = self.now()
        total = len(rows)
        fresh = sum(
            1 for _, fetched_at in rows
            if now - _parse_stamp(fetched_at) <= max_age
        )
        by_market: dict[str, int] = {}
        for market, _ in rows:
            by_market[market] = by_market.get(market, 0) + 1
        return CacheStats(
            total=total,
            fresh=fresh,
            stale=total - fresh,
            hit_rate=fresh / total if total else 0.0,
            by_market=dict(sorted(by_market.items())),
        )

    def clear(self, market_id: str) -> int:
        """Delete every entry of a market.

        Returns:
            Number of rows removed.
        """
        conn = self._connect()
        try:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM score_results WHERE market_id = ?", (market_id,)
                )
            removed = cursor.rowcount
        finally:
            conn.close()
        logger.info("Cache: cleared %d entries for %s", removed, market_id)
        return removed
