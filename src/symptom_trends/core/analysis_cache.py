# ============================================================================
# src/symptom_trends/core/analysis_cache.py
# ============================================================================
"""
Analysis Cache - most recent regression per (user, metric, time range)

Two backends share one interface:
- AnalysisCache: in-memory, thread-safe
- SQLiteAnalysisCache: persisted to a local SQLite file

Lookups never check freshness. A stored result is served as-is until it is
invalidated explicitly or removed by cleanup_expired(), which a maintenance
task runs outside the request path (see run_periodic_cleanup).
"""

import asyncio
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import closing
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from ..config.base_config import MS_PER_DAY, base_settings
from ..temporal.models import AnalysisCacheEntry, RegressionResult
from ..utils.exceptions import CacheKeyError

# ASCII unit separator; never valid inside a user id, metric or range
KEY_SEPARATOR = "\x1f"


def make_cache_key(user_id: str, metric: str, time_range: str) -> str:
    """
    Build the single string key for a (user, metric, time range) tuple.

    Raises:
        CacheKeyError: If a field contains the separator
    """
    for name, value in (("user_id", user_id), ("metric", metric), ("time_range", time_range)):
        if KEY_SEPARATOR in value:
            raise CacheKeyError(f"Cache key field '{name}' contains the key separator", field_name=name)
    return KEY_SEPARATOR.join((user_id, metric, time_range))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(moment: datetime) -> datetime:
    # Naive timestamps are taken as UTC
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


def _age_ms(entry_created: datetime, now: datetime) -> float:
    return (_as_aware(now) - _as_aware(entry_created)).total_seconds() * 1000.0


class CacheStatistics:
    """Track cache performance metrics"""

    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.writes = 0
        self.invalidations = 0
        self.expirations = 0
        self.entry_count = 0

    def hit_rate(self) -> float:
        """Calculate cache hit rate"""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "writes": self.writes,
            "invalidations": self.invalidations,
            "expirations": self.expirations,
            "hit_rate": self.hit_rate(),
            "entry_count": self.entry_count,
        }


class BaseAnalysisCache(ABC):
    """
    Interface for regression result stores.

    Keys are (user_id, metric, time_range); at most one entry per key.
    """

    def __init__(self):
        self._stats = CacheStatistics()
        self._lock = threading.RLock()
        self.logger = logging.getLogger(__name__)

    @abstractmethod
    def get_result(self, user_id: str, metric: str, time_range: str) -> Optional[AnalysisCacheEntry]:
        """Return the stored entry for a key, or None"""

    @abstractmethod
    def save_result(self, entry: AnalysisCacheEntry) -> None:
        """Upsert an entry; replaces any previous entry for the key entirely"""

    @abstractmethod
    def invalidate_cache(
        self,
        user_id: str,
        metric: Optional[str] = None,
        time_range: Optional[str] = None,
    ) -> int:
        """
        Remove matching entries. Omitted metric / time_range match anything.

        Returns:
            Number of entries removed
        """

    @abstractmethod
    def cleanup_expired(self, max_age_ms: float, now: Optional[datetime] = None) -> int:
        """
        Remove entries older than max_age_ms relative to created_at.

        Returns:
            Number of entries removed
        """

    @abstractmethod
    def __len__(self) -> int:
        ...

    def get_statistics(self) -> Dict[str, Any]:
        """Get cache statistics"""
        with self._lock:
            self._stats.entry_count = len(self)
            return self._stats.to_dict()


class AnalysisCache(BaseAnalysisCache):
    """
    In-memory analysis cache.

    Example:
        cache = AnalysisCache()
        cache.save_result(entry)
        hit = cache.get_result("user-1", "overall_health", "30d")
        cache.invalidate_cache("user-1")
    """

    def __init__(self):
        super().__init__()
        self._entries: Dict[str, AnalysisCacheEntry] = {}

    def get_result(self, user_id: str, metric: str, time_range: str) -> Optional[AnalysisCacheEntry]:
        key = make_cache_key(user_id, metric, time_range)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.misses += 1
            else:
                self._stats.hits += 1
            return entry

    def save_result(self, entry: AnalysisCacheEntry) -> None:
        key = make_cache_key(entry.user_id, entry.metric, entry.time_range)
        with self._lock:
            self._entries[key] = entry
            self._stats.writes += 1

    def invalidate_cache(
        self,
        user_id: str,
        metric: Optional[str] = None,
        time_range: Optional[str] = None,
    ) -> int:
        with self._lock:
            doomed = [
                key for key, entry in self._entries.items()
                if entry.user_id == user_id
                and (metric is None or entry.metric == metric)
                and (time_range is None or entry.time_range == time_range)
            ]
            for key in doomed:
                del self._entries[key]
            self._stats.invalidations += len(doomed)

        if doomed:
            self.logger.debug(f"Invalidated {len(doomed)} cached results for user {user_id}")
        return len(doomed)

    def cleanup_expired(self, max_age_ms: float, now: Optional[datetime] = None) -> int:
        now = now or _utcnow()
        with self._lock:
            expired = [
                key for key, entry in self._entries.items()
                if _age_ms(entry.created_at, now) > max_age_ms
            ]
            for key in expired:
                del self._entries[key]
            self._stats.expirations += len(expired)

        if expired:
            self.logger.info(f"Cleaned up {len(expired)} expired analysis results")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SQLiteAnalysisCache(BaseAnalysisCache):
    """
    SQLite-backed analysis cache.

    One row per key. created_at is kept both as ISO text (exact round trip)
    and as epoch milliseconds for the expiry sweep. x_unit_ms records the
    units the slope was computed in.
    """

    def __init__(self, db_path: Optional[Path] = None):
        super().__init__()
        self.db_path = Path(db_path or base_settings.CACHE_DB_PATH)
        self._init_database()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------
    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path))

    def _init_database(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as conn:
            cur = conn.cursor()
            cur.execute("""
                CREATE TABLE IF NOT EXISTS analysis_results (
                    cache_key     TEXT PRIMARY KEY,
                    user_id       TEXT NOT NULL,
                    metric        TEXT NOT NULL,
                    time_range    TEXT NOT NULL,
                    slope         REAL NOT NULL,
                    intercept     REAL NOT NULL,
                    r_squared     REAL NOT NULL,
                    created_at    TEXT NOT NULL,
                    created_at_ms REAL NOT NULL,
                    x_unit_ms     REAL NOT NULL DEFAULT 86400000.0
                )
            """)
            columns = {row[1] for row in cur.execute("PRAGMA table_info(analysis_results)")}
            if "x_unit_ms" not in columns:
                cur.execute(
                    f"ALTER TABLE analysis_results ADD COLUMN x_unit_ms REAL NOT NULL DEFAULT {float(MS_PER_DAY)}"
                )
            cur.execute("""
                CREATE INDEX IF NOT EXISTS idx_analysis_user_metric
                ON analysis_results (user_id, metric)
            """)
            cur.execute("""
                CREATE INDEX IF NOT EXISTS idx_analysis_created
                ON analysis_results (created_at_ms)
            """)
            conn.commit()
        self.logger.info(f"Analysis cache initialized: {self.db_path}")

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------
    def get_result(self, user_id: str, metric: str, time_range: str) -> Optional[AnalysisCacheEntry]:
        key = make_cache_key(user_id, metric, time_range)
        with self._lock, closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT user_id, metric, time_range, slope, intercept, r_squared, created_at, x_unit_ms "
                "FROM analysis_results WHERE cache_key = ?",
                (key,),
            ).fetchone()

            if row is None:
                self._stats.misses += 1
                return None
            self._stats.hits += 1

        return self._row_to_entry(row)

    @staticmethod
    def _row_to_entry(row: Tuple) -> AnalysisCacheEntry:
        user_id, metric, time_range, slope, intercept, r_squared, created_at, x_unit_ms = row
        return AnalysisCacheEntry(
            user_id=user_id,
            metric=metric,
            time_range=time_range,
            result=RegressionResult(slope=slope, intercept=intercept, r_squared=r_squared),
            created_at=datetime.fromisoformat(created_at),
            x_unit_ms=x_unit_ms,
        )

    def __len__(self) -> int:
        with self._lock, closing(self._connect()) as conn:
            return conn.execute("SELECT COUNT(*) FROM analysis_results").fetchone()[0]

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------
    def save_result(self, entry: AnalysisCacheEntry) -> None:
        key = make_cache_key(entry.user_id, entry.metric, entry.time_range)
        created_ms = _as_aware(entry.created_at).timestamp() * 1000.0

        with self._lock, closing(self._connect()) as conn:
            conn.execute("""
                INSERT OR REPLACE INTO analysis_results
                    (cache_key, user_id, metric, time_range,
                     slope, intercept, r_squared, created_at, created_at_ms, x_unit_ms)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                key,
                entry.user_id,
                entry.metric,
                entry.time_range,
                entry.result.slope,
                entry.result.intercept,
                entry.result.r_squared,
                entry.created_at.isoformat(),
                created_ms,
                entry.x_unit_ms,
            ))
            conn.commit()
            self._stats.writes += 1

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------
    def invalidate_cache(
        self,
        user_id: str,
        metric: Optional[str] = None,
        time_range: Optional[str] = None,
    ) -> int:
        query = "DELETE FROM analysis_results WHERE user_id = ?"
        params: list = [user_id]
        if metric is not None:
            query += " AND metric = ?"
            params.append(metric)
        if time_range is not None:
            query += " AND time_range = ?"
            params.append(time_range)

        with self._lock, closing(self._connect()) as conn:
            removed = conn.execute(query, params).rowcount
            conn.commit()
            self._stats.invalidations += removed

        if removed:
            self.logger.debug(f"Invalidated {removed} cached results for user {user_id}")
        return removed

    def cleanup_expired(self, max_age_ms: float, now: Optional[datetime] = None) -> int:
        now = _as_aware(now or _utcnow())
        cutoff_ms = (now - timedelta(milliseconds=max_age_ms)).timestamp() * 1000.0

        with self._lock, closing(self._connect()) as conn:
            removed = conn.execute(
                "DELETE FROM analysis_results WHERE created_at_ms < ?",
                (cutoff_ms,),
            ).rowcount
            conn.commit()
            self._stats.expirations += removed

        if removed:
            self.logger.info(f"Cleaned up {removed} expired analysis results")
        return removed


async def run_periodic_cleanup(
    cache: BaseAnalysisCache,
    stop_event: asyncio.Event,
    max_age_ms: Optional[float] = None,
    interval_seconds: Optional[float] = None,
) -> int:
    """
    Sweep expired results until stop_event is set.

    Intended for a maintenance task started next to the service, not for
    the analyze() path.

    Returns:
        Total number of entries removed
    """
    max_age_ms = max_age_ms if max_age_ms is not None else base_settings.CACHE_MAX_AGE_MS
    interval = interval_seconds if interval_seconds is not None else base_settings.CACHE_CLEANUP_INTERVAL_SECONDS
    removed_total = 0

    while not stop_event.is_set():
        removed_total += await asyncio.to_thread(cache.cleanup_expired, max_age_ms)
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            continue

    return removed_total
