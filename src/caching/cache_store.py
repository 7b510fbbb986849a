"""
Generic In-Memory Cache Store

Timestamped entries with TTL-based hits, lazy expiry, a periodic background
sweep, tag invalidation and a full flush when capacity is reached.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Generic, Iterable, Optional, Set, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")

Clock = Callable[[], float]


def now_ms() -> float:
    """Current wall-clock time in epoch milliseconds"""
    return time.time() * 1000


@dataclass
class CacheEntry(Generic[V]):
    """Cache entry with timestamps"""
    value: V
    last_updated: float
    computed_at: float
    tags: Set[str] = field(default_factory=set)

    def age(self, now: float) -> float:
        return now - self.last_updated


@dataclass
class CacheMetrics:
    """Cache statistics"""
    hits: int = 0
    misses: int = 0
    total_operations: int = 0
    average_access_time: float = 0.0  # milliseconds
    last_cleanup: float = 0.0
    last_access_timestamp: float = 0.0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        total_requests = self.hits + self.misses
        return round(self.hits / total_requests * 100, 2) if total_requests > 0 else 0.0


@dataclass
class CacheOperationResult(Generic[V]):
    """Outcome of a store operation"""
    success: bool
    cache_key: str
    timestamp: float
    cache_hit: bool = False
    entry: Optional[CacheEntry[V]] = None
    error: Optional[Exception] = None

    @property
    def value(self) -> Optional[V]:
        return self.entry.value if self.entry is not None else None


class CacheStore(Generic[V]):
    """In-memory cache keyed by derived string keys"""

    def __init__(
        self,
        ttl_ms: float = 300_000,
        max_entries: int = 1000,
        cleanup_interval_ms: float = 300_000,
        clock: Optional[Clock] = None
    ):
        """Initialize the store

        Args:
            ttl_ms: Maximum entry age in milliseconds for a hit
            max_entries: Resident entry count that triggers a full flush
            cleanup_interval_ms: Period of the background sweep
            clock: Time source returning epoch milliseconds
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self.ttl_ms = ttl_ms
        self.max_entries = max_entries
        self.cleanup_interval_ms = cleanup_interval_ms
        self._clock = clock or now_ms

        self._entries: Dict[str, CacheEntry[V]] = {}
        self._metrics = CacheMetrics(last_cleanup=self._clock(), last_access_timestamp=self._clock())
        self._cleanup_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start the periodic cleanup sweep"""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._background_cleanup())
            logger.info(f"Cache cleanup sweep started (interval {self.cleanup_interval_ms}ms)")

    def dispose(self) -> None:
        """Stop the sweep and drop every entry"""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            self._cleanup_task = None
            logger.info("Cache cleanup sweep stopped")
        self.clear()

    @property
    def is_running(self) -> bool:
        return self._cleanup_task is not None and not self._cleanup_task.done()

    def get(self, key: str) -> CacheOperationResult[V]:
        """Look up a fresh entry

        An entry older than the TTL counts as a miss and is removed.
        """
        start_time = time.perf_counter()
        now = self._clock()
        self._metrics.last_access_timestamp = now

        entry = self._entries.get(key)
        hit = entry is not None and entry.age(now) <= self.ttl_ms

        if entry is not None and not hit:
            del self._entries[key]

        if hit:
            self._metrics.hits += 1
        else:
            self._metrics.misses += 1
        self._record_operation(start_time)

        return CacheOperationResult(
            success=hit,
            cache_key=key,
            timestamp=now,
            cache_hit=hit,
            entry=entry if hit else None
        )

    def set(self, key: str, value: V, tags: Optional[Iterable[str]] = None) -> CacheOperationResult[V]:
        """Store `value`, replacing any entry under `key`"""
        start_time = time.perf_counter()
        now = self._clock()

        try:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                self._flush_for_capacity()

            entry = CacheEntry(value=value, last_updated=now, computed_at=now, tags=set(tags or ()))
            self._entries[key] = entry
        except Exception as e:
            logger.error(f"Failed to store cache entry {key}: {e}")
            self._record_operation(start_time)
            return CacheOperationResult(success=False, cache_key=key, timestamp=now, error=e)

        self._record_operation(start_time)
        return CacheOperationResult(success=True, cache_key=key, timestamp=now, entry=entry)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def invalidate_tag(self, tag: str) -> int:
        """Remove every entry carrying `tag`"""
        keys = [key for key, entry in self._entries.items() if tag in entry.tags]
        for key in keys:
            del self._entries[key]

        if keys:
            logger.debug(f"Invalidated {len(keys)} cache entries tagged {tag!r}")
        return len(keys)

    def cleanup(self, max_age_ms: Optional[float] = None) -> int:
        """Remove entries older than `max_age_ms` (defaults to the TTL)"""
        max_age = self.ttl_ms if max_age_ms is None else max_age_ms
        now = self._clock()

        expired_keys = [key for key, entry in self._entries.items() if entry.age(now) > max_age]
        for key in expired_keys:
            del self._entries[key]

        self._metrics.last_cleanup = now
        logger.debug(f"Cache cleanup completed: removed {len(expired_keys)} entries")
        return len(expired_keys)

    def clear(self) -> None:
        """Drop every entry and reset the metrics"""
        self._entries.clear()
        now = self._clock()
        self._metrics = CacheMetrics(last_cleanup=now, last_access_timestamp=now)

    def get_metrics(self) -> CacheMetrics:
        """Snapshot copy of the metrics"""
        return replace(self._metrics)

    def keys(self):
        return list(self._entries.keys())

    def _flush_for_capacity(self) -> None:
        evicted = len(self._entries)
        self._entries.clear()
        self._metrics.evictions += evicted
        logger.info(f"Cache reached capacity ({self.max_entries} entries), flushed {evicted} entries")

    def _record_operation(self, start_time: float) -> None:
        sample = (time.perf_counter() - start_time) * 1000
        self._metrics.total_operations += 1
        n = self._metrics.total_operations
        self._metrics.average_access_time = (self._metrics.average_access_time * (n - 1) + sample) / n

    async def _background_cleanup(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval_ms / 1000)
            try:
                removed = self.cleanup(self.ttl_ms)
                if removed:
                    logger.info(f"Cleaned up {removed} expired cache entries")
            except Exception as e:
                logger.error(f"Error in cache cleanup: {e}")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.dispose()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.age(self._clock()) <= self.ttl_ms
