"""
LRU result cache with TTL expiry.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from togglr.models import EvaluationResult

logger = logging.getLogger("togglr.cache")


@dataclass
class CacheConfig:
    """Configuration for cache behavior."""

    enabled: bool = True
    """Cache evaluation results in memory."""

    max_size: int = 1000
    """Maximum number of entries before LRU eviction."""

    ttl_seconds: float = 60
    """Age after which an entry is treated as absent."""


@dataclass
class CacheStats:
    """Cache statistics, accumulated since the cache was created."""

    size: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0


@dataclass(frozen=True)
class CacheEntry:
    """Cached evaluation result with its insertion time."""

    value: str
    enabled: bool
    found: bool
    inserted_at: float


DEFAULT_CACHE_CONFIG = CacheConfig()


class ResultCache:
    """
    Bounded cache of evaluation results keyed by cache key.

    Features:
    - Least-recently-used eviction once ``max_size`` is reached
    - Entries older than ``ttl_seconds`` are never returned
    - All operations are serialized by one internal lock
    - Event callbacks for cache activity

    Hit and miss counters are kept across ``clear()``.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_CACHE_CONFIG.max_size,
        ttl_seconds: float = DEFAULT_CACHE_CONFIG.ttl_seconds,
        clock: Callable[[], float] = time.time,
    ):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")

        self._max_size = max_size
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._stats = CacheStats()
        self._callbacks: Dict[str, List[Callable]] = {
            "cache_hit": [],
            "cache_miss": [],
            "cache_set": [],
            "cache_evicted": [],
            "cache_expired": [],
        }

    @classmethod
    def from_config(cls, config: CacheConfig) -> "ResultCache":
        return cls(max_size=config.max_size, ttl_seconds=config.ttl_seconds)

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def on(self, event: str, callback: Callable) -> None:
        """Register an event callback."""
        if event in self._callbacks:
            self._callbacks[event].append(callback)

    def off(self, event: str, callback: Callable) -> None:
        """Remove an event callback."""
        if event in self._callbacks and callback in self._callbacks[event]:
            self._callbacks[event].remove(callback)

    def _emit(self, event: str, *args) -> None:
        for callback in list(self._callbacks.get(event, [])):
            try:
                callback(*args)
            except Exception as e:
                logger.warning(f"Error in cache callback for {event}: {e}")

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.inserted_at >= self._ttl

    def get(self, key: str) -> Optional[CacheEntry]:
        """
        Look up a cached result.

        Args:
            key: Cache key

        Returns:
            The entry, or None if absent or expired
        """
        events = []
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)

            if entry is not None and self._is_expired(entry, now):
                del self._entries[key]
                self._stats.expirations += 1
                events.append(("cache_expired", key))
                entry = None

            if entry is None:
                self._stats.misses += 1
                events.append(("cache_miss", key))
            else:
                self._entries.move_to_end(key)
                self._stats.hits += 1
                events.append(("cache_hit", key))

        for event, event_key in events:
            self._emit(event, event_key)
        return entry

    def put(self, key: str, result: EvaluationResult) -> CacheEntry:
        """
        Store a result, evicting the least-recently-used entry when full.

        Args:
            key: Cache key
            result: Evaluation result to store

        Returns:
            The stored entry
        """
        evicted: List[str] = []
        with self._lock:
            entry = CacheEntry(
                value=result.value,
                enabled=result.enabled,
                found=result.found,
                inserted_at=self._clock(),
            )

            if key in self._entries:
                self._entries.move_to_end(key)
            else:
                while len(self._entries) >= self._max_size:
                    old_key, _ = self._entries.popitem(last=False)
                    self._stats.evictions += 1
                    evicted.append(old_key)

            self._entries[key] = entry

        for old_key in evicted:
            self._emit("cache_evicted", old_key)
        self._emit("cache_set", key)
        return entry

    def delete(self, key: str) -> bool:
        """Remove one entry. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Remove all entries. Counters are kept."""
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        """
        Eagerly drop expired entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
            for key in expired:
                del self._entries[key]
            self._stats.expirations += len(expired)

        for key in expired:
            self._emit("cache_expired", key)
        return len(expired)

    def stats(self) -> CacheStats:
        """Get cache statistics."""
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                hits=self._stats.hits,
                misses=self._stats.misses,
                evictions=self._stats.evictions,
                expirations=self._stats.expirations,
            )

    def hit_rate(self) -> float:
        """Get hit rate (hits / (hits + misses))."""
        with self._lock:
            total = self._stats.hits + self._stats.misses
            if total == 0:
                return 0.0
            return self._stats.hits / total

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            entry = self._entries.get(key)  # type: ignore[arg-type]
            return entry is not None and not self._is_expired(entry, self._clock())
