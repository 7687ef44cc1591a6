"""
Bounded, time-limited local cache of recently read file content.

Entries are keyed by (repository, path, ref). Values are deep-copied on the
way in and out so callers can never mutate cached state.
"""

import copy
import math
import threading
from dataclasses import dataclass
from typing import Any, NamedTuple

from pagesync.clock import Clock, SystemClock
from pagesync.logging import get_logger

logger = get_logger("cache")


class CacheKey(NamedTuple):
    """Identity of a cached read."""

    repo: str
    path: str
    ref: str = ""


@dataclass
class CacheEntry:
    """A cached value and the wall time it was stored."""

    key: CacheKey
    value: Any
    stored_at: float


@dataclass
class CacheConfig:
    """Capacity and expiry for LocalCache."""

    max_entries: int = 50
    ttl: float = 300.0  # Seconds
    evict_fraction: float = 0.2  # Share of max_entries dropped when full


class LocalCache:
    """
    Insertion-ordered cache with lazy expiry and batch eviction.

    When inserting a new key would exceed ``max_entries``, the oldest
    ``ceil(evict_fraction * max_entries)`` entries are dropped first.
    Re-putting an existing key moves it to the newest position.
    """

    def __init__(self, config: CacheConfig | None = None, clock: Clock | None = None) -> None:
        self.config = config if config is not None else CacheConfig()
        if self.config.max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.clock = clock if clock is not None else SystemClock()
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: CacheKey, include_expired: bool = False) -> Any | None:
        """
        Look up a fresh entry.

        Args:
            key: Entry to look up
            include_expired: Return an expired entry instead of dropping it
                (used for degraded reads while offline)

        Returns:
            A copy of the cached value, or None on a miss or expired entry
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if not include_expired and self.clock.time() - entry.stored_at > self.config.ttl:
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return copy.deepcopy(entry.value)

    def put(self, key: CacheKey, value: Any) -> None:
        """Store a copy of ``value`` under ``key`` as the newest entry."""
        stored = copy.deepcopy(value)
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.config.max_entries:
                self._evict_oldest()
            self._entries[key] = CacheEntry(key=key, value=stored, stored_at=self.clock.time())

    def invalidate(self, key: CacheKey) -> bool:
        """Remove one entry; return True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_path(self, repo: str, path: str) -> int:
        """Remove every cached ref of ``path``; return the number removed."""
        with self._lock:
            stale = [k for k in self._entries if k.repo == repo and k.path == path]
            for k in stale:
                del self._entries[k]
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[CacheKey]:
        """Keys from oldest to newest, including not-yet-purged expired ones."""
        with self._lock:
            return list(self._entries)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "size": len(self._entries),
                "max_entries": self.config.max_entries,
                "ttl": self.config.ttl,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def _evict_oldest(self) -> None:
        count = max(1, math.ceil(self.config.max_entries * self.config.evict_fraction))
        oldest = list(self._entries)[:count]
        for k in oldest:
            del self._entries[k]
        self._evictions += len(oldest)
        logger.debug(f"evicted {len(oldest)} cache entries")


__all__ = ["CacheConfig", "CacheEntry", "CacheKey", "LocalCache"]
