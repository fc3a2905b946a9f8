"""
Bounded TTL cache for upstream API responses.

Entries expire after an absolute TTL (30 minutes by default) and the cache
never holds more than ``max_size`` entries. Which entry goes when the cache is
full is decided by a pluggable eviction policy; the default evicts in
insertion order and ignores read hits entirely.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Generic, Mapping, Protocol, TypeVar

from .clock import Clock, SystemClock

logger = logging.getLogger("osrs-mcp")

RESPONSE_CACHE_TTL = 30 * 60  # 30 minutes
RESPONSE_CACHE_MAX_SIZE = 500

V = TypeVar("V")


def make_cache_key(action: str, params: Mapping[str, Any]) -> str:
    """Build a deterministic key from an action name and its parameters.

    Parameter names are sorted so that the same parameters given in a
    different order map to the same key.

    Example:
        >>> make_cache_key("wiki_search", {"srsearch": "whip", "action": "query"})
        'wiki_search:action=query&srsearch=whip'
    """
    pairs = "&".join(f"{name}={params[name]}" for name in sorted(params))
    return f"{action}:{pairs}"


@dataclass
class CacheEntry(Generic[V]):
    """Single cached value with its write time."""
    key: str
    value: V
    stored_at: float


class EvictionPolicy(Protocol):
    """Chooses which entry leaves a full cache.

    ``entries`` is ordered by insertion (oldest first). ``record_hit`` lets a
    policy reorder entries on reads.
    """

    name: str

    def record_hit(self, entries: "OrderedDict[str, CacheEntry[Any]]", key: str) -> None:
        ...

    def choose_victim(self, entries: "OrderedDict[str, CacheEntry[Any]]") -> str | None:
        ...


class FifoEviction:
    """Evict the earliest-inserted entry; reads do not protect an entry."""

    name = "fifo"

    def record_hit(self, entries: "OrderedDict[str, CacheEntry[Any]]", key: str) -> None:
        return None

    def choose_victim(self, entries: "OrderedDict[str, CacheEntry[Any]]") -> str | None:
        return next(iter(entries), None)


class LruEviction(FifoEviction):
    """Evict the least recently read entry."""

    name = "lru"

    def record_hit(self, entries: "OrderedDict[str, CacheEntry[Any]]", key: str) -> None:
        entries.move_to_end(key)


@dataclass
class ResponseCacheStats:
    """Statistics for the response cache."""
    size: int
    max_size: int
    ttl: float
    policy: str
    hit_count: int
    miss_count: int
    expired_count: int
    eviction_count: int

    @property
    def hit_rate(self) -> float:
        total = self.hit_count + self.miss_count
        return self.hit_count / total if total > 0 else 0.0


class BoundedResponseCache(Generic[V]):
    """Key -> value cache with absolute TTL and a hard entry limit.

    Features:
    - Expired entries read as absent and are purged lazily on access
    - At capacity, exactly one entry is evicted before each new insert
    - Re-putting a key deletes and re-inserts it, giving it a fresh position

    Usage:
        cache = BoundedResponseCache(max_size=500)
        key = make_cache_key("wiki_search", params)
        data = cache.get(key)
        if data is None:
            data = await fetch()
            cache.put(key, data)
    """

    def __init__(
        self,
        max_size: int = RESPONSE_CACHE_MAX_SIZE,
        ttl: float = RESPONSE_CACHE_TTL,
        clock: Clock | None = None,
        policy: EvictionPolicy | None = None,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl = ttl
        self.clock = clock or SystemClock()
        self.policy = policy or FifoEviction()
        self._entries: OrderedDict[str, CacheEntry[V]] = OrderedDict()
        self._hit_count = 0
        self._miss_count = 0
        self._expired_count = 0
        self._eviction_count = 0

    def get(self, key: str) -> V | None:
        """Return the cached value, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            self._miss_count += 1
            return None

        if self._is_expired(entry):
            del self._entries[key]
            self._expired_count += 1
            self._miss_count += 1
            logger.debug(f"Response cache: entry '{key}' expired")
            return None

        self._hit_count += 1
        self.policy.record_hit(self._entries, key)
        return entry.value

    def put(self, key: str, value: V) -> None:
        """Store ``value`` under ``key``, evicting one entry first if full."""
        self._entries.pop(key, None)

        if len(self._entries) >= self.max_size:
            victim = self.policy.choose_victim(self._entries)
            if victim is not None:
                del self._entries[victim]
                self._eviction_count += 1
                logger.debug(f"Response cache: evicted '{victim}'")

        self._entries[key] = CacheEntry(key=key, value=value, stored_at=self.clock.now())

    def invalidate(self, key: str) -> bool:
        """Remove a single entry by exact key."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def cleanup_expired(self) -> int:
        """Remove every expired entry and return how many were dropped."""
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry)]
        for key in expired:
            del self._entries[key]
            self._expired_count += 1
        return len(expired)

    def keys(self) -> list[str]:
        """Keys currently held, in eviction-policy order (next victim first)."""
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> ResponseCacheStats:
        return ResponseCacheStats(
            size=len(self._entries),
            max_size=self.max_size,
            ttl=self.ttl,
            policy=self.policy.name,
            hit_count=self._hit_count,
            miss_count=self._miss_count,
            expired_count=self._expired_count,
            eviction_count=self._eviction_count,
        )

    def _is_expired(self, entry: CacheEntry[V]) -> bool:
        return (self.clock.now() - entry.stored_at) > self.ttl


__all__ = [
    "RESPONSE_CACHE_TTL",
    "RESPONSE_CACHE_MAX_SIZE",
    "make_cache_key",
    "CacheEntry",
    "EvictionPolicy",
    "FifoEviction",
    "LruEviction",
    "ResponseCacheStats",
    "BoundedResponseCache",
]
