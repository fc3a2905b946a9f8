"""
CacheManager - owns every in-memory cache the server uses.

One instance is built at startup and handed to the tool layer; nothing in the
package keeps cache state at module level.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from .clock import Clock, SystemClock
from .dedup import RequestDeduplicator
from .line_store import FILE_CACHE_TTL, IdIndex, LineFileStore
from .response_cache import (
    RESPONSE_CACHE_MAX_SIZE,
    RESPONSE_CACHE_TTL,
    BoundedResponseCache,
    EvictionPolicy,
    make_cache_key,
)


class CacheManager:
    """Bundle of the line store, ID index, response cache and deduplicator.

    Args:
        clock: Time source shared by all caches.
        file_ttl: TTL for data-file snapshots, in seconds.
        response_ttl: TTL for cached upstream responses, in seconds.
        response_max_size: Entry limit for the response cache.
        eviction_policy: Eviction strategy for the response cache.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        file_ttl: float = FILE_CACHE_TTL,
        response_ttl: float = RESPONSE_CACHE_TTL,
        response_max_size: int = RESPONSE_CACHE_MAX_SIZE,
        eviction_policy: EvictionPolicy | None = None,
    ) -> None:
        self.clock = clock or SystemClock()
        self.lines = LineFileStore(clock=self.clock, ttl=file_ttl)
        self.ids = IdIndex(self.lines)
        self.responses: BoundedResponseCache[Any] = BoundedResponseCache(
            max_size=response_max_size,
            ttl=response_ttl,
            clock=self.clock,
            policy=eviction_policy,
        )
        self.dedup = RequestDeduplicator()

    async def cached_fetch(
        self,
        action: str,
        params: dict[str, Any],
        produce: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Serve ``action(params)`` from the response cache, else fetch it once.

        Concurrent misses for the same key share one ``produce`` call. Only
        successful results are stored.
        """
        key = make_cache_key(action, params)
        cached = self.responses.get(key)
        if cached is not None:
            return cached

        async def fetch_and_store() -> Any:
            value = await produce()
            self.responses.put(key, value)
            return value

        return await self.dedup.dedupe(key, fetch_and_store)

    def stats(self) -> dict[str, Any]:
        """Snapshot of cache counters for the stats tool."""
        line_stats = self.lines.get_stats(id_indexes=self.ids.size)
        response_stats = self.responses.get_stats()
        return {
            "line_store": {
                "entries": line_stats.entries,
                "hits": line_stats.hit_count,
                "misses": line_stats.miss_count,
                "invalidations": line_stats.invalidated_count,
                "hit_rate": round(line_stats.hit_rate, 3),
                "id_indexes": line_stats.id_indexes,
                "id_index_builds": self.ids.build_count,
            },
            "response_cache": {
                "size": response_stats.size,
                "max_size": response_stats.max_size,
                "ttl_seconds": response_stats.ttl,
                "policy": response_stats.policy,
                "hits": response_stats.hit_count,
                "misses": response_stats.miss_count,
                "expired": response_stats.expired_count,
                "evictions": response_stats.eviction_count,
                "hit_rate": round(response_stats.hit_rate, 3),
            },
            "dedup": {
                "in_flight": self.dedup.in_flight,
                "started": self.dedup.started_count,
                "coalesced": self.dedup.coalesced_count,
            },
        }


__all__ = ["CacheManager"]
