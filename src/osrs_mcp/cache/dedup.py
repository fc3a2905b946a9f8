"""
In-flight request coalescing.

Concurrent identical fetches share one upstream call: the first caller starts
the work, later callers with the same key await the same future. Nothing is
kept once the call settles; caching results is the response cache's job.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger("osrs-mcp")

T = TypeVar("T")


class RequestDeduplicator:
    """Collapse concurrent calls with the same key into one ``produce`` call.

    Usage:
        dedup = RequestDeduplicator()
        data = await dedup.dedupe(cache_key, lambda: client.get_json(url, params))
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Future[Any]] = {}
        self.started_count = 0
        self.coalesced_count = 0

    async def dedupe(self, key: str, produce: Callable[[], Awaitable[T]]) -> T:
        """Run ``produce`` unless a call for ``key`` is already outstanding.

        The key is released when the call settles, successfully or not, so the
        next call after completion always starts a fresh ``produce``.

        Raises:
            Exception: Whatever ``produce`` raised, delivered to every waiter.
        """
        pending = self._in_flight.get(key)
        if pending is not None:
            self.coalesced_count += 1
            logger.debug(f"Dedup: joining in-flight request '{key}'")
            return await asyncio.shield(pending)

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        self.started_count += 1
        try:
            result = await produce()
        except Exception as exc:
            future.set_exception(exc)
            # Re-raised below; keeps asyncio from reporting it as unretrieved.
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._in_flight.pop(key, None)
            if not future.done():
                future.cancel()

    def is_pending(self, key: str) -> bool:
        return key in self._in_flight

    @property
    def in_flight(self) -> int:
        """Number of keys with an outstanding call."""
        return len(self._in_flight)


__all__ = ["RequestDeduplicator"]
