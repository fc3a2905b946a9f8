"""
Tests for BoundedResponseCache and cache key construction.

Tests cover:
- Deterministic keys independent of parameter order
- TTL expiry on read
- FIFO eviction at capacity (hits do not protect an entry)
- LRU policy as a drop-in alternative
- Statistics tracking
"""

from __future__ import annotations

import pytest

from osrs_mcp.cache.response_cache import (
    RESPONSE_CACHE_TTL,
    BoundedResponseCache,
    LruEviction,
    make_cache_key,
)


class TestMakeCacheKey:

    def test_parameter_order_does_not_matter(self):
        first = make_cache_key("wiki_search", {"srsearch": "whip", "srlimit": 10})
        second = make_cache_key("wiki_search", {"srlimit": 10, "srsearch": "whip"})
        assert first == second == "wiki_search:srlimit=10&srsearch=whip"

    def test_action_is_part_of_the_key(self):
        assert make_cache_key("a", {"x": 1}) != make_cache_key("b", {"x": 1})

    def test_empty_params(self):
        assert make_cache_key("prices_mapping", {}) == "prices_mapping:"


class TestExpiry:

    def test_entry_within_ttl_is_returned(self, clock):
        cache = BoundedResponseCache(clock=clock)
        cache.put("k", {"value": 1})
        clock.advance(RESPONSE_CACHE_TTL - 1)
        assert cache.get("k") == {"value": 1}

    def test_expired_entry_reads_as_absent_and_is_purged(self, clock):
        cache = BoundedResponseCache(clock=clock)
        cache.put("k", "v")
        clock.advance(RESPONSE_CACHE_TTL + 1)

        assert cache.get("k") is None
        assert "k" not in cache
        assert cache.get_stats().expired_count == 1

    def test_cleanup_expired(self, clock):
        cache = BoundedResponseCache(clock=clock, ttl=10)
        cache.put("old", 1)
        clock.advance(11)
        cache.put("new", 2)

        assert cache.cleanup_expired() == 1
        assert cache.keys() == ["new"]


class TestFifoEviction:

    def test_one_more_put_evicts_earliest_inserted(self, clock):
        cache = BoundedResponseCache(max_size=3, clock=clock)
        for key in ("a", "b", "c"):
            cache.put(key, key.upper())

        cache.put("d", "D")

        assert len(cache) == 3
        assert "a" not in cache
        assert cache.keys() == ["b", "c", "d"]

    def test_hits_do_not_protect_entry(self, clock):
        cache = BoundedResponseCache(max_size=2, clock=clock)
        cache.put("a", 1)
        cache.put("b", 2)
        for _ in range(5):
            cache.get("a")

        cache.put("c", 3)

        assert "a" not in cache
        assert cache.get_stats().eviction_count == 1

    def test_reput_moves_key_to_the_back(self, clock):
        cache = BoundedResponseCache(max_size=2, clock=clock)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.put("a", 10)

        cache.put("c", 3)

        assert cache.keys() == ["a", "c"]
        assert cache.get("a") == 10

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            BoundedResponseCache(max_size=0)


class TestLruEviction:

    def test_recent_read_survives(self, clock):
        cache = BoundedResponseCache(max_size=2, clock=clock, policy=LruEviction())
        cache.put("a", 1)
        cache.put("b", 2)
        cache.get("a")

        cache.put("c", 3)

        assert "a" in cache
        assert "b" not in cache
        assert cache.get_stats().policy == "lru"


class TestStats:

    def test_hit_and_miss_counters(self, clock):
        cache = BoundedResponseCache(clock=clock)
        cache.put("k", 1)
        cache.get("k")
        cache.get("missing")

        stats = cache.get_stats()
        assert stats.hit_count == 1
        assert stats.miss_count == 1
        assert stats.hit_rate == 0.5
        assert stats.policy == "fifo"
