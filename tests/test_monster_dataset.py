"""
Tests for the monster dataset cache and its derived indexes.

Tests cover:
- Single-pass index building (ids, names, item -> sources)
- Rejection of implausibly small datasets
- Memory -> disk -> remote resolution with TTL
- Snapshot left untouched when a refresh is rejected
- Reverse lookups sorted by rarity with filters
"""

from __future__ import annotations

import json
import os

import httpx
import pytest

from osrs_mcp.cache import RequestDeduplicator
from osrs_mcp.dataset import DATASET_TTL, MonsterDatasetCache, build_monster_index
from osrs_mcp.errors import DataIntegrityError
from osrs_mcp.http import OsrsHttpClient

pytestmark = pytest.mark.anyio

URL = "https://example.test/monsters-complete.json"


def _dataset(extra_monsters: int = 0) -> dict:
    monsters = {
        "415": {
            "id": 415,
            "name": "Abyssal demon",
            "combat_level": 124,
            "hitpoints": 150,
            "wiki_url": "https://oldschool.runescape.wiki/w/Abyssal_demon",
            "drops": [
                {"id": 592, "name": "Ashes", "quantity": "1", "noted": False, "rarity": 1.0, "rolls": 1},
                {"id": 4151, "name": "Abyssal whip", "quantity": "1", "noted": False, "rarity": 1 / 512, "rolls": 1},
                {"id": 995, "name": "Coins", "quantity": "132", "noted": False, "rarity": 1 / 8, "rolls": 1},
            ],
        },
        "7241": {
            "id": 7241,
            "name": "Abyssal demon",
            "combat_level": 124,
            "hitpoints": 150,
            "drops": [
                {"id": 4151, "name": "Abyssal whip", "quantity": "1", "noted": False, "rarity": 1 / 1200, "rolls": 1},
            ],
        },
        "2215": {
            "id": 2215,
            "name": "General Graardor",
            "combat_level": 624,
            "drops": [
                {"id": 995, "name": "Coins", "quantity": "19,362-21,000", "noted": False, "rarity": 1 / 5, "rolls": 1},
                {"id": 11832, "name": "Bandos chestplate", "quantity": 1, "noted": None, "rarity": 1 / 381, "rolls": None},
            ],
        },
        "bad": {"name": "Broken record without id"},
    }
    for n in range(extra_monsters):
        monsters[str(100_000 + n)] = {"id": 100_000 + n, "name": f"Filler {n}", "drops": []}
    return monsters


def _client(handler) -> OsrsHttpClient:
    return OsrsHttpClient(user_agent="test", retry_backoff=0, transport=httpx.MockTransport(handler))


class TestBuildIndex:

    def test_indexes_built_together(self):
        index = build_monster_index(_dataset(), loaded_at=0, min_records=3)

        assert set(index.monsters) == {415, 7241, 2215}
        assert index.name_index["abyssal demon"] == [415, 7241]
        assert [s.monster_id for s in index.item_sources[4151]] == [415, 7241]
        assert index.skipped_records == 1
        assert index.drop_count == 6

    def test_drop_fields_normalized(self):
        index = build_monster_index(_dataset(), loaded_at=0, min_records=3)
        chestplate = index.item_sources[11832][0]
        assert chestplate.quantity == "1"
        assert chestplate.noted is False
        assert chestplate.rolls == 1

    def test_too_few_records_rejected(self):
        with pytest.raises(DataIntegrityError):
            build_monster_index(_dataset(), loaded_at=0)

    def test_list_shaped_dataset(self):
        index = build_monster_index(list(_dataset().values()), loaded_at=0, min_records=3)
        assert len(index.monsters) == 3


class TestLookups:

    @pytest.fixture
    def index(self):
        return build_monster_index(_dataset(), loaded_at=0, min_records=3)

    def test_find_monsters_exact_then_substring(self, index):
        assert [m.id for m in index.find_monsters("ABYSSAL DEMON")] == [415, 7241]
        assert [m.id for m in index.find_monsters("graar")] == [2215]
        assert index.find_monsters("zulrah") == []

    def test_blank_name_matches_nothing(self, index):
        assert index.find_monsters("") == []
        assert index.find_monsters("   ") == []

    def test_sources_sorted_by_descending_rarity(self, index):
        sources = index.sources_for_item(995)
        assert [s.monster_name for s in sources] == ["General Graardor", "Abyssal demon"]

    def test_min_rarity_and_limit(self, index):
        assert [s.monster_id for s in index.sources_for_item(4151, min_rarity=1 / 600)] == [415]
        assert len(index.sources_for_item(4151, limit=1)) == 1

    def test_match_items_exact_before_partial(self, index):
        assert index.match_items("coins") == [(995, "Coins")]
        assert index.match_items("abyssal") == [(4151, "Abyssal whip")]
        assert index.match_items("a") != []
        assert index.item_name(123456) is None


class TestDatasetCache:

    async def test_remote_fetch_persists_snapshot(self, tmp_path, clock):
        snapshot = tmp_path / "monsters-complete.json"
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(200, json=_dataset())

        cache = MonsterDatasetCache(snapshot, URL, _client(handler), clock=clock, min_records=3)
        index = await cache.get_cache()

        assert index is not None
        assert index.origin == "remote"
        assert snapshot.exists()
        assert await cache.get_cache() is index
        assert len(calls) == 1

    async def test_fresh_disk_snapshot_used_before_remote(self, tmp_path, clock):
        snapshot = tmp_path / "monsters-complete.json"
        snapshot.write_text(json.dumps(_dataset()), encoding="utf-8")
        os.utime(snapshot, (clock.now() - 60, clock.now() - 60))

        def handler(request):
            raise AssertionError("remote should not be contacted")

        cache = MonsterDatasetCache(snapshot, URL, _client(handler), clock=clock, min_records=3)
        index = await cache.get_cache()

        assert index.origin == "disk"

    async def test_stale_disk_snapshot_refetched(self, tmp_path, clock):
        snapshot = tmp_path / "monsters-complete.json"
        snapshot.write_text(json.dumps(_dataset()), encoding="utf-8")
        old = clock.now() - DATASET_TTL - 10
        os.utime(snapshot, (old, old))

        cache = MonsterDatasetCache(
            snapshot, URL, _client(lambda r: httpx.Response(200, json=_dataset())), clock=clock, min_records=3
        )
        index = await cache.get_cache()

        assert index.origin == "remote"

    async def test_memory_expires_after_ttl(self, tmp_path, clock):
        calls = 0

        def handler(request):
            nonlocal calls
            calls += 1
            return httpx.Response(200, json=_dataset())

        cache = MonsterDatasetCache(
            tmp_path / "m.json", URL, _client(handler), clock=clock, min_records=3
        )
        await cache.get_cache()
        clock.advance(DATASET_TTL + 1)
        stale = clock.now() - DATASET_TTL - 1
        os.utime(tmp_path / "m.json", (stale, stale))
        await cache.get_cache()

        assert calls == 2

    async def test_rejected_refresh_keeps_existing_snapshot(self, tmp_path, clock):
        snapshot = tmp_path / "monsters-complete.json"
        good = json.dumps(_dataset())
        snapshot.write_text(good, encoding="utf-8")

        def handler(request):
            return httpx.Response(200, json={"1": {"id": 1, "name": "Only one", "drops": []}})

        cache = MonsterDatasetCache(snapshot, URL, _client(handler), clock=clock, min_records=3)
        result = await cache.get_cache(force_refresh=True)

        assert result is None
        assert "minimum" in cache.last_error
        assert snapshot.read_text(encoding="utf-8") == good

    async def test_network_failure_returns_none(self, tmp_path, clock):
        cache = MonsterDatasetCache(
            tmp_path / "m.json", URL, _client(lambda r: httpx.Response(404)), clock=clock, min_records=3
        )
        assert await cache.get_cache() is None
        assert cache.stats()["loaded"] is False

    async def test_invalid_json_rejected(self, tmp_path, clock):
        cache = MonsterDatasetCache(
            tmp_path / "m.json", URL, _client(lambda r: httpx.Response(200, text="{not json")),
            clock=clock, min_records=3,
        )
        assert await cache.get_cache() is None
        assert not (tmp_path / "m.json").exists()

    async def test_refresh_shares_deduplicator(self, tmp_path, clock):
        dedup = RequestDeduplicator()
        cache = MonsterDatasetCache(
            tmp_path / "m.json", URL, _client(lambda r: httpx.Response(200, json=_dataset())),
            clock=clock, min_records=3, dedup=dedup,
        )
        await cache.get_cache()
        assert dedup.started_count == 1
        stats = cache.stats()
        assert stats["monsters"] == 3
        assert stats["origin"] == "remote"
