"""
Tests for the tool layer and its error mapping.

Tests cover:
- Page parsing with section filtering and truncation
- Monster drops and item source lookups (by ID, by name, with price)
- Prices, hiscores, refresh and cache statistics
- NotFound/InvalidInput/unexpected error mapping onto the transport
"""

from __future__ import annotations

import json
import logging
from types import SimpleNamespace

import httpx
import pytest
from fastmcp.exceptions import ToolError

from osrs_mcp import main, tools
from osrs_mcp.config import ServerSettings
from osrs_mcp.errors import InvalidInputError, NotFoundError, UpstreamError

pytestmark = pytest.mark.anyio

WIKI_API = "https://wiki.test/api.php"
PRICES = "https://prices.test/api/v1/osrs"
MONSTERS = "https://data.test/monsters-complete.json"

LONG_PAGE = (
    '<div class="mw-parser-output"><p>Intro.</p>'
    "<h2>Strategy</h2><p>" + "Pray melee. " * 40 + "</p>"
    "<h2>Drops</h2><p>Whip.</p></div>"
)

DATASET = {
    "415": {
        "id": 415,
        "name": "Abyssal demon",
        "combat_level": 124,
        "hitpoints": 150,
        "drops": [
            {"id": 592, "name": "Ashes", "quantity": "1", "rarity": 1.0},
            {"id": 4151, "name": "Abyssal whip", "quantity": "1", "rarity": 1 / 512},
        ],
    },
    "2215": {
        "id": 2215,
        "name": "General Graardor",
        "combat_level": 624,
        "drops": [
            {"id": 11832, "name": "Bandos chestplate", "quantity": "1", "rarity": 1 / 381},
            {"id": 4151, "name": "Abyssal whip", "quantity": "1", "rarity": 1 / 5000},
        ],
    },
    "3": {"id": 3, "name": "Abyssal walker", "drops": []},
}


@pytest.fixture
def state():
    return {"prices_down": False, "monsters_down": False}


@pytest.fixture
def ctx(tmp_path, clock, state):
    def handler(request):
        url = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        if url == WIKI_API:
            return httpx.Response(200, json={"parse": {"title": "Abyssal demon", "text": LONG_PAGE, "sections": []}})
        if url == f"{PRICES}/mapping":
            if state["prices_down"]:
                return httpx.Response(503)
            return httpx.Response(200, json=[{"id": 4151, "name": "Abyssal whip", "limit": 70, "members": True}])
        if url == f"{PRICES}/latest":
            if state["prices_down"]:
                return httpx.Response(503)
            return httpx.Response(200, json={"data": {"4151": {"high": 1500000, "low": 1450000}}})
        if url == MONSTERS:
            if state["monsters_down"]:
                return httpx.Response(500)
            return httpx.Response(200, json=DATASET)
        return httpx.Response(404)

    settings = ServerSettings(
        data_dir=tmp_path,
        wiki_api_url=WIKI_API,
        prices_api_url=PRICES,
        monsters_url=MONSTERS,
    )
    context = tools.build_context(settings, clock=clock, transport=httpx.MockTransport(handler), retry_backoff=0)
    context.monsters.min_records = 3
    return context


class TestWikiParsePage:

    async def test_full_page(self, ctx):
        result = await tools.wiki_parse_page(ctx, "Abyssal demon")
        assert "## Drops" in result["content"]
        assert "truncated" not in result

    async def test_sections_then_truncation(self, ctx):
        result = await tools.wiki_parse_page(ctx, "Abyssal demon", sections=["strategy"], max_length=100)

        assert result["matchedSections"] == ["Strategy"]
        assert result["truncated"] is True
        assert result["originalLength"] > 100
        assert "Whip." not in result["content"]

    async def test_cached_page_is_not_modified(self, ctx):
        await tools.wiki_parse_page(ctx, "Abyssal demon", max_length=100)
        full = await tools.wiki_parse_page(ctx, "Abyssal demon")
        assert "Whip." in full["content"]


class TestMonsterTools:

    async def test_monster_drops_sorted_and_rendered(self, ctx):
        result = await tools.get_monster_drops(ctx, "abyssal demon")

        monster = result["monsters"][0]
        assert result["count"] == 1
        assert [d["rarityText"] for d in monster["drops"]] == ["Always", "1/512"]

    async def test_monster_drops_substring_and_filters(self, ctx):
        result = await tools.get_monster_drops(ctx, "abyssal", min_rarity=0.5)
        assert [m["name"] for m in result["monsters"]] == ["Abyssal demon", "Abyssal walker"]
        assert [d["name"] for d in result["monsters"][0]["drops"]] == ["Ashes"]

    async def test_unknown_monster(self, ctx):
        with pytest.raises(NotFoundError):
            await tools.get_monster_drops(ctx, "zulrah")

    async def test_blank_monster_name_rejected(self, ctx):
        with pytest.raises(InvalidInputError):
            await tools.get_monster_drops(ctx, "   ")

    async def test_item_sources_by_id(self, ctx):
        result = await tools.find_item_sources(ctx, item_id=4151)

        assert result["itemName"] == "Abyssal whip"
        assert [s["monsterName"] for s in result["sources"]] == ["Abyssal demon", "General Graardor"]
        assert result["sources"][1]["rarityText"] == "1/5,000"
        assert "candidates" not in result

    async def test_item_sources_by_partial_name_reports_candidates(self, ctx):
        result = await tools.find_item_sources(ctx, item_name="a", limit=1)
        assert result["itemId"] == 592
        assert len(result["candidates"]) == 3
        assert len(result["sources"]) == 1

    async def test_item_sources_requires_id_or_name(self, ctx):
        with pytest.raises(InvalidInputError):
            await tools.find_item_sources(ctx)

    async def test_item_sources_with_price(self, ctx):
        result = await tools.find_item_sources(ctx, item_id=4151, include_price=True)
        assert result["price"]["high"] == 1500000

    async def test_price_failure_degrades(self, ctx, state):
        state["prices_down"] = True
        result = await tools.find_item_sources(ctx, item_id=4151, include_price=True)
        assert "priceError" in result
        assert len(result["sources"]) == 2

    async def test_dataset_unavailable(self, ctx, state):
        state["monsters_down"] = True
        with pytest.raises(NotFoundError, match="Monster dataset not available"):
            await tools.find_item_sources(ctx, item_id=4151)

    async def test_refresh_failure_is_upstream_error(self, ctx, state):
        state["monsters_down"] = True
        with pytest.raises(UpstreamError):
            await tools.refresh_monster_dataset(ctx)


class TestPriceAndStats:

    async def test_item_price(self, ctx):
        result = await tools.get_item_price(ctx, item_name="Abyssal whip")
        assert result["id"] == 4151
        assert result["high"] == 1500000
        assert result["limit"] == 70

    async def test_item_price_primary_failure_propagates(self, ctx, state):
        state["prices_down"] = True
        with pytest.raises(UpstreamError):
            await tools.get_item_price(ctx, item_id=4151)

    async def test_cache_stats(self, ctx):
        await tools.get_monster_drops(ctx, "abyssal demon")
        stats = tools.get_cache_stats(ctx)

        assert stats["monster_dataset"]["monsters"] == 3
        assert stats["dedup"]["started"] >= 1
        assert stats["http_requests"] == 1


class TestErrorMapping:

    async def test_success_is_json(self):
        text = await main.run_tool("t", {}, lambda: {"ok": 1})
        assert json.loads(text) == {"ok": 1}

    async def test_not_found_is_inline_payload(self):
        def fail():
            raise NotFoundError("NPC with ID 5 not found")

        text = await main.run_tool("get_npctypes_by_id", {"id": 5}, fail)
        assert json.loads(text) == {"error": "NPC with ID 5 not found"}

    async def test_invalid_input_is_tool_error(self):
        def fail():
            raise InvalidInputError("Invalid filename")

        with pytest.raises(ToolError, match="Invalid filename"):
            await main.run_tool("search_data_file", {}, fail)

    async def test_unexpected_error_is_wrapped(self):
        async def fail():
            raise UpstreamError("HTTP 500", status_code=500, url="https://x.test")

        with pytest.raises(ToolError, match="Error executing tool osrs_wiki_search: HTTP 500"):
            await main.run_tool("osrs_wiki_search", {"search": "whip"}, fail)

    async def test_registered_tool_reports_missing_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr(main.ctx.queries, "data_dir", tmp_path)
        text = await main.get_file_details.fn(filename="missing.txt")
        assert json.loads(text) == {"exists": False}

        text = await main.search_data_file.fn(filename="missing.txt", query="x")
        assert "missing.txt not found" in json.loads(text)["error"]


class FailingMonsters:
    last_error = "HTTP 500"

    async def get_cache(self, force_refresh: bool = False):
        return None


class FailingSounds:

    async def refresh(self):
        raise UpstreamError("HTTP 503", status_code=503)


class TestStartupRefresh:

    async def test_failures_are_logged_not_raised(self, monkeypatch, caplog):
        monkeypatch.setattr(
            main, "settings", SimpleNamespace(refresh_monsters_on_start=True, refresh_sounds_on_start=True)
        )
        monkeypatch.setattr(main, "ctx", SimpleNamespace(monsters=FailingMonsters(), sounds=FailingSounds()))

        with caplog.at_level(logging.WARNING, logger="osrs-mcp"):
            await main.startup_refresh()

        messages = [r.getMessage() for r in caplog.records]
        assert "Startup monster refresh failed: HTTP 500" in messages
        assert "Startup sound ID refresh failed: HTTP 503" in messages

    async def test_disabled_toggles_do_nothing(self, monkeypatch):
        monkeypatch.setattr(
            main, "settings", SimpleNamespace(refresh_monsters_on_start=False, refresh_sounds_on_start=False)
        )
        monkeypatch.setattr(main, "ctx", SimpleNamespace())

        await main.startup_refresh()
