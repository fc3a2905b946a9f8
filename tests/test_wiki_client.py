"""
Tests for OsrsWikiService against a mocked transport.

Tests cover:
- Search, page info and parse responses validated at the boundary
- Response caching and error envelopes
- Prices mapping/latest and hiscores lookups
"""

from __future__ import annotations

import httpx
import pytest

from osrs_mcp.config import ServerSettings
from osrs_mcp.errors import NotFoundError, UpstreamError
from osrs_mcp.tools import build_context

pytestmark = pytest.mark.anyio

WIKI_API = "https://wiki.test/api.php"
PRICES = "https://prices.test/api/v1/osrs"
HISCORES = "https://hiscores.test/index_lite.json"

PAGE_HTML = """
<div class="mw-parser-output">
<table class="infobox infobox-monster">
  <tr><td><img src="/images/Goblin.png"></td></tr>
  <tr><th>Combat level</th><td>2</td></tr>
</table>
<p>A <b>goblin</b> is a weak monster.</p>
<h2>Drops</h2>
<table class="wikitable">
  <tr><th colspan="2">Item</th><th>Quantity</th><th>Rarity</th></tr>
  <tr><td></td><td><a href="/w/Bones" title="Bones">Bones</a></td><td>1</td><td>Always</td></tr>
</table>
</div>
"""


def _settings(tmp_path) -> ServerSettings:
    return ServerSettings(
        data_dir=tmp_path,
        wiki_api_url=WIKI_API,
        wiki_base_url="https://wiki.test",
        prices_api_url=PRICES,
        hiscores_url=HISCORES,
    )


class Router:
    """Mock transport handler that records every request."""

    def __init__(self):
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        params = request.url.params
        url = f"{request.url.scheme}://{request.url.host}{request.url.path}"

        if url == WIKI_API and params.get("list") == "search":
            if params["srsearch"] == "broken":
                return httpx.Response(200, json={"error": {"code": "internal", "info": "oops"}})
            return httpx.Response(200, json={
                "batchcomplete": "",
                "continue": {"sroffset": 10, "continue": "-||"},
                "query": {
                    "searchinfo": {"totalhits": 1},
                    "search": [{"ns": 0, "title": "Abyssal whip", "pageid": 4151, "snippet": "whip"}],
                },
            })
        if url == WIKI_API and params.get("prop") == "info":
            return httpx.Response(200, json={"query": {"pages": {"1": {"title": params["titles"]}}}})
        if url == WIKI_API and params.get("action") == "parse":
            if params["page"] == "Missing":
                return httpx.Response(200, json={
                    "error": {"code": "missingtitle", "info": "The page you specified doesn't exist."}
                })
            if params["page"] == "Empty":
                return httpx.Response(200, json={"parse": {"title": "Empty", "text": "", "sections": []}})
            return httpx.Response(200, json={"parse": {
                "title": params["page"],
                "pageid": 1,
                "text": PAGE_HTML,
                "sections": [{"toclevel": 1, "level": "2", "line": "Drops", "anchor": "Drops"}],
            }})
        if url == f"{PRICES}/mapping":
            return httpx.Response(200, json=[
                {"id": 4151, "name": "Abyssal whip", "members": True, "limit": 70, "highalch": 72000},
                {"id": 995, "name": "Coins", "members": False},
            ])
        if url == f"{PRICES}/latest":
            item_id = params["id"]
            if item_id == "995":
                return httpx.Response(200, json={"data": {}})
            return httpx.Response(200, json={"data": {item_id: {
                "high": 1500000, "highTime": 1700000000, "low": 1450000, "lowTime": 1700000100,
            }}})
        if url == HISCORES:
            if params["player"] == "nobody":
                return httpx.Response(404)
            return httpx.Response(200, json={
                "skills": [{"id": 0, "name": "Overall", "rank": 1, "level": 2277, "xp": 4600000000}],
                "activities": [{"id": 0, "name": "Clue Scrolls (all)", "rank": -1, "score": -1}],
            })
        return httpx.Response(500)


@pytest.fixture
def router():
    return Router()


@pytest.fixture
def ctx(tmp_path, clock, router):
    return build_context(_settings(tmp_path), clock=clock, transport=httpx.MockTransport(router), retry_backoff=0)


class TestWikiQueries:

    async def test_search_is_validated_and_cached(self, ctx, router):
        first = await ctx.wiki.search("whip")
        second = await ctx.wiki.search("whip")

        assert first["query"]["search"][0]["title"] == "Abyssal whip"
        assert first["continue"]["sroffset"] == 10
        assert second == first
        assert len(router.requests) == 1
        assert router.requests[0].headers["User-Agent"] == ctx.settings.user_agent

    async def test_search_error_envelope_is_upstream_error(self, ctx):
        with pytest.raises(UpstreamError, match="internal"):
            await ctx.wiki.search("broken")
        assert len(ctx.caches.responses) == 0

    async def test_page_info_joins_titles(self, ctx, router):
        await ctx.wiki.page_info("Goblin,Cow")
        assert router.requests[0].url.params["titles"] == "Goblin|Cow"

    async def test_parse_page_structure(self, ctx):
        page = await ctx.wiki.parse_page("Goblin")

        assert page["page"] == "Goblin"
        assert page["infobox"] == {"combat_level": "2"}
        assert page["images"] == ["https://wiki.test/images/Goblin.png"]
        assert page["dropTable"] == [{
            "category": "Drops",
            "drops": [{"item": "Bones", "quantity": "1", "rarity": "Always", "rarityPercent": "100%"}],
        }]
        assert page["sections"] == [{"level": 2, "title": "Drops", "anchor": "Drops"}]
        assert "**goblin**" in page["content"]

    async def test_missing_page_is_not_found(self, ctx):
        with pytest.raises(NotFoundError):
            await ctx.wiki.parse_page("Missing")

    async def test_empty_page_text_is_not_found(self, ctx):
        with pytest.raises(NotFoundError, match="Page content not found."):
            await ctx.wiki.parse_page("Empty")


class TestPricesAndHiscores:

    async def test_find_item_by_name_and_id(self, ctx, router):
        assert (await ctx.wiki.find_item(item_name="abyssal WHIP")).id == 4151
        assert (await ctx.wiki.find_item(item_id=995)).name == "Coins"
        assert len(router.requests) == 1

    async def test_unknown_item(self, ctx):
        with pytest.raises(NotFoundError):
            await ctx.wiki.find_item(item_name="Dragon claws")

    async def test_latest_price(self, ctx):
        price = await ctx.wiki.latest_price(4151)
        assert price.high == 1500000
        assert await ctx.wiki.latest_price(995) is None

    async def test_hiscores(self, ctx):
        result = await ctx.wiki.hiscores("Lynx Titan")
        assert result.skills[0].level == 2277
        assert result.activities[0].score == -1

    async def test_unknown_player_is_not_found(self, ctx):
        with pytest.raises(NotFoundError, match="Player 'nobody' not found on the hiscores"):
            await ctx.wiki.hiscores("nobody")
