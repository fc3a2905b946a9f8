"""
OSRS wiki, prices and hiscores access.

Every call goes through the ``CacheManager``: responses are cached in the
bounded response cache and concurrent identical requests share one upstream
fetch. Only successful results are cached.
"""

from __future__ import annotations

import logging
from typing import Any

from ..cache import CacheManager
from ..config import ServerSettings
from ..errors import NotFoundError, UpstreamError
from ..extractors import (
    clean_and_convert_html,
    extract_drop_tables,
    extract_image_urls,
    extract_infobox,
    parse_html,
)
from ..http import OsrsHttpClient
from .models import (
    HiscoreResponse,
    ItemMapping,
    LatestPrice,
    LatestPriceResponse,
    WikiErrorResponse,
    WikiPageInfoResponse,
    WikiParseResponse,
    WikiSearchResponse,
    parse_wiki_response,
)

logger = logging.getLogger("osrs-mcp")

MISSING_PAGE_CODES = {"missingtitle", "invalidtitle", "nosuchpageid"}


class OsrsWikiService:
    """Cached access to the OSRS wiki API, the prices API and the hiscores.

    Args:
        settings: Endpoint configuration.
        http: HTTP collaborator.
        caches: Cache manager holding the response cache and deduplicator.
    """

    def __init__(self, settings: ServerSettings, http: OsrsHttpClient, caches: CacheManager) -> None:
        self.settings = settings
        self.http = http
        self.caches = caches

    async def _wiki_get(self, params: dict[str, Any]) -> Any:
        return await self.http.get_json(self.settings.wiki_api_url, params={**params, "format": "json"})

    @staticmethod
    def _raise_for_wiki_error(response: WikiErrorResponse, subject: str) -> None:
        code = response.error.code
        info = response.error.info
        if code in MISSING_PAGE_CODES:
            raise NotFoundError(f"{subject} not found: {info or code}")
        raise UpstreamError(f"Wiki API error '{code}': {info}")

    # =========================================================================
    # Wiki
    # =========================================================================

    async def search(self, search: str, limit: int = 10, offset: int = 0) -> dict[str, Any]:
        """Full-text search of wiki pages."""
        params = {
            "action": "query",
            "list": "search",
            "srsearch": search,
            "srlimit": limit,
            "sroffset": offset,
            "srprop": "snippet|titlesnippet|sectiontitle",
        }

        async def produce() -> dict[str, Any]:
            data = await self._wiki_get(params)
            response = parse_wiki_response(data, WikiSearchResponse, url=self.settings.wiki_api_url)
            if isinstance(response, WikiErrorResponse):
                self._raise_for_wiki_error(response, f"Search '{search}'")
            return response.model_dump(by_alias=True, exclude_none=True)

        return await self.caches.cached_fetch("wiki_search", params, produce)

    async def page_info(self, titles: str) -> dict[str, Any]:
        """Page metadata for a comma-separated list of titles."""
        params = {"action": "query", "prop": "info", "titles": titles.replace(",", "|")}

        async def produce() -> dict[str, Any]:
            data = await self._wiki_get(params)
            response = parse_wiki_response(data, WikiPageInfoResponse, url=self.settings.wiki_api_url)
            if isinstance(response, WikiErrorResponse):
                self._raise_for_wiki_error(response, f"Pages '{titles}'")
            return response.model_dump(exclude_none=True)

        return await self.caches.cached_fetch("wiki_page_info", params, produce)

    async def fetch_page_html(self, page: str) -> tuple[str, list[dict[str, Any]]]:
        """Raw parsed HTML and section list of a page (not cached).

        Raises:
            NotFoundError: If the page does not exist or has no content.
        """
        params = {"action": "parse", "page": page, "prop": "text|sections", "formatversion": 2}
        data = await self._wiki_get(params)
        response = parse_wiki_response(data, WikiParseResponse, url=self.settings.wiki_api_url)
        if isinstance(response, WikiErrorResponse):
            self._raise_for_wiki_error(response, f"Page '{page}'")

        parsed = response.parse
        if not parsed.text:
            raise NotFoundError("Page content not found.")
        sections = [
            {"level": s.level, "title": s.line, "anchor": s.anchor}
            for s in parsed.sections
        ]
        logger.debug(f"Fetched page '{page}': {len(parsed.text)} chars, {len(sections)} sections")
        return parsed.text, sections

    async def parse_page(self, page: str) -> dict[str, Any]:
        """Structured view of a page: infobox, images, drop tables, sections, Markdown."""
        params = {"action": "parse", "page": page, "prop": "text|sections", "formatversion": 2}

        async def produce() -> dict[str, Any]:
            html, sections = await self.fetch_page_html(page)
            drop_tables = extract_drop_tables(parse_html(html))
            infobox = extract_infobox(parse_html(html))
            images = extract_image_urls(parse_html(html), self.settings.wiki_base_url)
            content = clean_and_convert_html(parse_html(html))
            return {
                "page": page,
                "infobox": infobox,
                "images": images,
                "dropTable": [s.to_dict() for s in drop_tables] or None,
                "sections": sections,
                "content": content,
            }

        return await self.caches.cached_fetch("wiki_parse_page", params, produce)

    # =========================================================================
    # Prices
    # =========================================================================

    async def item_mapping(self) -> list[ItemMapping]:
        """All tradeable items known to the prices API."""
        url = f"{self.settings.prices_api_url}/mapping"

        async def produce() -> list[ItemMapping]:
            data = await self.http.get_json(url)
            if not isinstance(data, list):
                raise UpstreamError("Unexpected item mapping payload", url=url)
            return [ItemMapping.model_validate(entry) for entry in data]

        return await self.caches.cached_fetch("prices_mapping", {}, produce)

    async def find_item(self, item_id: int | None = None, item_name: str | None = None) -> ItemMapping:
        """Resolve an item by ID or exact (case-insensitive) name.

        Raises:
            NotFoundError: If no such tradeable item exists.
        """
        mapping = await self.item_mapping()
        if item_id is not None:
            for item in mapping:
                if item.id == item_id:
                    return item
            raise NotFoundError(f"Item with ID {item_id} not found in price data")

        wanted = (item_name or "").strip().lower()
        for item in mapping:
            if item.name.lower() == wanted:
                return item
        raise NotFoundError(f"Item '{item_name}' not found in price data")

    async def latest_price(self, item_id: int) -> LatestPrice | None:
        """Latest instant-buy/sell prices for one item, or None if never traded."""
        url = f"{self.settings.prices_api_url}/latest"
        params = {"id": item_id}

        async def produce() -> LatestPrice | None:
            data = await self.http.get_json(url, params=params)
            response = LatestPriceResponse.model_validate(data)
            return response.data.get(str(item_id))

        return await self.caches.cached_fetch("prices_latest", params, produce)

    # =========================================================================
    # Hiscores
    # =========================================================================

    async def hiscores(self, player: str) -> HiscoreResponse:
        """Hiscore entry of a player.

        Raises:
            NotFoundError: If the player is not on the hiscores.
        """
        params = {"player": player}

        async def produce() -> HiscoreResponse:
            try:
                data = await self.http.get_json(self.settings.hiscores_url, params=params)
            except UpstreamError as e:
                if e.status_code == 404:
                    raise NotFoundError(f"Player '{player}' not found on the hiscores") from e
                raise
            return HiscoreResponse.model_validate(data)

        return await self.caches.cached_fetch("hiscores", params, produce)


__all__ = ["OsrsWikiService", "MISSING_PAGE_CODES"]
