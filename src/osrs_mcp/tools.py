"""
Tool handlers for the OSRS MCP server.

Each handler is a plain async function over a ``ToolContext`` and returns a
JSON-serializable result. Failures are raised as ``OsrsMcpError`` subclasses;
mapping them onto the transport happens in ``main``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .cache import CacheManager, Clock
from .config import ServerSettings
from .dataset import MonsterDatasetCache, MonsterIndex
from .errors import InvalidInputError, NotFoundError, UpstreamError
from .extractors import extract_sections, rarity_to_fraction, truncate_content
from .http import OsrsHttpClient
from .queries import DataFileQueries
from .sounds import SoundTableRefresher
from .wiki import OsrsWikiService

logger = logging.getLogger("osrs-mcp")


@dataclass
class ToolContext:
    """Everything a tool call needs, built once at startup."""
    settings: ServerSettings
    caches: CacheManager
    http: OsrsHttpClient
    queries: DataFileQueries
    wiki: OsrsWikiService
    monsters: MonsterDatasetCache
    sounds: SoundTableRefresher


def build_context(
    settings: ServerSettings,
    clock: Clock | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    retry_backoff: float = 2.0,
) -> ToolContext:
    """Wire the caches, HTTP client and services for one server instance."""
    caches = CacheManager(clock=clock)
    http = OsrsHttpClient(
        user_agent=settings.user_agent,
        timeout=settings.http_timeout,
        retry_backoff=retry_backoff,
        transport=transport,
    )
    wiki = OsrsWikiService(settings, http, caches)
    monsters = MonsterDatasetCache(
        snapshot_path=settings.monsters_snapshot_path,
        url=settings.monsters_url,
        http=http,
        clock=caches.clock,
        dedup=caches.dedup,
    )
    sounds = SoundTableRefresher(
        wiki=wiki,
        caches=caches,
        page=settings.sound_ids_page,
        path=settings.sound_table_path,
    )
    return ToolContext(
        settings=settings,
        caches=caches,
        http=http,
        queries=DataFileQueries(settings.data_dir, caches),
        wiki=wiki,
        monsters=monsters,
        sounds=sounds,
    )


# =========================================================================
# Wiki
# =========================================================================


async def wiki_parse_page(
    ctx: ToolContext,
    page: str,
    sections: list[str] | None = None,
    max_length: int | None = None,
) -> dict[str, Any]:
    """Parsed page, optionally narrowed to some sections and length-limited.

    The full page is cached; filtering and truncation are applied per call.
    """
    result = dict(await ctx.wiki.parse_page(page))
    content = result["content"]

    if sections:
        filtered = extract_sections(content, sections)
        content = filtered.content
        result["matchedSections"] = filtered.matched

    if max_length:
        truncation = truncate_content(content, max_length)
        content = truncation.content
        result["truncated"] = truncation.truncated
        result["truncatedAtSection"] = truncation.truncated_at_section
        result["originalLength"] = truncation.original_length

    result["content"] = content
    return result


# =========================================================================
# Monster dataset
# =========================================================================


async def _require_dataset(ctx: ToolContext) -> MonsterIndex:
    index = await ctx.monsters.get_cache()
    if index is None:
        raise NotFoundError("Monster dataset not available")
    return index


async def get_monster_drops(
    ctx: ToolContext,
    name: str,
    min_rarity: float = 0.0,
    limit: int = 50,
) -> dict[str, Any]:
    """Drops of every monster matching ``name``, best odds first."""
    if not name.strip():
        raise InvalidInputError("Monster name must not be blank")
    index = await _require_dataset(ctx)
    matches = index.find_monsters(name)
    if not matches:
        raise NotFoundError(f"No monster found matching '{name}'")

    monsters = []
    for monster in matches:
        drops = [d for d in monster.drops if d.rarity >= min_rarity]
        drops.sort(key=lambda d: d.rarity, reverse=True)
        monsters.append({
            "id": monster.id,
            "name": monster.name,
            "combatLevel": monster.combat_level,
            "hitpoints": monster.hitpoints,
            "wikiUrl": monster.wiki_url,
            "totalDrops": len(drops),
            "drops": [
                {
                    "id": d.id,
                    "name": d.name,
                    "quantity": d.quantity,
                    "noted": d.noted,
                    "rarity": d.rarity,
                    "rarityText": rarity_to_fraction(d.rarity),
                    "rolls": d.rolls,
                }
                for d in drops[:limit]
            ],
        })
    return {"query": name, "count": len(monsters), "monsters": monsters}


async def find_item_sources(
    ctx: ToolContext,
    item_id: int | None = None,
    item_name: str | None = None,
    min_rarity: float = 0.0,
    limit: int = 20,
    include_price: bool = False,
) -> dict[str, Any]:
    """Monsters that drop an item, looked up by ID or by (partial) name.

    Raises:
        InvalidInputError: If neither ``item_id`` nor ``item_name`` is given.
        NotFoundError: If no monster drops a matching item.
    """
    if item_id is None and not item_name:
        raise InvalidInputError("Either item_id or item_name must be provided")

    index = await _require_dataset(ctx)
    candidates: list[tuple[int, str]] = []
    if item_id is not None:
        resolved_name = index.item_name(item_id)
        if resolved_name is None:
            raise NotFoundError(f"No monster drops an item with ID {item_id}")
    else:
        candidates = index.match_items(item_name)
        if not candidates:
            raise NotFoundError(f"No monster drops an item matching '{item_name}'")
        item_id, resolved_name = candidates[0]
        if len(candidates) > 1:
            logger.debug(f"'{item_name}' matched {len(candidates)} items, using '{resolved_name}'")

    sources = index.sources_for_item(item_id, min_rarity=min_rarity, limit=limit)
    result: dict[str, Any] = {
        "itemId": item_id,
        "itemName": resolved_name,
        "totalSources": len(index.item_sources.get(item_id, [])),
        "sources": [
            {
                "monsterId": s.monster_id,
                "monsterName": s.monster_name,
                "combatLevel": s.combat_level,
                "quantity": s.quantity,
                "noted": s.noted,
                "rarity": s.rarity,
                "rarityText": rarity_to_fraction(s.rarity),
                "rolls": s.rolls,
            }
            for s in sources
        ],
    }
    if candidates:
        result["candidates"] = [{"id": cid, "name": cname} for cid, cname in candidates]

    if include_price:
        try:
            price = await ctx.wiki.latest_price(item_id)
            result["price"] = price.model_dump() if price else None
        except UpstreamError as e:
            logger.warning(f"Price lookup for item {item_id} failed: {e}")
            result["priceError"] = str(e)

    return result


async def refresh_monster_dataset(ctx: ToolContext) -> dict[str, Any]:
    """Force a remote reload of the monster dataset."""
    index = await ctx.monsters.get_cache(force_refresh=True)
    if index is None:
        raise UpstreamError(f"Monster dataset refresh failed: {ctx.monsters.last_error}")
    return {
        "success": True,
        "monsters": len(index.monsters),
        "items": len(index.item_sources),
        "dropSources": index.drop_count,
    }


# =========================================================================
# Prices & hiscores
# =========================================================================


async def get_item_price(
    ctx: ToolContext,
    item_id: int | None = None,
    item_name: str | None = None,
) -> dict[str, Any]:
    """Latest Grand Exchange prices of an item."""
    if item_id is None and not item_name:
        raise InvalidInputError("Either item_id or item_name must be provided")

    item = await ctx.wiki.find_item(item_id=item_id, item_name=item_name)
    price = await ctx.wiki.latest_price(item.id)
    return {
        "id": item.id,
        "name": item.name,
        "high": price.high if price else None,
        "highTime": price.highTime if price else None,
        "low": price.low if price else None,
        "lowTime": price.lowTime if price else None,
        "limit": item.limit,
        "highalch": item.highalch,
        "members": item.members,
    }


async def get_player_hiscores(ctx: ToolContext, player: str) -> dict[str, Any]:
    hiscores = await ctx.wiki.hiscores(player)
    return {
        "player": player,
        "skills": [s.model_dump() for s in hiscores.skills],
        "activities": [a.model_dump() for a in hiscores.activities],
    }


# =========================================================================
# Sounds & stats
# =========================================================================


async def refresh_sound_ids(ctx: ToolContext) -> dict[str, Any]:
    return await ctx.sounds.refresh()


def get_cache_stats(ctx: ToolContext) -> dict[str, Any]:
    """Counters from every cache plus the dataset state."""
    stats = ctx.caches.stats()
    stats["monster_dataset"] = ctx.monsters.stats()
    stats["http_requests"] = ctx.http.request_count
    return stats


__all__ = [
    "ToolContext",
    "build_context",
    "wiki_parse_page",
    "get_monster_drops",
    "find_item_sources",
    "refresh_monster_dataset",
    "get_item_price",
    "get_player_hiscores",
    "refresh_sound_ids",
    "get_cache_stats",
]
