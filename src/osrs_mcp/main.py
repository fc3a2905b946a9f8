"""
OSRS MCP Server
Old School RuneScape wiki, game data files, drops, prices and hiscores over FastMCP.
"""

import asyncio
import inspect
import json
import logging
from typing import Annotated, Any, Callable

from dotenv import load_dotenv
from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field

from . import tools
from .config import ServerSettings
from .errors import InvalidInputError, NotFoundError, UpstreamError, error_payload
from .queries import ID_LOOKUP_FILE_TYPES, SEARCHABLE_FILE_TYPES

logger = logging.getLogger("osrs-mcp")

if not load_dotenv():
    logger.debug("No .env file found, using environment and defaults")

settings = ServerSettings.from_env()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
)
logger.debug(f"📂 Data path: {settings.data_dir}")

ctx = tools.build_context(settings)
logger.debug("✅ Caches and upstream clients initialized")

mcp = FastMCP(
    name="osrs-mcp"
)

logger.debug("✅ Server initialized, registering tools")


async def run_tool(tool_name: str, params: dict[str, Any], operation: Callable[[], Any]) -> str:
    """Run one tool body and map its outcome onto the transport.

    Not-found conditions come back as an inline ``{"error": ...}`` payload.
    Invalid input aborts the call. Anything else is logged with its context
    and re-raised as a generic failure for this call only.
    """
    try:
        result = operation()
        if inspect.isawaitable(result):
            result = await result
    except NotFoundError as e:
        return json.dumps(error_payload(e), indent=2)
    except InvalidInputError as e:
        raise ToolError(str(e)) from e
    except Exception as e:
        context: dict[str, Any] = {"tool": tool_name, "params": params}
        if isinstance(e, UpstreamError):
            context.update(e.context())
        logger.exception(f"Tool '{tool_name}' failed: {context}")
        raise ToolError(f"Error executing tool {tool_name}: {e}") from e
    return json.dumps(result, indent=2, default=str)


PageParam = Annotated[int, Field(description="Page number (1-based)", ge=1)]
PageSizeParam = Annotated[int, Field(description="Results per page", ge=1, le=100)]


# =========================================================================
# Wiki
# =========================================================================


@mcp.tool
async def osrs_wiki_search(
    search: Annotated[str, Field(description="Search terms")],
    limit: Annotated[int, Field(description="Maximum results", ge=1, le=50)] = 10,
    offset: Annotated[int, Field(description="Offset for pagination", ge=0)] = 0,
) -> str:
    """Search the Old School RuneScape wiki for pages matching a term."""
    params = {"search": search, "limit": limit, "offset": offset}
    return await run_tool("osrs_wiki_search", params, lambda: ctx.wiki.search(search, limit, offset))


@mcp.tool
async def osrs_wiki_get_page_info(
    titles: Annotated[str, Field(description="Comma-separated list of page titles")],
) -> str:
    """Get metadata (page ID, last revision, length) for one or more wiki pages."""
    return await run_tool("osrs_wiki_get_page_info", {"titles": titles}, lambda: ctx.wiki.page_info(titles))


@mcp.tool
async def osrs_wiki_parse_page(
    page: Annotated[str, Field(description="Exact wiki page title")],
    sections: Annotated[list[str] | None, Field(description="Only return these sections (e.g. ['Drops', 'Strategy'])")] = None,
    max_length: Annotated[int | None, Field(description="Truncate content to about this many characters", ge=100)] = None,
) -> str:
    """Get a wiki page as Markdown with its infobox, images, drop tables and section list."""
    params = {"page": page, "sections": sections, "max_length": max_length}
    return await run_tool(
        "osrs_wiki_parse_page", params, lambda: tools.wiki_parse_page(ctx, page, sections, max_length)
    )


# =========================================================================
# Data files
# =========================================================================


def _register_file_search(file_type: str) -> None:
    tool_name = f"search_{file_type}"
    filename = f"{file_type}.txt"

    async def search_file(
        query: Annotated[str, Field(description="Text to search for (spaces match underscores)")],
        page: PageParam = 1,
        page_size: PageSizeParam = 10,
    ) -> str:
        params = {"query": query, "page": page, "page_size": page_size}
        return await run_tool(tool_name, params, lambda: ctx.queries.search(filename, query, page, page_size))

    mcp.tool(name=tool_name, description=f"Search {filename} for entries containing a term.")(search_file)


def _register_id_lookup(file_type: str, label: str) -> None:
    tool_name = f"get_{file_type}_by_id"
    filename = f"{file_type}.txt"

    async def get_by_id(
        id: Annotated[int, Field(description=f"{label} ID", ge=0)],
    ) -> str:
        return await run_tool(tool_name, {"id": id}, lambda: ctx.queries.get_by_id(filename, id, label))

    mcp.tool(name=tool_name, description=f"Look up a {label} in {filename} by its ID.")(get_by_id)


for _file_type in SEARCHABLE_FILE_TYPES:
    _register_file_search(_file_type)

for _file_type, _label in ID_LOOKUP_FILE_TYPES.items():
    _register_id_lookup(_file_type, _label)


@mcp.tool
async def search_data_file(
    filename: Annotated[str, Field(description="Data file name, e.g. 'npctypes.txt'")],
    query: Annotated[str, Field(description="Text to search for (spaces match underscores)")],
    page: PageParam = 1,
    page_size: PageSizeParam = 10,
) -> str:
    """Search any file in the data directory."""
    params = {"filename": filename, "query": query, "page": page, "page_size": page_size}
    return await run_tool("search_data_file", params, lambda: ctx.queries.search(filename, query, page, page_size))


@mcp.tool
async def get_file_details(
    filename: Annotated[str, Field(description="Data file name")],
) -> str:
    """Get size, line count and timestamps of a data file."""
    return await run_tool("get_file_details", {"filename": filename}, lambda: ctx.queries.file_details(filename))


@mcp.tool
async def list_data_files(
    file_type: Annotated[str | None, Field(description="Only list files with this extension, e.g. 'txt'")] = None,
) -> str:
    """List the files available in the data directory."""
    def listing() -> dict[str, Any]:
        files = ctx.queries.list_files(file_type)
        return {"files": files, "count": len(files)}

    return await run_tool("list_data_files", {"file_type": file_type}, listing)


@mcp.tool
async def get_entries_by_ids(
    filename: Annotated[str, Field(description="Data file name")],
    ids: Annotated[list[int], Field(description="IDs to look up", min_length=1, max_length=500)],
) -> str:
    """Look up several entries of a data file at once; unknown IDs are listed as missing."""
    params = {"filename": filename, "ids": ids}
    return await run_tool("get_entries_by_ids", params, lambda: ctx.queries.get_by_ids(filename, ids))


@mcp.tool
async def find_exact_name(
    filename: Annotated[str, Field(description="Data file name")],
    name: Annotated[str, Field(description="Exact entry name (case-insensitive, spaces match underscores)")],
) -> str:
    """Find the entries of a data file whose name matches exactly."""
    params = {"filename": filename, "name": name}
    return await run_tool("find_exact_name", params, lambda: ctx.queries.find_exact(filename, name))


@mcp.tool
async def get_id_range(
    filename: Annotated[str, Field(description="Data file name")],
    start_id: Annotated[int, Field(description="First ID (inclusive)", ge=0)],
    end_id: Annotated[int, Field(description="Last ID (inclusive)", ge=0)],
    limit: Annotated[int, Field(description="Maximum entries returned", ge=1, le=1000)] = 100,
) -> str:
    """Get the entries of a data file with IDs in a range, in ascending order."""
    params = {"filename": filename, "start_id": start_id, "end_id": end_id, "limit": limit}
    return await run_tool(
        "get_id_range", params, lambda: ctx.queries.get_range(filename, start_id, end_id, limit)
    )


@mcp.tool
async def regex_search_file(
    filename: Annotated[str, Field(description="Data file name")],
    pattern: Annotated[str, Field(description="Regular expression")],
    case_sensitive: Annotated[bool, Field(description="Match case")] = False,
    page: PageParam = 1,
    page_size: PageSizeParam = 10,
) -> str:
    """Search a data file with a regular expression."""
    params = {"filename": filename, "pattern": pattern, "case_sensitive": case_sensitive}
    return await run_tool(
        "regex_search_file",
        params,
        lambda: ctx.queries.regex_search(filename, pattern, case_sensitive, page, page_size),
    )


# =========================================================================
# Monster dataset
# =========================================================================


@mcp.tool
async def get_monster_drops(
    name: Annotated[str, Field(description="Monster name (exact or partial)", min_length=1)],
    min_rarity: Annotated[float, Field(description="Only drops at least this likely (0-1)", ge=0, le=1)] = 0.0,
    limit: Annotated[int, Field(description="Maximum drops per monster", ge=1, le=500)] = 50,
) -> str:
    """Get the drop table of a monster, best odds first."""
    params = {"name": name, "min_rarity": min_rarity, "limit": limit}
    return await run_tool("get_monster_drops", params, lambda: tools.get_monster_drops(ctx, name, min_rarity, limit))


@mcp.tool
async def find_item_sources(
    item_id: Annotated[int | None, Field(description="Item ID")] = None,
    item_name: Annotated[str | None, Field(description="Item name (exact or partial)")] = None,
    min_rarity: Annotated[float, Field(description="Only sources at least this likely (0-1)", ge=0, le=1)] = 0.0,
    limit: Annotated[int, Field(description="Maximum sources", ge=1, le=200)] = 20,
    include_price: Annotated[bool, Field(description="Also fetch the latest Grand Exchange price")] = False,
) -> str:
    """Find which monsters drop an item, best odds first."""
    params = {
        "item_id": item_id,
        "item_name": item_name,
        "min_rarity": min_rarity,
        "limit": limit,
        "include_price": include_price,
    }
    return await run_tool(
        "find_item_sources",
        params,
        lambda: tools.find_item_sources(ctx, item_id, item_name, min_rarity, limit, include_price),
    )


@mcp.tool
async def refresh_monster_dataset() -> str:
    """Re-download the monster dataset and rebuild its indexes."""
    return await run_tool("refresh_monster_dataset", {}, lambda: tools.refresh_monster_dataset(ctx))


# =========================================================================
# Prices, hiscores, sounds, stats
# =========================================================================


@mcp.tool
async def get_item_price(
    item_id: Annotated[int | None, Field(description="Item ID")] = None,
    item_name: Annotated[str | None, Field(description="Exact item name")] = None,
) -> str:
    """Get the latest Grand Exchange prices of an item."""
    params = {"item_id": item_id, "item_name": item_name}
    return await run_tool("get_item_price", params, lambda: tools.get_item_price(ctx, item_id, item_name))


@mcp.tool
async def get_player_hiscores(
    player: Annotated[str, Field(description="Player display name", min_length=1, max_length=12)],
) -> str:
    """Get a player's skill levels and activity scores from the hiscores."""
    return await run_tool("get_player_hiscores", {"player": player}, lambda: tools.get_player_hiscores(ctx, player))


@mcp.tool
async def refresh_sound_ids() -> str:
    """Rebuild soundtypes.txt from the wiki's list of sound IDs."""
    return await run_tool("refresh_sound_ids", {}, lambda: tools.refresh_sound_ids(ctx))


@mcp.tool
async def get_cache_stats() -> str:
    """Get hit/miss counters and sizes of the server's caches."""
    return await run_tool("get_cache_stats", {}, lambda: tools.get_cache_stats(ctx))


async def startup_refresh() -> None:
    """Eagerly refresh the owned datasets enabled by the environment toggles."""
    if settings.refresh_monsters_on_start:
        index = await ctx.monsters.get_cache(force_refresh=True)
        if index is None:
            logger.warning(f"Startup monster refresh failed: {ctx.monsters.last_error}")

    if settings.refresh_sounds_on_start:
        try:
            await ctx.sounds.refresh()
        except Exception as e:
            logger.warning(f"Startup sound ID refresh failed: {e}")


def main() -> None:
    """Main entry point for the OSRS MCP Server."""
    if settings.refresh_monsters_on_start or settings.refresh_sounds_on_start:
        asyncio.run(startup_refresh())
    mcp.run()


if __name__ == "__main__":
    main()
