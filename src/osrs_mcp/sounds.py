"""
Sound-ID table refresh.

The sound table is one of the two data files this server owns: it is rebuilt
from the wiki's list of sound IDs and written as ``ID<TAB>Name`` lines so the
regular data-file queries can serve it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from bs4 import BeautifulSoup

from .cache import CacheManager
from .errors import DataIntegrityError
from .extractors.html import cell_text, parse_html
from .wiki import OsrsWikiService

logger = logging.getLogger("osrs-mcp")

MIN_SOUND_RECORDS = 100


def extract_sound_rows(html: str | BeautifulSoup) -> list[tuple[int, str]]:
    """``(id, name)`` pairs from every table row whose first cell is an integer.

    Rows without a name are skipped.
    """
    soup = parse_html(html) if isinstance(html, str) else html
    rows: list[tuple[int, str]] = []
    for tr in soup.find_all("tr"):
        cells = tr.find_all(["td", "th"], recursive=False)
        if len(cells) < 2:
            continue
        raw_id = cell_text(cells[0]).replace(",", "")
        if not raw_id.isdigit():
            continue
        name = cell_text(cells[1])
        if not name:
            continue
        rows.append((int(raw_id), name))
    return rows


def format_sound_lines(rows: list[tuple[int, str]]) -> str:
    return "".join(f"{sound_id}\t{name.replace(' ', '_')}\n" for sound_id, name in rows)


class SoundTableRefresher:
    """Rebuilds ``soundtypes.txt`` from the wiki.

    Args:
        wiki: Wiki service used to fetch the source page.
        caches: Cache manager whose line store entry is invalidated after a write.
        page: Wiki page holding the sound-ID table.
        path: Destination file.
        min_records: Plausibility threshold for the extracted table.
    """

    def __init__(
        self,
        wiki: OsrsWikiService,
        caches: CacheManager,
        page: str,
        path: Path,
        min_records: int = MIN_SOUND_RECORDS,
    ) -> None:
        self.wiki = wiki
        self.caches = caches
        self.page = page
        self.path = Path(path)
        self.min_records = min_records

    async def refresh(self) -> dict[str, Any]:
        """Fetch, validate and write the sound table.

        Raises:
            DataIntegrityError: If fewer than ``min_records`` rows were found;
                the existing file is left untouched.
        """
        logger.info(f"Refreshing sound IDs from wiki page '{self.page}'")
        html, _ = await self.wiki.fetch_page_html(self.page)
        rows = extract_sound_rows(html)

        if len(rows) < self.min_records:
            raise DataIntegrityError(
                f"Sound table has only {len(rows)} rows (minimum {self.min_records}); "
                f"keeping the existing file"
            )

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(format_sound_lines(rows), encoding="utf-8")
        self.caches.lines.invalidate(self.path)
        logger.info(f"Wrote {len(rows)} sound IDs to {self.path}")
        return {"success": True, "count": len(rows), "path": str(self.path)}


__all__ = ["MIN_SOUND_RECORDS", "SoundTableRefresher", "extract_sound_rows", "format_sound_lines"]
