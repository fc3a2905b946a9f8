"""
Drop table extraction from parsed wiki pages.

A table counts as a drop table when its header mentions both an item and a
rarity column. Each table is filed under the nearest heading that precedes it;
consecutive tables with no heading between them share a category, and tables
that land in the same category are merged in page order.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Tag

from .html import cell_text, collapse_whitespace, heading_element, heading_text, parse_html
from .rarity import rarity_to_percent

logger = logging.getLogger("osrs-mcp")

DEFAULT_CATEGORY = "Drops"
NO_DROP_ITEMS = {"nothing", "n/a"}

# Image, item, quantity, rarity, price, high alch
FALLBACK_COLUMNS = (1, 2, 3)

_FOOTNOTE = re.compile(r"\[\s*(?:\d+|[a-z]|note \d+)\s*\]", re.IGNORECASE)


@dataclass
class DropTableEntry:
    """A single drop row."""
    item: str
    quantity: str
    rarity: str
    rarity_percent: str | None = None

    def to_dict(self) -> dict[str, str]:
        result = {"item": self.item, "quantity": self.quantity, "rarity": self.rarity}
        if self.rarity_percent is not None:
            result["rarityPercent"] = self.rarity_percent
        return result


@dataclass
class DropTableSection:
    """All drops filed under one category heading."""
    category: str
    drops: list[DropTableEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"category": self.category, "drops": [d.to_dict() for d in self.drops]}


@dataclass(frozen=True)
class _Columns:
    item: int
    quantity: int | None
    rarity: int | None


def _own_rows(table: Tag) -> list[Tag]:
    """Rows of ``table`` itself, excluding rows of nested tables."""
    return [row for row in table.find_all("tr") if row.find_parent("table") is table]


def _header_row(table: Tag) -> Tag | None:
    for row in _own_rows(table):
        if row.find("th", recursive=False) is not None:
            return row
    return None


def is_drop_table(table: Tag) -> bool:
    """Whether the table header row has both an item-like and a rarity-like column."""
    header = _header_row(table)
    if header is None:
        return False
    headers = [cell_text(th).lower() for th in header.find_all("th", recursive=False)]
    has_item = any("item" in h for h in headers)
    has_rarity = any("rarity" in h for h in headers)
    return has_item and has_rarity


def _span(cell: Tag) -> int:
    try:
        return max(int(cell.get("colspan", 1)), 1)
    except (TypeError, ValueError):
        return 1


def locate_columns(table: Tag) -> _Columns:
    """Work out which data column holds the item, quantity and rarity.

    Header cells spanning several columns map to the last column of the span,
    which is where the item name sits when an image column shares the header.
    """
    item_col = quantity_col = rarity_col = None
    header = _header_row(table)
    if header is not None:
        position = 0
        for th in header.find_all(["th", "td"], recursive=False):
            span = _span(th)
            text = cell_text(th).lower()
            column = position + span - 1
            if "item" in text and item_col is None:
                item_col = column
            elif "quantity" in text and quantity_col is None:
                quantity_col = column
            elif "rarity" in text and rarity_col is None:
                rarity_col = column
            position += span

    if item_col is None:
        item_col, quantity_col, rarity_col = FALLBACK_COLUMNS
    return _Columns(item=item_col, quantity=quantity_col, rarity=rarity_col)


def _clean(text: str) -> str:
    return collapse_whitespace(_FOOTNOTE.sub("", text))


def _link_or_text(cell: Tag) -> str:
    link = cell.find("a")
    if link is not None and link.get_text(strip=True):
        return link.get_text(" ", strip=True)
    return cell.get_text(" ", strip=True)


def _cell_at(cells: list[Tag], index: int | None) -> Tag | None:
    if index is None or index < 0 or index >= len(cells):
        return None
    return cells[index]


def parse_drop_rows(table: Tag) -> list[DropTableEntry]:
    """Parse the data rows of one drop table."""
    columns = locate_columns(table)
    header = _header_row(table)
    drops: list[DropTableEntry] = []

    for row in _own_rows(table):
        if row is header:
            continue
        cells = row.find_all("td", recursive=False)
        if len(cells) < 3:
            continue

        item_name = ""
        item_cell = row.find("td", class_="item-col", recursive=False)
        if item_cell is None:
            item_cell = _cell_at(cells, columns.item)
        if item_cell is not None:
            item_name = _link_or_text(item_cell)
        if not item_name:
            wiki_link = row.select_one('td a[href^="/w/"]')
            if wiki_link is not None:
                item_name = wiki_link.get("title") or wiki_link.get_text(" ", strip=True)

        quantity_cell = _cell_at(cells, columns.quantity)
        if quantity_cell is None:
            quantity_cell = _cell_at(cells, columns.item + 1)
        rarity_cell = _cell_at(cells, columns.rarity)
        if rarity_cell is None:
            rarity_cell = _cell_at(cells, columns.item + 2)

        item_name = _clean(item_name)
        quantity = _clean(quantity_cell.get_text(" ", strip=True)) if quantity_cell is not None else ""
        rarity = _clean(rarity_cell.get_text(" ", strip=True)) if rarity_cell is not None else ""

        if not item_name or item_name.lower() in NO_DROP_ITEMS:
            continue
        if not rarity:
            continue

        drops.append(DropTableEntry(
            item=item_name,
            quantity=quantity or "1",
            rarity=rarity,
            rarity_percent=rarity_to_percent(rarity),
        ))

    return drops


def _contains_drop_table(node: Tag, drop_tables: set[int]) -> bool:
    if id(node) in drop_tables:
        return True
    return any(id(table) in drop_tables for table in node.find_all("table"))


def find_category(table: Tag, drop_tables: set[int]) -> str | None:
    """Nearest heading before ``table``.

    Walks backwards through preceding siblings, climbing to the parent when a
    level is exhausted. Returns None when another drop table is met first, in
    which case the table belongs to the same category as that one.
    """
    node: Tag | None = table
    while node is not None and node.name not in ("[document]", "body", "html"):
        for sibling in node.find_previous_siblings():
            if not isinstance(sibling, Tag):
                continue
            heading = heading_element(sibling)
            if heading is not None:
                return heading_text(heading) or None
            if _contains_drop_table(sibling, drop_tables):
                return None
        node = node.parent
    return None


def extract_drop_tables(html: str | BeautifulSoup) -> list[DropTableSection]:
    """Extract every drop table on a page, grouped by category.

    Args:
        html: Page HTML or an already parsed tree.

    Returns:
        Sections in first-encounter order. Tables sharing a category have
        their rows appended to the existing section.
    """
    soup = parse_html(html) if isinstance(html, str) else html
    tables = [t for t in soup.find_all("table") if is_drop_table(t)]
    drop_table_ids = {id(t) for t in tables}

    sections: dict[str, DropTableSection] = {}
    current_category = DEFAULT_CATEGORY

    for table in tables:
        category = find_category(table, drop_table_ids)
        if category:
            current_category = category

        drops = parse_drop_rows(table)
        if not drops:
            continue

        section = sections.get(current_category)
        if section is None:
            sections[current_category] = DropTableSection(category=current_category, drops=drops)
        else:
            section.drops.extend(drops)

    if sections:
        logger.debug(f"Drop tables: extracted {sum(len(s.drops) for s in sections.values())} drops")
    return list(sections.values())


__all__ = [
    "DEFAULT_CATEGORY",
    "DropTableEntry",
    "DropTableSection",
    "is_drop_table",
    "locate_columns",
    "parse_drop_rows",
    "find_category",
    "extract_drop_tables",
]
