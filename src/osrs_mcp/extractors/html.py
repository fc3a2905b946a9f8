"""
HTML parsing boundary for the extractors.

All extractors work on the tree returned by ``parse_html`` so they can be
exercised against fixture HTML without any network access.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Tag

HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")

_WHITESPACE = re.compile(r"\s+")
_EDIT_LINK = re.compile(r"\[\s*edit(?:\s*\|\s*edit source)?\s*\]", re.IGNORECASE)


def parse_html(html: str) -> BeautifulSoup:
    """Parse an HTML fragment or document into a navigable tree."""
    return BeautifulSoup(html, "html.parser")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def cell_text(cell: Tag) -> str:
    """Visible text of a table cell with whitespace collapsed."""
    return collapse_whitespace(cell.get_text(" ", strip=True))


def heading_element(node: Tag) -> Tag | None:
    """Return the ``h1``-``h6`` element if ``node`` is a heading.

    Newer MediaWiki output wraps headings in ``<div class="mw-heading">``;
    both forms are recognised.
    """
    if node.name in HEADING_TAGS:
        return node
    if node.name == "div" and "mw-heading" in (node.get("class") or []):
        return node.find(HEADING_TAGS)
    return None


def heading_text(heading: Tag) -> str:
    """Heading title without edit links."""
    headline = heading.select_one(".mw-headline")
    if headline is not None:
        text = headline.get_text(" ", strip=True)
    else:
        parts = [
            str(piece) for piece in heading.find_all(string=True)
            if not piece.find_parent(class_="mw-editsection")
        ]
        text = " ".join(parts)
    return collapse_whitespace(_EDIT_LINK.sub("", text))


def heading_level(heading: Tag) -> int:
    return int(heading.name[1])


__all__ = [
    "HEADING_TAGS",
    "parse_html",
    "collapse_whitespace",
    "cell_text",
    "heading_element",
    "heading_text",
    "heading_level",
]
