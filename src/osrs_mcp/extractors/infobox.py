"""
Infobox and image extraction for wiki pages.
"""

from __future__ import annotations

import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .html import collapse_whitespace, parse_html

INFOBOX_SELECTOR = ".infobox-monster, .infobox-item, .infobox-bonuses, .infobox"

_KEY_WHITESPACE = re.compile(r"\s+")


def extract_infobox(html: str | BeautifulSoup) -> dict[str, str] | None:
    """Key/value pairs from the first infobox on the page.

    Each row with a header and a value becomes ``lowercased_header -> value``.

    Returns:
        The mapping, or None when the page has no infobox or it yields no rows.
    """
    soup = parse_html(html) if isinstance(html, str) else html
    infobox = soup.select_one(INFOBOX_SELECTOR)
    if infobox is None:
        return None

    values: dict[str, str] = {}
    for row in infobox.find_all("tr"):
        header = row.find("th")
        value = row.find("td")
        if header is None or value is None:
            continue
        key = _KEY_WHITESPACE.sub("_", header.get_text(" ", strip=True).strip().lower())
        text = collapse_whitespace(value.get_text(" ", strip=True))
        if key and text:
            values[key] = text

    return values or None


def extract_image_urls(html: str | BeautifulSoup, base_url: str) -> list[str]:
    """Absolute URLs of the images shown in the page's infoboxes, in order."""
    soup = parse_html(html) if isinstance(html, str) else html
    urls: list[str] = []
    for infobox in soup.select(INFOBOX_SELECTOR):
        for img in infobox.find_all("img"):
            src = img.get("src") or img.get("data-src")
            if not src:
                continue
            url = urljoin(base_url.rstrip("/") + "/", src)
            if url not in urls:
                urls.append(url)
    return urls


__all__ = ["INFOBOX_SELECTOR", "extract_infobox", "extract_image_urls"]
