"""
Markup extractors: turn wiki HTML into typed records.

Components:
- html: parsing boundary (``parse_html``) and heading helpers
- rarity: rarity string <-> probability <-> percentage conversions
- drops: drop table extraction with category attribution
- infobox: infobox key/values and image URLs
- content: Markdown conversion, section filtering, truncation
"""

from .content import (
    SectionFilterResult,
    TruncationResult,
    clean_and_convert_html,
    extract_sections,
    truncate_content,
)
from .drops import DropTableEntry, DropTableSection, extract_drop_tables
from .html import parse_html
from .infobox import extract_image_urls, extract_infobox
from .rarity import rarity_to_decimal, rarity_to_fraction, rarity_to_percent

__all__ = [
    "SectionFilterResult",
    "TruncationResult",
    "clean_and_convert_html",
    "extract_sections",
    "truncate_content",
    "DropTableEntry",
    "DropTableSection",
    "extract_drop_tables",
    "parse_html",
    "extract_image_urls",
    "extract_infobox",
    "rarity_to_decimal",
    "rarity_to_fraction",
    "rarity_to_percent",
]
