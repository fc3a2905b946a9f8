"""
Page content cleaning, section filtering and truncation.

Wiki HTML is stripped of navigation, citation and edit-link noise, converted
to Markdown with html2text, and can then be narrowed to requested sections or
cut down to a size budget at a sensible boundary.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

import html2text
from bs4 import BeautifulSoup, Tag

from .html import heading_element, heading_level, heading_text, parse_html

logger = logging.getLogger("osrs-mcp")

NOISE_SELECTORS = (
    ".navbox, .mbox, .hatnote, .toc, .mw-editsection, .reference, "
    ".references, .external, .noprint, script, style, .infobox"
)
BOILERPLATE_SECTIONS = ("see also", "references", "external links", "navigation")

TRUNCATION_SUFFIX = (
    "\n\n---\n*Content truncated. Request specific sections to see the rest of the page.*"
)
_HEADING_MARKER = "\n#"

_BLANK_RUNS = re.compile(r"\n{3,}")
_MARKDOWN_HEADING = re.compile(r"^(#{1,6})[ \t]+(.+?)[ \t]*#*[ \t]*$")


def _converter() -> html2text.HTML2Text:
    converter = html2text.HTML2Text()
    converter.ignore_links = False
    converter.ignore_images = True
    converter.body_width = 0
    return converter


def _remove_boilerplate_sections(root: Tag) -> None:
    """Drop "See also"/"References"/... headings and everything up to the next h2."""
    for node in list(root.find_all(["h2", "h3", "div"])):
        if node.decomposed:
            continue
        heading = heading_element(node)
        if heading is None or heading.name not in ("h2", "h3"):
            continue
        # A wrapped heading is handled through its wrapper div.
        if heading is node and node.parent is not None and heading_element(node.parent) is node:
            continue
        title = heading.get_text(" ", strip=True).lower()
        if not any(marker in title for marker in BOILERPLATE_SECTIONS):
            continue

        for sibling in list(node.find_next_siblings()):
            sibling_heading = heading_element(sibling)
            if sibling_heading is not None and sibling_heading.name == "h2":
                break
            sibling.decompose()
        node.decompose()


def clean_and_convert_html(html: str | BeautifulSoup) -> str:
    """Strip page noise and convert the remaining article body to Markdown."""
    soup = parse_html(html) if isinstance(html, str) else html

    for node in soup.select(NOISE_SELECTORS):
        if not node.decomposed:
            node.decompose()
    _remove_boilerplate_sections(soup)

    root = soup.select_one(".mw-parser-output") or soup
    markdown = _converter().handle(str(root))
    return _BLANK_RUNS.sub("\n\n", markdown).strip()


# =========================================================================
# Sections
# =========================================================================


@dataclass(frozen=True)
class MarkdownSection:
    """A heading and the span of content it governs."""
    title: str
    level: int
    start: int
    end: int


def markdown_sections(content: str) -> list[MarkdownSection]:
    """Locate every ATX heading and the extent of its section.

    A section runs until the next heading of the same or a higher level, so it
    includes its own subsections.
    """
    headings: list[tuple[str, int, int]] = []
    offset = 0
    for line in content.split("\n"):
        match = _MARKDOWN_HEADING.match(line)
        if match:
            headings.append((match.group(2).strip(), len(match.group(1)), offset))
        offset += len(line) + 1

    sections: list[MarkdownSection] = []
    for i, (title, level, start) in enumerate(headings):
        end = len(content)
        for _, next_level, next_start in headings[i + 1:]:
            if next_level <= level:
                end = next_start
                break
        sections.append(MarkdownSection(title=title, level=level, start=start, end=end))
    return sections


def _title_matches(title: str, requested: list[str]) -> bool:
    lowered = title.lower()
    return any(r in lowered or lowered in r for r in requested)


@dataclass
class SectionFilterResult:
    """Outcome of narrowing content to requested sections."""
    content: str
    matched: list[str] = field(default_factory=list)
    available: list[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.matched)


def extract_sections(content: str, titles: list[str]) -> SectionFilterResult:
    """Keep only the sections whose titles match one of ``titles``.

    Matching is a case-insensitive substring test in either direction.
    Surviving sections are concatenated in page order. When nothing matches,
    the result content lists the available section titles instead.
    """
    requested = [t.strip().lower() for t in titles if t and t.strip()]
    sections = markdown_sections(content)
    available = [s.title for s in sections]

    kept: list[str] = []
    matched: list[str] = []
    covered_until = -1
    for section in sections:
        if section.start < covered_until:
            continue
        if requested and _title_matches(section.title, requested):
            kept.append(content[section.start:section.end].strip())
            matched.append(section.title)
            covered_until = section.end

    if not kept:
        listing = "\n".join(f"- {title}" for title in available) or "- (page has no sections)"
        return SectionFilterResult(
            content=f"No sections matched {', '.join(titles)}. Available sections:\n{listing}",
            matched=[],
            available=available,
        )

    return SectionFilterResult(content="\n\n".join(kept), matched=matched, available=available)


# =========================================================================
# Truncation
# =========================================================================


@dataclass
class TruncationResult:
    """Content after applying a length budget."""
    content: str
    truncated: bool
    truncated_at_section: str | None = None
    original_length: int = 0


def _heading_title_at(content: str, position: int) -> str | None:
    line_end = content.find("\n", position)
    line = content[position:] if line_end == -1 else content[position:line_end]
    match = _MARKDOWN_HEADING.match(line)
    return match.group(2).strip() if match else None


def _enclosing_section(content: str, position: int) -> str | None:
    title = None
    for section in markdown_sections(content):
        if section.start <= position:
            title = section.title
    return title


def truncate_content(content: str, max_length: int) -> TruncationResult:
    """Cut ``content`` down to roughly ``max_length`` characters.

    Preference order for the cut point:
    1. the last heading at or before the cutoff that keeps at least half
       of ``max_length``,
    2. the last paragraph break under the same floor,
    3. a hard cut at ``max_length``.
    A fixed note is appended whenever content is removed.
    """
    original_length = len(content)
    if original_length <= max_length:
        return TruncationResult(content=content, truncated=False, original_length=original_length)

    floor = max(max_length // 2, 1)
    heading_at = content.rfind(_HEADING_MARKER, 0, max_length + len(_HEADING_MARKER))
    while heading_at >= floor:
        section = _heading_title_at(content, heading_at + 1)
        if section is None:
            heading_at = content.rfind(_HEADING_MARKER, 0, heading_at)
            continue
        kept = content[:heading_at].rstrip()
        logger.debug(f"Truncated content at section '{section}'")
        return TruncationResult(
            content=kept + TRUNCATION_SUFFIX,
            truncated=True,
            truncated_at_section=section,
            original_length=original_length,
        )

    paragraph_at = content.rfind("\n\n", 0, max_length)
    if paragraph_at >= floor:
        cut = paragraph_at
    else:
        cut = max_length

    return TruncationResult(
        content=content[:cut].rstrip() + TRUNCATION_SUFFIX,
        truncated=True,
        truncated_at_section=_enclosing_section(content, cut),
        original_length=original_length,
    )


__all__ = [
    "NOISE_SELECTORS",
    "BOILERPLATE_SECTIONS",
    "TRUNCATION_SUFFIX",
    "clean_and_convert_html",
    "MarkdownSection",
    "markdown_sections",
    "SectionFilterResult",
    "extract_sections",
    "TruncationResult",
    "truncate_content",
]
