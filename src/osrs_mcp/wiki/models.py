"""
Pydantic models for upstream API responses.

Responses are validated once, at the boundary; the rest of the server works
with these typed objects instead of probing raw JSON.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import UpstreamError


class WikiApiError(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: str
    info: str = ""


class WikiErrorResponse(BaseModel):
    """MediaWiki error envelope (``{"error": {"code": ..., "info": ...}}``)."""
    model_config = ConfigDict(extra="allow")

    error: WikiApiError


# =========================================================================
# Search
# =========================================================================


class WikiSearchHit(BaseModel):
    model_config = ConfigDict(extra="allow")

    ns: int = 0
    title: str
    pageid: int | None = None
    snippet: str = ""
    titlesnippet: str | None = None
    sectiontitle: str | None = None


class WikiSearchInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    totalhits: int = 0


class WikiSearchQuery(BaseModel):
    model_config = ConfigDict(extra="allow")

    searchinfo: WikiSearchInfo | None = None
    search: list[WikiSearchHit] = Field(default_factory=list)


class WikiSearchResponse(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    query: WikiSearchQuery
    continuation: dict[str, Any] | None = Field(default=None, alias="continue")


# =========================================================================
# Page info / parse
# =========================================================================


class WikiPageInfoResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    query: dict[str, Any]


class WikiParseSection(BaseModel):
    model_config = ConfigDict(extra="allow")

    level: int
    line: str
    anchor: str = ""


class WikiParsedPage(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str = ""
    pageid: int | None = None
    text: str | None = None
    sections: list[WikiParseSection] = Field(default_factory=list)


class WikiParseResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    parse: WikiParsedPage


# =========================================================================
# Prices
# =========================================================================


class ItemMapping(BaseModel):
    """Entry of the prices API ``/mapping`` endpoint."""
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    examine: str | None = None
    members: bool | None = None
    limit: int | None = None
    value: int | None = None
    highalch: int | None = None
    lowalch: int | None = None
    icon: str | None = None


class LatestPrice(BaseModel):
    """Entry of the prices API ``/latest`` endpoint."""
    model_config = ConfigDict(extra="ignore")

    high: int | None = None
    highTime: int | None = None
    low: int | None = None
    lowTime: int | None = None


class LatestPriceResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: dict[str, LatestPrice] = Field(default_factory=dict)


# =========================================================================
# Hiscores
# =========================================================================


class HiscoreSkill(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    rank: int
    level: int
    xp: int


class HiscoreActivity(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    rank: int
    score: int


class HiscoreResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    skills: list[HiscoreSkill] = Field(default_factory=list)
    activities: list[HiscoreActivity] = Field(default_factory=list)


def parse_wiki_response(data: Any, model: type[BaseModel], url: str | None = None) -> BaseModel:
    """Validate a MediaWiki payload as either ``model`` or an error envelope.

    Returns:
        ``WikiErrorResponse`` when the API reported an error, else an
        instance of ``model``.

    Raises:
        UpstreamError: If the payload matches neither shape.
    """
    try:
        if isinstance(data, dict) and "error" in data:
            return WikiErrorResponse.model_validate(data)
        return model.model_validate(data)
    except ValidationError as e:
        raise UpstreamError(f"Unexpected response shape from wiki API: {e}", url=url) from e


__all__ = [
    "WikiApiError",
    "WikiErrorResponse",
    "WikiSearchHit",
    "WikiSearchInfo",
    "WikiSearchQuery",
    "WikiSearchResponse",
    "WikiPageInfoResponse",
    "WikiParseSection",
    "WikiParsedPage",
    "WikiParseResponse",
    "ItemMapping",
    "LatestPrice",
    "LatestPriceResponse",
    "HiscoreSkill",
    "HiscoreActivity",
    "HiscoreResponse",
    "parse_wiki_response",
]
