"""
Upstream wiki, prices and hiscores access with typed response models.
"""

from .client import OsrsWikiService
from .models import (
    HiscoreResponse,
    ItemMapping,
    LatestPrice,
    WikiErrorResponse,
    WikiSearchResponse,
    parse_wiki_response,
)

__all__ = [
    "OsrsWikiService",
    "HiscoreResponse",
    "ItemMapping",
    "LatestPrice",
    "WikiErrorResponse",
    "WikiSearchResponse",
    "parse_wiki_response",
]
