"""
Caching core for the OSRS MCP server.

Components:
- LineFileStore: TTL-cached snapshots of flat data files
- IdIndex: ID -> line offset indexes derived from those snapshots
- BoundedResponseCache: TTL + size-bounded cache for upstream responses
- RequestDeduplicator: coalesces concurrent identical fetches
- CacheManager: owns all of the above for one server instance
"""

from .clock import Clock, SystemClock
from .dedup import RequestDeduplicator
from .line_store import FileSnapshot, IdIndex, LineFileStore, build_id_index
from .manager import CacheManager
from .response_cache import (
    BoundedResponseCache,
    EvictionPolicy,
    FifoEviction,
    LruEviction,
    make_cache_key,
)

__all__ = [
    "Clock",
    "SystemClock",
    "RequestDeduplicator",
    "FileSnapshot",
    "IdIndex",
    "LineFileStore",
    "build_id_index",
    "CacheManager",
    "BoundedResponseCache",
    "EvictionPolicy",
    "FifoEviction",
    "LruEviction",
    "make_cache_key",
]
