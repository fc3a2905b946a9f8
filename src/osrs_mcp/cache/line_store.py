"""
TTL-cached flat data files and the ID indexes derived from them.

The game data directory holds large tab-delimited files (``ID<TAB>Name`` per
line). ``LineFileStore`` keeps whole-file snapshots in memory for an hour and
``IdIndex`` maps the leading integer of each line to its offset for O(1) point
lookups. Snapshots are replaced wholesale, never patched, and an index is only
trusted while the snapshot it was built from is still the live one.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from ..errors import NotFoundError
from .clock import Clock, SystemClock

logger = logging.getLogger("osrs-mcp")

FILE_CACHE_TTL = 60 * 60  # 1 hour

_LEADING_ID = re.compile(r"^([0-9]+)")


@dataclass(frozen=True)
class FileSnapshot:
    """Immutable copy of a data file at one point in time.

    Attributes:
        path: Absolute path of the file.
        lines: File lines, split on ``\\n`` with trailing ``\\r`` removed.
        loaded_at: Clock time the file was read.
    """
    path: str
    lines: tuple[str, ...]
    loaded_at: float


@dataclass
class LineStoreStats:
    """Counters for the line store (observability only)."""
    entries: int
    hit_count: int
    miss_count: int
    invalidated_count: int
    id_indexes: int

    @property
    def hit_rate(self) -> float:
        total = self.hit_count + self.miss_count
        return self.hit_count / total if total > 0 else 0.0


def _normalize_path(path: str | Path) -> str:
    return str(Path(path).resolve())


def split_lines(content: str) -> tuple[str, ...]:
    """Split file content into lines, normalizing CRLF endings."""
    return tuple(line[:-1] if line.endswith("\r") else line for line in content.split("\n"))


class LineFileStore:
    """Whole-file line cache with time-based staleness.

    There is no capacity bound: an entry lives until its TTL runs out or it is
    explicitly invalidated (for instance after the server rewrites the file).
    Listeners registered with ``on_reload`` are told whenever a path gets a new
    snapshot or is dropped, so derived structures can discard their copies.

    Usage:
        store = LineFileStore()
        lines = store.get_lines(data_dir / "npctypes.txt")
    """

    def __init__(self, clock: Clock | None = None, ttl: float = FILE_CACHE_TTL) -> None:
        self.clock = clock or SystemClock()
        self.ttl = ttl
        self._snapshots: dict[str, FileSnapshot] = {}
        self._listeners: list[Callable[[str], None]] = []
        self._hit_count = 0
        self._miss_count = 0
        self._invalidated_count = 0

    def on_reload(self, listener: Callable[[str], None]) -> None:
        """Register a callback invoked with the absolute path of a replaced snapshot."""
        self._listeners.append(listener)

    def is_fresh(self, path: str | Path) -> bool:
        """Whether a live (unexpired) snapshot exists, without touching the counters."""
        snapshot = self._snapshots.get(_normalize_path(path))
        return snapshot is not None and self._age(snapshot) < self.ttl

    def peek(self, path: str | Path) -> FileSnapshot | None:
        """Return the current snapshot, fresh or not, without loading anything."""
        return self._snapshots.get(_normalize_path(path))

    def get_snapshot(self, path: str | Path) -> FileSnapshot:
        """Return a fresh snapshot of ``path``, reading the file on a miss.

        Raises:
            NotFoundError: If the file does not exist.
        """
        key = _normalize_path(path)
        cached = self._snapshots.get(key)
        if cached is not None and self._age(cached) < self.ttl:
            self._hit_count += 1
            return cached

        self._miss_count += 1
        file_path = Path(key)
        if not file_path.is_file():
            raise NotFoundError(f"File not found: {file_path.name}")

        content = file_path.read_text(encoding="utf-8", errors="replace")
        snapshot = FileSnapshot(
            path=key,
            lines=split_lines(content),
            loaded_at=self.clock.now(),
        )
        self._snapshots[key] = snapshot
        logger.debug(f"Line store: loaded {len(snapshot.lines)} lines from {file_path.name}")
        self._notify(key)
        return snapshot

    def get_lines(self, path: str | Path) -> tuple[str, ...]:
        """Return the lines of ``path`` (0-based in memory)."""
        return self.get_snapshot(path).lines

    def invalidate(self, path: str | Path) -> bool:
        """Drop the snapshot for ``path``.

        Returns:
            True if a snapshot existed and was removed.
        """
        key = _normalize_path(path)
        existed = self._snapshots.pop(key, None) is not None
        if existed:
            self._invalidated_count += 1
            logger.debug(f"Line store: invalidated {Path(key).name}")
        self._notify(key)
        return existed

    def clear(self) -> None:
        """Remove every snapshot."""
        for key in list(self._snapshots):
            self.invalidate(key)

    def get_stats(self, id_indexes: int = 0) -> LineStoreStats:
        return LineStoreStats(
            entries=len(self._snapshots),
            hit_count=self._hit_count,
            miss_count=self._miss_count,
            invalidated_count=self._invalidated_count,
            id_indexes=id_indexes,
        )

    def _age(self, snapshot: FileSnapshot) -> float:
        return self.clock.now() - snapshot.loaded_at

    def _notify(self, key: str) -> None:
        for listener in self._listeners:
            listener(key)

    @property
    def size(self) -> int:
        """Number of snapshots currently held."""
        return len(self._snapshots)


def parse_leading_id(line: str) -> int | None:
    """Return the integer formed by the leading ASCII digits of ``line``, if any."""
    match = _LEADING_ID.match(line)
    if not match:
        return None
    return int(match.group(1))


def build_id_index(lines: tuple[str, ...] | list[str]) -> dict[int, int]:
    """Map each leading-digit ID to its 0-based line offset.

    Lines without a leading digit run are skipped. When an ID repeats, the
    last occurrence wins.
    """
    index: dict[int, int] = {}
    for offset, line in enumerate(lines):
        entry_id = parse_leading_id(line)
        if entry_id is not None:
            index[entry_id] = offset
    return index


@dataclass(frozen=True)
class _IndexEntry:
    ids: dict[int, int]
    snapshot_loaded_at: float


class IdIndex:
    """ID -> line offset indexes over ``LineFileStore`` snapshots.

    An index refers back to its snapshot by path and load timestamp only. It is
    reused while that snapshot is still the live, unexpired one and rebuilt
    from scratch otherwise.
    """

    def __init__(self, store: LineFileStore) -> None:
        self.store = store
        self._indexes: dict[str, _IndexEntry] = {}
        self.build_count = 0
        store.on_reload(self._discard)

    def get_indexed_snapshot(self, path: str | Path) -> tuple[FileSnapshot, dict[int, int]]:
        """Return a snapshot of ``path`` together with the ID index built from it.

        Offsets in the index are only valid against the returned snapshot.

        Raises:
            NotFoundError: If the file does not exist.
        """
        key = _normalize_path(path)
        cached = self._indexes.get(key)
        if cached is not None and self.store.is_fresh(key):
            snapshot = self.store.peek(key)
            if snapshot is not None and snapshot.loaded_at == cached.snapshot_loaded_at:
                return snapshot, cached.ids

        snapshot = self.store.get_snapshot(key)
        ids = build_id_index(snapshot.lines)
        self._indexes[key] = _IndexEntry(ids=ids, snapshot_loaded_at=snapshot.loaded_at)
        self.build_count += 1
        logger.debug(f"ID index: built {len(ids)} ids for {Path(key).name}")
        return snapshot, ids

    def get_index(self, path: str | Path) -> dict[int, int]:
        """Return the ID index for ``path``, rebuilding it if the file was reloaded."""
        return self.get_indexed_snapshot(path)[1]

    def lookup(self, path: str | Path, entry_id: int) -> tuple[int, str] | None:
        """Return ``(offset, line)`` for ``entry_id`` or None if it is not indexed."""
        snapshot, ids = self.get_indexed_snapshot(path)
        offset = ids.get(entry_id)
        if offset is None:
            return None
        return offset, snapshot.lines[offset]

    def _discard(self, key: str) -> None:
        self._indexes.pop(key, None)

    @property
    def size(self) -> int:
        return len(self._indexes)


__all__ = [
    "FILE_CACHE_TTL",
    "FileSnapshot",
    "LineStoreStats",
    "LineFileStore",
    "IdIndex",
    "build_id_index",
    "parse_leading_id",
    "split_lines",
]
