"""
Lookups over the flat game data files.

Every query goes through the ``CacheManager``: lines come from the TTL line
store and point lookups from the derived ID index, so repeated queries never
touch the disk while the snapshot is fresh. Line numbers are reported 1-based.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from .cache import CacheManager
from .errors import InvalidInputError, NotFoundError

logger = logging.getLogger("osrs-mcp")

SEARCHABLE_FILE_TYPES = (
    "varptypes",
    "varbittypes",
    "iftypes",
    "invtypes",
    "loctypes",
    "npctypes",
    "objtypes",
    "rowtypes",
    "seqtypes",
    "soundtypes",
    "spottypes",
    "spritetypes",
    "tabletypes",
)

# File type -> label used in "not found" messages
ID_LOOKUP_FILE_TYPES = {
    "npctypes": "NPC",
    "objtypes": "Object/Item",
    "seqtypes": "Animation sequence",
    "spottypes": "Spot animation",
    "loctypes": "Location",
}

DEFAULT_PAGE_SIZE = 10
DEFAULT_RANGE_LIMIT = 100


def validate_filename(filename: str) -> str:
    """Reject names that could escape the data directory.

    Raises:
        InvalidInputError: If the name contains ``..``, ``/`` or ``\\``.
    """
    if not filename or ".." in filename or "/" in filename or "\\" in filename:
        raise InvalidInputError("Invalid filename")
    return filename


def paginate(results: list[dict[str, Any]], page: int, page_size: int) -> dict[str, Any]:
    """Slice ``results`` into one page plus pagination metadata."""
    total_results = len(results)
    total_pages = math.ceil(total_results / page_size) if page_size else 0
    start = (page - 1) * page_size
    return {
        "results": results[start:start + page_size],
        "pagination": {
            "page": page,
            "pageSize": page_size,
            "totalResults": total_results,
            "totalPages": total_pages,
            "hasNextPage": page < total_pages,
            "hasPreviousPage": page > 1,
        },
    }


def format_search_hit(line: str, line_number: int) -> dict[str, Any]:
    """Search hit with the ID/value split out when the line has one."""
    result: dict[str, Any] = {"line": line, "lineNumber": line_number}
    parts = line.split()
    if len(parts) >= 2:
        entry_id = parts[0]
        value = " ".join(parts[1:])
        result.update({"id": entry_id, "value": value, "formatted": f"{entry_id}\t{value}"})
    return result


def format_entry(entry_id: int, line: str, offset: int) -> dict[str, Any]:
    """Point-lookup result for one ``ID<TAB>Name`` line."""
    parts = line.split("\t")
    name = "\t".join(parts[1:]) if len(parts) >= 2 else ""
    return {"id": entry_id, "name": name, "lineNumber": offset + 1, "raw": line}


class DataFileQueries:
    """Search and lookup operations over files in the data directory.

    Args:
        data_dir: Directory holding the ``*.txt`` data files.
        caches: Cache manager providing the line store and ID index.
    """

    def __init__(self, data_dir: Path, caches: CacheManager) -> None:
        self.data_dir = Path(data_dir)
        self.caches = caches

    # =========================================================================
    # Files
    # =========================================================================

    def path_for(self, filename: str) -> Path:
        """Absolute path of an existing data file.

        Raises:
            InvalidInputError: On a path-traversal attempt.
            NotFoundError: If the file does not exist.
        """
        validate_filename(filename)
        path = self.data_dir / filename
        if not path.is_file():
            raise NotFoundError(f"{filename} not found in data directory")
        return path

    def file_exists(self, filename: str) -> bool:
        validate_filename(filename)
        return (self.data_dir / filename).is_file()

    def list_files(self, file_type: str | None = None) -> list[str]:
        """Names of the files in the data directory, optionally by extension."""
        if not self.data_dir.is_dir():
            return []
        files = sorted(p.name for p in self.data_dir.iterdir() if p.is_file())
        if file_type:
            suffix = f".{file_type.lstrip('.')}"
            files = [f for f in files if f.endswith(suffix)]
        return files

    def file_details(self, filename: str) -> dict[str, Any]:
        """Size, line count and timestamps of a data file."""
        validate_filename(filename)
        path = self.data_dir / filename
        if not path.is_file():
            return {"exists": False}

        stats = path.stat()
        # st_birthtime is missing on most Linux filesystems; fall back to the inode change time
        created = getattr(stats, "st_birthtime", stats.st_ctime)
        return {
            "exists": True,
            "size": stats.st_size,
            "lineCount": len(self.caches.lines.get_lines(path)),
            "created": datetime.fromtimestamp(created).isoformat(),
            "lastModified": datetime.fromtimestamp(stats.st_mtime).isoformat(),
        }

    # =========================================================================
    # Scans
    # =========================================================================

    def search(
        self,
        filename: str,
        query: str,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> dict[str, Any]:
        """Case-insensitive substring search; spaces in ``query`` match underscores."""
        lines = self.caches.lines.get_lines(self.path_for(filename))
        needle = query.replace(" ", "_").lower()

        hits = [
            format_search_hit(line, offset + 1)
            for offset, line in enumerate(lines)
            if needle in line.lower()
        ]
        return paginate(hits, page, page_size)

    def regex_search(
        self,
        filename: str,
        pattern: str,
        case_sensitive: bool = False,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> dict[str, Any]:
        """Lines matching a regular expression.

        Raises:
            InvalidInputError: If ``pattern`` does not compile.
        """
        try:
            compiled = re.compile(pattern, 0 if case_sensitive else re.IGNORECASE)
        except re.error as e:
            raise InvalidInputError(f"Invalid regular expression '{pattern}': {e}") from e

        lines = self.caches.lines.get_lines(self.path_for(filename))
        hits = [
            format_search_hit(line, offset + 1)
            for offset, line in enumerate(lines)
            if compiled.search(line)
        ]
        result = paginate(hits, page, page_size)
        result["pattern"] = pattern
        return result

    def find_exact(self, filename: str, name: str) -> dict[str, Any]:
        """Entries whose name equals ``name`` (case-insensitive, spaces == underscores)."""
        wanted = name.strip().replace(" ", "_").lower()
        lines = self.caches.lines.get_lines(self.path_for(filename))

        results = []
        for offset, line in enumerate(lines):
            parts = line.split("\t")
            if len(parts) < 2 or not parts[0].strip().isdigit():
                continue
            entry_name = "\t".join(parts[1:]).strip().replace(" ", "_").lower()
            if entry_name == wanted:
                results.append(format_entry(int(parts[0].strip()), line, offset))
        return {"query": name, "count": len(results), "results": results}

    # =========================================================================
    # Point and range lookups
    # =========================================================================

    def get_by_id(self, filename: str, entry_id: int, label: str = "Entry") -> dict[str, Any]:
        """Single entry by numeric ID.

        Raises:
            NotFoundError: If the file or the ID does not exist.
        """
        path = self.path_for(filename)
        hit = self.caches.ids.lookup(path, entry_id)
        if hit is None:
            raise NotFoundError(f"{label} with ID {entry_id} not found")
        offset, line = hit
        return format_entry(entry_id, line, offset)

    def get_by_ids(self, filename: str, entry_ids: list[int]) -> dict[str, Any]:
        """Bulk point lookup; results keep the requested order."""
        path = self.path_for(filename)
        found = []
        missing = []
        for entry_id in entry_ids:
            hit = self.caches.ids.lookup(path, entry_id)
            if hit is None:
                missing.append(entry_id)
            else:
                offset, line = hit
                found.append(format_entry(entry_id, line, offset))
        return {"found": found, "missing": missing}

    def get_range(
        self,
        filename: str,
        start_id: int,
        end_id: int,
        limit: int = DEFAULT_RANGE_LIMIT,
    ) -> dict[str, Any]:
        """Entries with ``start_id <= id <= end_id`` in ascending ID order.

        Raises:
            InvalidInputError: If ``start_id`` is greater than ``end_id``.
        """
        if start_id > end_id:
            raise InvalidInputError(f"start_id ({start_id}) must not exceed end_id ({end_id})")

        path = self.path_for(filename)
        snapshot, index = self.caches.ids.get_indexed_snapshot(path)
        lines = snapshot.lines

        in_range = sorted(entry_id for entry_id in index if start_id <= entry_id <= end_id)
        results = [
            format_entry(entry_id, lines[index[entry_id]], index[entry_id])
            for entry_id in in_range[:limit]
        ]
        return {
            "startId": start_id,
            "endId": end_id,
            "totalInRange": len(in_range),
            "truncated": len(in_range) > limit,
            "results": results,
        }


__all__ = [
    "SEARCHABLE_FILE_TYPES",
    "ID_LOOKUP_FILE_TYPES",
    "DataFileQueries",
    "validate_filename",
    "paginate",
    "format_search_hit",
    "format_entry",
]
