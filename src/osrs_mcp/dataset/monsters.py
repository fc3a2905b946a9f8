"""
Monster dataset cache with derived lookup indexes.

The complete monster dataset (several megabytes of JSON) is resolved through
three tiers: a fresh in-memory copy, then an on-disk snapshot younger than the
TTL, then a remote download that is validated and written back to disk. Each
load builds the id, name and item -> source indexes together from one
snapshot, so they are always consistent with each other.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..cache import Clock, RequestDeduplicator, SystemClock
from ..errors import DataIntegrityError, OsrsMcpError
from ..http import OsrsHttpClient
from .models import DropSource, MonsterRecord

logger = logging.getLogger("osrs-mcp")

DATASET_TTL = 24 * 60 * 60  # 24 hours
MIN_DATASET_RECORDS = 1000


@dataclass
class MonsterIndex:
    """One fully built snapshot of the monster dataset.

    Attributes:
        monsters: Monster ID -> record.
        name_index: Lowercased display name -> monster IDs (names repeat).
        item_sources: Item ID -> monsters that drop it, in dataset order.
        loaded_at: Clock time the snapshot was built.
        origin: Which tier produced it ("disk" or "remote").
    """
    monsters: dict[int, MonsterRecord]
    name_index: dict[str, list[int]]
    item_sources: dict[int, list[DropSource]]
    loaded_at: float
    origin: str = "remote"
    skipped_records: int = 0

    # =========================================================================
    # Monster lookups
    # =========================================================================

    def find_monsters(self, name: str) -> list[MonsterRecord]:
        """Monsters named exactly ``name`` (case-insensitive), else by substring."""
        wanted = name.strip().lower()
        if not wanted:
            return []
        exact = self.name_index.get(wanted)
        if exact:
            return [self.monsters[monster_id] for monster_id in exact]

        matches: list[MonsterRecord] = []
        for indexed_name, monster_ids in self.name_index.items():
            if wanted in indexed_name:
                matches.extend(self.monsters[monster_id] for monster_id in monster_ids)
        return matches

    # =========================================================================
    # Item -> source lookups
    # =========================================================================

    def item_name(self, item_id: int) -> str | None:
        """Display name of an item, taken from the first monster that drops it."""
        sources = self.item_sources.get(item_id)
        if not sources:
            return None
        return sources[0].item_name

    def match_items(self, fragment: str) -> list[tuple[int, str]]:
        """Items whose name equals ``fragment``, or failing that contains it.

        Returns:
            ``(item_id, item_name)`` pairs in index order.
        """
        wanted = fragment.strip().lower()
        exact: list[tuple[int, str]] = []
        partial: list[tuple[int, str]] = []
        for item_id in self.item_sources:
            item_name = self.item_name(item_id)
            if item_name is None:
                continue
            lowered = item_name.lower()
            if lowered == wanted:
                exact.append((item_id, item_name))
            elif wanted in lowered:
                partial.append((item_id, item_name))
        return exact or partial

    def sources_for_item(
        self,
        item_id: int,
        min_rarity: float = 0.0,
        limit: int | None = None,
    ) -> list[DropSource]:
        """Monsters dropping ``item_id``, best odds first."""
        sources = [s for s in self.item_sources.get(item_id, []) if s.rarity >= min_rarity]
        sources.sort(key=lambda s: s.rarity, reverse=True)
        return sources[:limit] if limit is not None else sources

    @property
    def drop_count(self) -> int:
        return sum(len(sources) for sources in self.item_sources.values())


def _iter_raw_records(data: Any) -> list[Any]:
    if isinstance(data, dict):
        return list(data.values())
    if isinstance(data, list):
        return data
    raise DataIntegrityError(f"Unexpected monster dataset shape: {type(data).__name__}")


def build_monster_index(
    data: Any,
    loaded_at: float,
    origin: str = "remote",
    min_records: int = MIN_DATASET_RECORDS,
) -> MonsterIndex:
    """Build all indexes in one pass over the raw dataset.

    Args:
        data: Decoded dataset, either ``{id: record}`` or ``[record, ...]``.
        loaded_at: Timestamp to stamp on the snapshot.
        origin: Tier the data came from.
        min_records: Minimum number of valid records to accept the data.

    Raises:
        DataIntegrityError: If fewer than ``min_records`` records parse.
    """
    monsters: dict[int, MonsterRecord] = {}
    name_index: dict[str, list[int]] = {}
    item_sources: dict[int, list[DropSource]] = {}
    skipped = 0

    for raw in _iter_raw_records(data):
        try:
            monster = MonsterRecord.model_validate(raw)
        except Exception as e:
            skipped += 1
            label = raw.get("name", "unknown") if isinstance(raw, dict) else "unknown"
            logger.debug(f"Skipping monster record '{label}': {e}")
            continue

        monsters[monster.id] = monster
        name_index.setdefault(monster.name.lower(), []).append(monster.id)
        for drop in monster.drops:
            item_sources.setdefault(drop.id, []).append(DropSource(
                monster_id=monster.id,
                monster_name=monster.name,
                combat_level=monster.combat_level,
                item_name=drop.name,
                rarity=drop.rarity,
                quantity=drop.quantity,
                noted=drop.noted,
                rolls=drop.rolls,
            ))

    if len(monsters) < min_records:
        raise DataIntegrityError(
            f"Monster dataset has only {len(monsters)} valid records "
            f"(minimum {min_records}); refusing to use it"
        )

    if skipped:
        logger.warning(f"Skipped {skipped} malformed monster records")

    return MonsterIndex(
        monsters=monsters,
        name_index=name_index,
        item_sources=item_sources,
        loaded_at=loaded_at,
        origin=origin,
        skipped_records=skipped,
    )


class MonsterDatasetCache:
    """Memory -> disk -> remote resolution of the monster dataset.

    Args:
        snapshot_path: Where the raw dataset is persisted.
        url: Remote location of the complete dataset.
        http: HTTP collaborator.
        clock: Time source (also compared against the snapshot's mtime).
        ttl: Maximum age, in seconds, of both the memory and disk tiers.
        min_records: Plausibility threshold for any loaded dataset.
        dedup: Shared deduplicator for the remote download.
    """

    def __init__(
        self,
        snapshot_path: Path,
        url: str,
        http: OsrsHttpClient,
        clock: Clock | None = None,
        ttl: float = DATASET_TTL,
        min_records: int = MIN_DATASET_RECORDS,
        dedup: RequestDeduplicator | None = None,
    ) -> None:
        self.snapshot_path = Path(snapshot_path)
        self.url = url
        self.http = http
        self.clock = clock or SystemClock()
        self.ttl = ttl
        self.min_records = min_records
        self.dedup = dedup or RequestDeduplicator()
        self._index: MonsterIndex | None = None
        self.last_error: str | None = None

    @property
    def current(self) -> MonsterIndex | None:
        """The in-memory snapshot, fresh or not."""
        return self._index

    async def get_cache(self, force_refresh: bool = False) -> MonsterIndex | None:
        """Return the dataset indexes, loading them from the cheapest fresh tier.

        Failures never raise: a failed refresh is logged and None is returned,
        leaving any previous snapshot (memory and disk) untouched.
        """
        if not force_refresh and self._memory_is_fresh():
            return self._index

        if not force_refresh and self._disk_is_fresh():
            try:
                index = self._load_from_disk()
                self._index = index
                logger.info(
                    f"Loaded monster dataset from disk: {len(index.monsters)} monsters, "
                    f"{len(index.item_sources)} items"
                )
                return index
            except (OSError, ValueError, OsrsMcpError) as e:
                logger.warning(f"Monster snapshot unusable, refetching: {e}")

        try:
            index = await self.dedup.dedupe("monster_dataset", self._fetch_remote)
        except Exception as e:
            self.last_error = str(e)
            logger.warning(f"Monster dataset unavailable: {e}")
            return None

        self.last_error = None
        return index

    def _memory_is_fresh(self) -> bool:
        return self._index is not None and (self.clock.now() - self._index.loaded_at) < self.ttl

    def _disk_is_fresh(self) -> bool:
        if not self.snapshot_path.is_file():
            return False
        age = self.clock.now() - self.snapshot_path.stat().st_mtime
        return age < self.ttl

    def _load_from_disk(self) -> MonsterIndex:
        data = json.loads(self.snapshot_path.read_text(encoding="utf-8"))
        return build_monster_index(
            data,
            loaded_at=self.clock.now(),
            origin="disk",
            min_records=self.min_records,
        )

    async def _fetch_remote(self) -> MonsterIndex:
        logger.info(f"Downloading monster dataset from {self.url}")
        raw = await self.http.get_text(self.url)
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DataIntegrityError(f"Monster dataset is not valid JSON: {e}") from e

        index = build_monster_index(
            data,
            loaded_at=self.clock.now(),
            origin="remote",
            min_records=self.min_records,
        )

        self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        self.snapshot_path.write_text(raw, encoding="utf-8")
        self._index = index
        logger.info(
            f"Refreshed monster dataset: {len(index.monsters)} monsters, "
            f"{len(index.item_sources)} items, {index.drop_count} drop sources"
        )
        return index

    def stats(self) -> dict[str, Any]:
        index = self._index
        if index is None:
            return {"loaded": False, "last_error": self.last_error}
        return {
            "loaded": True,
            "origin": index.origin,
            "age_seconds": round(self.clock.now() - index.loaded_at, 1),
            "monsters": len(index.monsters),
            "names": len(index.name_index),
            "items": len(index.item_sources),
            "drop_sources": index.drop_count,
            "last_error": self.last_error,
        }


__all__ = [
    "DATASET_TTL",
    "MIN_DATASET_RECORDS",
    "MonsterIndex",
    "MonsterDatasetCache",
    "build_monster_index",
]
