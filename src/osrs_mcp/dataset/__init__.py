"""
Structured monster dataset: models, two-tier cache and derived indexes.
"""

from .models import DropRecord, DropSource, MonsterRecord
from .monsters import (
    DATASET_TTL,
    MIN_DATASET_RECORDS,
    MonsterDatasetCache,
    MonsterIndex,
    build_monster_index,
)

__all__ = [
    "DropRecord",
    "DropSource",
    "MonsterRecord",
    "DATASET_TTL",
    "MIN_DATASET_RECORDS",
    "MonsterDatasetCache",
    "MonsterIndex",
    "build_monster_index",
]
