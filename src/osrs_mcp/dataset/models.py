"""
Data models for the monster dataset.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DropRecord(BaseModel):
    """One entry of a monster's drop table."""
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    quantity: str | None = None
    noted: bool = False
    rarity: float = Field(default=0.0, description="Probability per roll, 0..1")
    rolls: int = 1

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity_as_text(cls, value: Any) -> str | None:
        if value is None:
            return None
        return str(value)

    @field_validator("noted", mode="before")
    @classmethod
    def _noted_default(cls, value: Any) -> bool:
        return bool(value)

    @field_validator("rarity", mode="before")
    @classmethod
    def _clamp_rarity(cls, value: Any) -> float:
        if value is None:
            return 0.0
        return min(max(float(value), 0.0), 1.0)

    @field_validator("rolls", mode="before")
    @classmethod
    def _default_rolls(cls, value: Any) -> int:
        return 1 if value is None else int(value)


class MonsterRecord(BaseModel):
    """A monster definition with its drops."""
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    combat_level: int | None = None
    hitpoints: int | None = None
    wiki_url: str | None = None
    drops: list[DropRecord] = Field(default_factory=list)


class DropSource(BaseModel):
    """A monster that can drop a given item (inverted index entry)."""
    monster_id: int
    monster_name: str
    combat_level: int | None = None
    item_name: str
    rarity: float
    quantity: str | None = None
    noted: bool = False
    rolls: int = 1


__all__ = ["DropRecord", "MonsterRecord", "DropSource"]
