"""Baseline document data structures."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from regionguard.models.capture import BoundingBox, StructureSignature


@dataclass(frozen=True, order=True)
class RegionKey:
    page: str
    device: str
    mode: str
    region: str

    def __str__(self) -> str:
        return f"{self.page}::{self.device}::{self.mode}::{self.region}"


class BaselineEntry(BaseModel):
    """Accepted capture for one region key."""

    page: str
    device: str
    mode: str
    region: str
    text: str = ""
    structure: Optional[StructureSignature] = None
    bbox: Optional[BoundingBox] = None
    image: str = ""  # path to the accepted PNG

    @property
    def key(self) -> RegionKey:
        return RegionKey(self.page, self.device, self.mode, self.region)


class BaselineDocument(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    generated_at: Optional[str] = None
    entries: list[BaselineEntry] = Field(default_factory=list)

    @field_validator("entries")
    @classmethod
    def unique_keys(cls, v: list[BaselineEntry]) -> list[BaselineEntry]:
        # Later entries win, first-seen position is kept.
        by_key: dict[RegionKey, BaselineEntry] = {}
        for entry in v:
            by_key[entry.key] = entry
        return list(by_key.values())

    def index(self) -> dict[RegionKey, BaselineEntry]:
        return {entry.key: entry for entry in self.entries}
