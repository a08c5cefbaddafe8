"""Capture data structures produced by the rendering collaborator."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class BoundingBox(BaseModel):
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @classmethod
    def rounded(cls, box: dict) -> "BoundingBox":
        """Build a box from a raw Playwright bounding box, rounded to 2 decimals."""
        return cls(
            x=round(box["x"], 2),
            y=round(box["y"], 2),
            width=round(box["width"], 2),
            height=round(box["height"], 2),
        )


class StructureSignature(BaseModel):
    """Counts describing the DOM subtree of a region."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tag_counts: dict[str, int] = Field(default_factory=dict)
    link_count: int = 0
    image_count: int = 0
    button_count: int = 0
    heading_count: int = 0
    list_item_count: int = 0
    element_count: int = 0
    text_length: int = 0

    @field_validator("tag_counts")
    @classmethod
    def sort_tags(cls, v: dict[str, int]) -> dict[str, int]:
        return dict(sorted(v.items()))


class Capture(BaseModel):
    """Observed state of one region in one run. Read-only to the engine."""

    selector_match_count: int
    text: str = ""
    structure: Optional[StructureSignature] = None
    bbox: Optional[BoundingBox] = None
    image_path: Optional[str] = None  # element screenshot written by the renderer


class OcrTarget(BaseModel):
    """One sub-element of a region captured for OCR."""

    index: int  # 1-based, used in artifact names
    expected_text: str
    image_path: str


class OcrSample(BaseModel):
    expected: str
    actual: str
