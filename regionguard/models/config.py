"""Configuration models for visual verification runs."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_OCR_SELECTOR = "p"
DEFAULT_OCR_LANG = "eng"
DEFAULT_PROFILE = "full"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Defaults(_CamelModel):
    max_diff_percent: float = 0.02
    max_bbox_delta: float = Field(default=4, alias="maxBBoxDelta")
    min_ocr_score: float = 0.97
    diff_threshold: float = 0.1


class RegionConfig(_CamelModel):
    id: str
    selector: str
    # None disables OCR for the region, "" scores the region element itself
    ocr_selector: Optional[str] = DEFAULT_OCR_SELECTOR
    ocr: bool = True
    ocr_lang: Optional[str] = None
    min_ocr_score: Optional[float] = None
    max_diff_percent: Optional[float] = None
    max_bbox_delta: Optional[float] = Field(default=None, alias="maxBBoxDelta")
    diff_threshold: Optional[float] = None
    layout: str = "position"  # position, size, none

    @property
    def ocr_enabled(self) -> bool:
        return self.ocr and self.ocr_selector is not None


@dataclass(frozen=True)
class Thresholds:
    max_diff_percent: float
    max_bbox_delta: float
    min_ocr_score: float
    diff_threshold: float


def resolve_thresholds(region: RegionConfig, defaults: Defaults | None = None) -> Thresholds:
    """Region overrides win over configured defaults."""
    defaults = defaults or Defaults()

    def pick(value: Optional[float], fallback: float) -> float:
        return fallback if value is None else value

    return Thresholds(
        max_diff_percent=pick(region.max_diff_percent, defaults.max_diff_percent),
        max_bbox_delta=pick(region.max_bbox_delta, defaults.max_bbox_delta),
        min_ocr_score=pick(region.min_ocr_score, defaults.min_ocr_score),
        diff_threshold=pick(region.diff_threshold, defaults.diff_threshold),
    )


def slugify_path(path: str) -> str:
    return re.sub(r"[^\w]+", "-", path).strip("-") or "home"


class PageConfig(_CamelModel):
    path: str
    label: Optional[str] = None
    devices: Optional[list[str]] = None
    modes: Optional[list[str]] = None
    ocr_lang: Optional[str] = None
    regions: list[RegionConfig] = Field(default_factory=list)

    @property
    def slug(self) -> str:
        """Label used in artifact paths."""
        return self.label or slugify_path(self.path)

    def ocr_lang_for(self, region: RegionConfig) -> str:
        return region.ocr_lang or self.ocr_lang or DEFAULT_OCR_LANG

    def matches_profile_entry(self, entry: str) -> bool:
        entry = entry.strip()
        if not entry:
            return False
        if entry.startswith("/"):
            return entry == self.path
        if self.label and entry == self.label:
            return True
        return entry == slugify_path(self.path)


class ProfileConfig(_CamelModel):
    pages: list[str] = Field(default_factory=list)
    devices: Optional[list[str]] = None
    modes: Optional[list[str]] = None
    regions: Optional[list[str]] = None


class VisualConfig(_CamelModel):
    pages: list[PageConfig] = Field(default_factory=list)
    profiles: dict[str, ProfileConfig] = Field(default_factory=dict)
    defaults: Defaults = Field(default_factory=Defaults)
    devices: Optional[list[str]] = None
    modes: Optional[list[str]] = None

    def get_profile(self, name: str) -> ProfileConfig | None:
        """Return the named profile. Raises KeyError for unknown non-default names."""
        profile = self.profiles.get(name)
        if profile is None and name != DEFAULT_PROFILE:
            raise KeyError(name)
        return profile

    def active_pages(self, profile: ProfileConfig | None) -> list[PageConfig]:
        entries = [e for e in (profile.pages if profile else []) if e.strip()]
        if not entries:
            return list(self.pages)
        return [p for p in self.pages if any(p.matches_profile_entry(e) for e in entries)]

    def devices_for(self, page: PageConfig, profile: ProfileConfig | None) -> list[str]:
        return page.devices or (profile.devices if profile else None) or self.devices or ["desktop"]

    def modes_for(self, page: PageConfig, profile: ProfileConfig | None) -> list[str]:
        return page.modes or (profile.modes if profile else None) or self.modes or ["light"]

    def regions_for(self, page: PageConfig, profile: ProfileConfig | None) -> list[RegionConfig]:
        wanted = profile.regions if profile else None
        if not wanted:
            return list(page.regions)
        return [r for r in page.regions if r.id in wanted]

    @classmethod
    def load(cls, path: str | Path) -> "VisualConfig":
        """Load region configuration from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)


class RunSettings(BaseModel):
    """Paths and switches for one verification run."""

    baselines_path: str = "tests/visual/baselines.json"
    baseline_images_dir: str = "tests/visual/baselines"
    allowlist_path: str = "tests/visual/allowlist.json"
    out_dir: str = "build/visual"
    base_url: str = "http://127.0.0.1:4173"
    profile: str = DEFAULT_PROFILE
    update_baseline: bool = False
    ocr: bool = True
    report_path: Optional[str] = None
    headless: bool = True
    tesseract_cmd: str = Field(default_factory=lambda: os.environ.get("TESSERACT_BIN", "tesseract"))
    tesseract_psm: int = 6
