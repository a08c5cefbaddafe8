"""Change, decision and verdict data structures."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from regionguard.models.baseline import BaselineEntry, RegionKey

ChangeType = Literal[
    "missing-region",
    "ambiguous-region",
    "hidden-region",
    "baseline-missing",
    "baseline-image-missing",
    "text",
    "structure",
    "layout",
    "visual",
    "ocr",
    "ocr-missing",
    "config",
]

PLACEHOLDER = "-"


class Change(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ChangeType
    page: str
    device: str
    mode: str
    region: str
    detail: str = ""

    @classmethod
    def for_key(cls, change_type: ChangeType, key: RegionKey, detail: str) -> "Change":
        return cls(
            type=change_type,
            page=key.page,
            device=key.device,
            mode=key.mode,
            region=key.region,
            detail=detail,
        )

    def summary(self) -> str:
        return f"{self.type} {self.page} {self.device} {self.mode} {self.region} {self.detail}".strip()


class Evidence(BaseModel):
    model_config = ConfigDict(frozen=True)

    baseline_image: Optional[str] = None
    current_image: Optional[str] = None
    diff_image: Optional[str] = None


class Decision(BaseModel):
    """A change together with its allowlist outcome."""

    model_config = ConfigDict(frozen=True)

    change: Change
    allowed: bool
    evidence: Evidence = Field(default_factory=Evidence)


class RunVerdict(BaseModel):
    profile: str = "full"
    update_baseline: bool = False
    started_at: str = ""
    completed_at: str = ""
    decisions: list[Decision] = Field(default_factory=list)
    new_baselines: list[BaselineEntry] = Field(default_factory=list)

    @property
    def allowed(self) -> list[Change]:
        return [d.change for d in self.decisions if d.allowed]

    @property
    def failing(self) -> list[Change]:
        return [d.change for d in self.decisions if not d.allowed]

    @property
    def success(self) -> bool:
        return not self.failing
