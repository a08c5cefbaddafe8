"""Capability interfaces for the collaborators the orchestrator drives."""

from __future__ import annotations

from pathlib import Path
from typing import AsyncContextManager, Protocol

from regionguard.models.capture import Capture, OcrTarget
from regionguard.models.config import RegionConfig


class RenderSession(Protocol):
    """One loaded page for a fixed (device, mode) pair."""

    async def open(self, path: str) -> None: ...

    async def capture(self, region: RegionConfig, image_path: Path) -> Capture: ...

    async def ocr_targets(self, region: RegionConfig, image_stem: Path) -> list[OcrTarget]: ...

    async def annotate(self, regions: list[RegionConfig], image_path: Path) -> None: ...


class Renderer(Protocol):
    def has_device(self, name: str) -> bool: ...

    def session(self, device: str, mode: str) -> AsyncContextManager[RenderSession]: ...


class TextRecognizer(Protocol):
    async def recognize(self, image_path: Path, lang: str) -> str: ...
