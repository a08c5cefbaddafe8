"""Pytest configuration and shared fixtures."""

from contextlib import asynccontextmanager
from pathlib import Path

import pytest
from PIL import Image

from regionguard.models.baseline import BaselineEntry, RegionKey
from regionguard.models.capture import BoundingBox, Capture, OcrTarget, StructureSignature
from regionguard.models.config import PageConfig, RegionConfig, RunSettings, VisualConfig


# ============================================================================
# Model Fixtures
# ============================================================================


@pytest.fixture
def region_key() -> RegionKey:
    return RegionKey("/en/montreal.html", "desktop", "light", "hero")


@pytest.fixture
def region_config() -> RegionConfig:
    return RegionConfig(id="hero", selector="main .hero")


@pytest.fixture
def structure() -> StructureSignature:
    return StructureSignature(
        tag_counts={"p": 2, "a": 1, "h1": 1},
        link_count=1,
        heading_count=1,
        element_count=4,
        text_length=19,
    )


@pytest.fixture
def bbox() -> BoundingBox:
    return BoundingBox(x=10, y=20, width=100, height=50)


@pytest.fixture
def capture(structure: StructureSignature, bbox: BoundingBox) -> Capture:
    return Capture(
        selector_match_count=1,
        text="Welcome to Montreal",
        structure=structure,
        bbox=bbox,
    )


@pytest.fixture
def baseline_entry(region_key: RegionKey, structure: StructureSignature, bbox: BoundingBox) -> BaselineEntry:
    return BaselineEntry(
        page=region_key.page,
        device=region_key.device,
        mode=region_key.mode,
        region=region_key.region,
        text="Welcome to Montreal",
        structure=structure,
        bbox=bbox,
        image="tests/visual/baselines/montreal/hero/desktop-light.png",
    )


@pytest.fixture
def visual_config() -> VisualConfig:
    return VisualConfig(
        pages=[
            PageConfig(
                path="/en/montreal.html",
                label="montreal",
                regions=[
                    RegionConfig(id="hero", selector="main .hero"),
                    RegionConfig(id="nav", selector="nav", ocr=False),
                ],
            )
        ],
    )


@pytest.fixture
def run_settings(tmp_path: Path) -> RunSettings:
    return RunSettings(
        baselines_path=str(tmp_path / "visual" / "baselines.json"),
        baseline_images_dir=str(tmp_path / "visual" / "baselines"),
        allowlist_path=str(tmp_path / "visual" / "allowlist.json"),
        out_dir=str(tmp_path / "build"),
    )


# ============================================================================
# Image Helpers
# ============================================================================


def write_png(path: Path, color=(255, 255, 255, 255), size=(4, 4)) -> Path:
    """Write a solid-colour RGBA PNG."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGBA", size, color).save(path)
    return path


@pytest.fixture
def png_writer():
    return write_png


# ============================================================================
# Fake Collaborators
# ============================================================================


class FakeSession:
    """Serves canned captures; writes a solid PNG for every visible region."""

    def __init__(self, renderer: "FakeRenderer", device: str, mode: str):
        self.renderer = renderer
        self.device = device
        self.mode = mode

    async def open(self, path: str) -> None:
        self.renderer.opened.append((path, self.device, self.mode))

    async def capture(self, region: RegionConfig, image_path: Path) -> Capture:
        template = self.renderer.captures[region.id]
        if template.selector_match_count != 1 or template.bbox is None:
            return template
        color = self.renderer.colors.get(region.id, (255, 255, 255, 255))
        size = self.renderer.sizes.get(region.id, (4, 4))
        if self.renderer.shot_dir is not None:
            image_path = self.renderer.shot_dir / f"{region.id}-{self.device}-{self.mode}.png"
        write_png(image_path, color, size)
        return template.model_copy(update={"image_path": str(image_path)})

    async def ocr_targets(self, region: RegionConfig, image_stem: Path) -> list[OcrTarget]:
        targets = []
        for i, text in enumerate(self.renderer.ocr_texts.get(region.id, []), 1):
            if not text.strip():
                continue
            shot = f"{image_stem}-p{i}.png"
            self.renderer.ocr_images[shot] = text
            targets.append(OcrTarget(index=i, expected_text=text, image_path=shot))
        return targets

    async def annotate(self, regions: list[RegionConfig], image_path: Path) -> None:
        self.renderer.annotated.append(image_path)


class FakeRenderer:
    def __init__(self, captures: dict[str, Capture], devices=("desktop",)):
        self.captures = captures
        self.devices = set(devices)
        self.colors: dict[str, tuple] = {}
        self.sizes: dict[str, tuple] = {}
        self.ocr_texts: dict[str, list[str]] = {}
        self.ocr_images: dict[str, str] = {}
        self.opened: list[tuple[str, str, str]] = []
        self.annotated: list[Path] = []
        # When set, screenshots land here instead of the requested path.
        self.shot_dir: Path | None = None

    def has_device(self, name: str) -> bool:
        return name in self.devices

    @asynccontextmanager
    async def session(self, device: str, mode: str):
        yield FakeSession(self, device, mode)


class FakeRecognizer:
    """Reads back the text each OCR screenshot was taken of, unless overridden."""

    def __init__(self, renderer: FakeRenderer, misreads: dict[str, str] | None = None):
        self.renderer = renderer
        self.misreads = misreads or {}
        self.calls: list[tuple[Path, str]] = []

    async def recognize(self, image_path: Path, lang: str) -> str:
        self.calls.append((image_path, lang))
        expected = self.renderer.ocr_images.get(str(image_path), "")
        return self.misreads.get(expected, expected)
