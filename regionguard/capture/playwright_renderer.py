"""Playwright renderer — loads pages and captures configured regions."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from playwright.async_api import Browser, Locator, Page, Playwright, async_playwright

from regionguard.models.capture import BoundingBox, Capture, OcrTarget, StructureSignature
from regionguard.models.config import RegionConfig
from regionguard.text.normalizer import normalize_whitespace

logger = logging.getLogger(__name__)

DESKTOP = {"viewport": {"width": 1280, "height": 720}, "device_scale_factor": 1}
# Preset name -> Playwright device descriptor name
PLAYWRIGHT_DEVICES = {
    "iphone-13": "iPhone 13",
    "pixel-5": "Pixel 5",
}

OUTLINE_COLORS = ["#ff4d4f", "#faad14", "#52c41a", "#1890ff", "#722ed1", "#13c2c2"]

_STRUCTURE_SCRIPT = """
(node) => {
    const counts = {};
    const all = Array.from(node.querySelectorAll('*'));
    all.forEach((child) => {
        const tag = child.tagName.toLowerCase();
        counts[tag] = (counts[tag] || 0) + 1;
    });
    return {
        tagCounts: counts,
        linkCount: node.querySelectorAll('a').length,
        imageCount: node.querySelectorAll('img').length,
        buttonCount: node.querySelectorAll('button').length,
        headingCount: node.querySelectorAll('h1,h2,h3,h4,h5,h6').length,
        listItemCount: node.querySelectorAll('li').length,
        elementCount: all.length,
        textLength: node.innerText.replace(/\\s+/g, ' ').trim().length,
    };
}
"""

_ANNOTATE_SCRIPT = """
({ regions, colors }) => {
    regions.forEach((region, index) => {
        document.querySelectorAll(region.selector).forEach((el) => {
            el.setAttribute('data-visual-region', region.id);
            el.style.outline = `2px solid ${colors[index % colors.length]}`;
            el.style.outlineOffset = '2px';
        });
    });
}
"""

_CLEAR_ANNOTATIONS_SCRIPT = """
() => {
    document.querySelectorAll('[data-visual-region]').forEach((el) => {
        el.style.outline = '';
        el.style.outlineOffset = '';
        el.removeAttribute('data-visual-region');
    });
}
"""


class PlaywrightSession:
    """A page in a browser context bound to one device preset and color scheme."""

    def __init__(self, page: Page, base_url: str):
        self.page = page
        self.base_url = base_url.rstrip("/")

    async def open(self, path: str) -> None:
        url = f"{self.base_url}{path}"
        logger.debug("Navigating to %s", url)
        await self.page.goto(url, wait_until="networkidle")
        await self.page.evaluate("() => document.fonts.ready")

    async def capture(self, region: RegionConfig, image_path: Path) -> Capture:
        locator = self.page.locator(region.selector)
        count = await locator.count()
        if count != 1:
            return Capture(selector_match_count=count)

        element = locator.first
        box = await element.bounding_box()
        if not box or box["width"] <= 0 or box["height"] <= 0:
            return Capture(selector_match_count=count)

        text = normalize_whitespace(await element.inner_text())
        structure = StructureSignature.model_validate(await element.evaluate(_STRUCTURE_SCRIPT))
        image_path.parent.mkdir(parents=True, exist_ok=True)
        await element.screenshot(path=str(image_path))
        return Capture(
            selector_match_count=count,
            text=text,
            structure=structure,
            bbox=BoundingBox.rounded(box),
            image_path=str(image_path),
        )

    async def ocr_targets(self, region: RegionConfig, image_stem: Path) -> list[OcrTarget]:
        """Screenshot each OCR sub-target; fall back to the whole region."""
        element = self.page.locator(region.selector).first
        targets: list[Locator] = [element]
        if region.ocr_selector:
            sub = element.locator(region.ocr_selector)
            sub_count = await sub.count()
            if sub_count > 0:
                targets = [sub.nth(i) for i in range(sub_count)]

        captured = []
        for i, target in enumerate(targets, 1):
            expected = normalize_whitespace(await target.inner_text())
            if not expected:
                continue
            shot = image_stem.parent / f"{image_stem.name}-p{i}.png"
            shot.parent.mkdir(parents=True, exist_ok=True)
            await target.screenshot(path=str(shot))
            captured.append(OcrTarget(index=i, expected_text=expected, image_path=str(shot)))
        return captured

    async def annotate(self, regions: list[RegionConfig], image_path: Path) -> None:
        """Full-page screenshot with every region outlined."""
        payload = {
            "regions": [{"id": r.id, "selector": r.selector} for r in regions],
            "colors": OUTLINE_COLORS,
        }
        await self.page.evaluate(_ANNOTATE_SCRIPT, payload)
        image_path.parent.mkdir(parents=True, exist_ok=True)
        await self.page.screenshot(path=str(image_path), full_page=True)
        await self.page.evaluate(_CLEAR_ANNOTATIONS_SCRIPT)


class PlaywrightRenderer:
    """Owns the Chromium process for a run.

    Use as an async context manager; sessions are opened per (device, mode).
    """

    def __init__(self, base_url: str, headless: bool = True):
        self.base_url = base_url
        self.headless = headless
        self._playwright_cm = None
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    async def __aenter__(self) -> "PlaywrightRenderer":
        self._playwright_cm = async_playwright()
        self._playwright = await self._playwright_cm.__aenter__()
        logger.debug("Launching Chromium (headless=%s)", self.headless)
        self._browser = await self._playwright.chromium.launch(headless=self.headless)
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._browser:
            await self._browser.close()
        if self._playwright_cm:
            await self._playwright_cm.__aexit__(*exc_info)
        self._browser = None
        self._playwright = None

    def has_device(self, name: str) -> bool:
        return name == "desktop" or name in PLAYWRIGHT_DEVICES

    def device_options(self, name: str) -> dict:
        if name == "desktop":
            return dict(DESKTOP)
        if not self._playwright:
            raise RuntimeError("Renderer not started")
        options = dict(self._playwright.devices[PLAYWRIGHT_DEVICES[name]])
        options.pop("default_browser_type", None)
        return options

    @asynccontextmanager
    async def session(self, device: str, mode: str) -> AsyncIterator[PlaywrightSession]:
        if not self._browser:
            raise RuntimeError("Renderer not started")
        context = await self._browser.new_context(**self.device_options(device), color_scheme=mode)
        try:
            page = await context.new_page()
            yield PlaywrightSession(page, self.base_url)
        finally:
            await context.close()
