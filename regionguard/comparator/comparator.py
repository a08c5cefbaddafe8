"""Region comparator — turns a capture and its baseline into typed changes.

Checks run in a fixed order. Selector cardinality, hidden regions and a
missing baseline end the comparison for that region; every later check runs
independently of the others, except the pixel diff which needs a baseline
image. Nothing here touches the filesystem: images arrive already decoded.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from regionguard.imaging.pixel_diff import PixelDiff, PixelGrid, diff_pixels
from regionguard.models.baseline import BaselineEntry, RegionKey
from regionguard.models.capture import BoundingBox, Capture, StructureSignature
from regionguard.models.change import Change
from regionguard.models.config import Defaults, RegionConfig, resolve_thresholds
from regionguard.text.fuzzy import format_score, similarity
from regionguard.text.normalizer import normalize_for_comparison, normalize_whitespace, summarize_text

logger = logging.getLogger(__name__)

LAYOUT_MODES = ("position", "size", "none")


@dataclass
class RegionComparison:
    changes: list[Change] = field(default_factory=list)
    pixel_diff: PixelDiff | None = None

    @property
    def types(self) -> list[str]:
        return [c.type for c in self.changes]


def check_availability(key: RegionKey, region: RegionConfig, capture: Capture) -> Change | None:
    """Return the terminal change for an unusable region, if any."""
    count = capture.selector_match_count
    if count == 0:
        return Change.for_key("missing-region", key, f"Selector not found: {region.selector}")
    if count > 1:
        return Change.for_key("ambiguous-region", key, f"Selector matched {count} elements: {region.selector}")
    box = capture.bbox
    if box is None or box.width <= 0 or box.height <= 0:
        return Change.for_key("hidden-region", key, "Bounding box not available.")
    return None


def structure_fingerprint(structure: StructureSignature | None) -> str:
    if structure is None:
        return "{}"
    return json.dumps(structure.model_dump(by_alias=True), sort_keys=True)


def _bbox_json(box: BoundingBox) -> str:
    return json.dumps(box.model_dump(), separators=(",", ":"))


def _check_text(key: RegionKey, capture: Capture, baseline: BaselineEntry) -> Change | None:
    expected = normalize_whitespace(baseline.text)
    actual = normalize_whitespace(capture.text)
    if expected == actual:
        return None
    score = similarity(normalize_for_comparison(expected), normalize_for_comparison(actual))
    return Change.for_key(
        "text",
        key,
        f'Text changed ({format_score(score)} match). '
        f'Expected: "{summarize_text(expected)}" Actual: "{summarize_text(actual)}"',
    )


def _check_structure(key: RegionKey, capture: Capture, baseline: BaselineEntry) -> Change | None:
    if structure_fingerprint(baseline.structure) == structure_fingerprint(capture.structure):
        return None
    return Change.for_key("structure", key, "Structure signature changed.")


def _check_layout(
    key: RegionKey, region: RegionConfig, capture: Capture, baseline: BaselineEntry, max_delta: float
) -> list[Change]:
    mode = region.layout
    if mode == "none":
        return []
    if mode not in LAYOUT_MODES:
        return [Change.for_key("config", key, f"Unknown layout mode: {mode}")]

    before = baseline.bbox or BoundingBox()
    after = capture.bbox or BoundingBox()
    dw = abs(before.width - after.width)
    dh = abs(before.height - after.height)
    if mode == "size":
        delta = max(dw, dh)
        label = "BBox size delta"
    else:
        delta = max(abs(before.x - after.x), abs(before.y - after.y), dw, dh)
        label = "BBox delta"

    delta = round(delta, 2)
    if delta <= max_delta:
        return []
    return [Change.for_key(
        "layout",
        key,
        f"{label} {delta:g}px exceeds {max_delta:g}px "
        f"(baseline {_bbox_json(before)} current {_bbox_json(after)})",
    )]


def compare_region(
    key: RegionKey,
    region: RegionConfig,
    capture: Capture,
    baseline: BaselineEntry | None,
    baseline_image: PixelGrid | None = None,
    current_image: PixelGrid | None = None,
    defaults: Defaults | None = None,
) -> RegionComparison:
    """Compare one captured region against its accepted baseline.

    ``baseline_image`` is None when no accepted raster exists for the key.
    """
    result = RegionComparison()

    unavailable = check_availability(key, region, capture)
    if unavailable:
        result.changes.append(unavailable)
        return result

    if baseline is None:
        result.changes.append(Change.for_key("baseline-missing", key, f"Missing baseline entry for {key}"))
        return result

    thresholds = resolve_thresholds(region, defaults)

    text_change = _check_text(key, capture, baseline)
    if text_change:
        result.changes.append(text_change)

    structure_change = _check_structure(key, capture, baseline)
    if structure_change:
        result.changes.append(structure_change)

    result.changes.extend(_check_layout(key, region, capture, baseline, thresholds.max_bbox_delta))

    if baseline_image is None:
        result.changes.append(Change.for_key(
            "baseline-image-missing", key, f"Missing baseline image at {baseline.image or key}"
        ))
        return result

    if current_image is None:
        # A visible region always has a screenshot; treat its absence as a size mismatch.
        result.pixel_diff = PixelDiff(diff_ratio=1.0, size_mismatch=True)
    else:
        result.pixel_diff = diff_pixels(baseline_image, current_image, thresholds.diff_threshold)

    pixel_diff = result.pixel_diff
    if pixel_diff.size_mismatch:
        result.changes.append(Change.for_key("visual", key, "Baseline/current image size mismatch."))
    elif pixel_diff.diff_ratio > thresholds.max_diff_percent:
        result.changes.append(Change.for_key(
            "visual",
            key,
            f"Pixel diff {pixel_diff.diff_ratio * 100:.2f}% exceeds {thresholds.max_diff_percent * 100:.2f}%",
        ))
    else:
        logger.debug("Visual diff %s %.2f%%", key, pixel_diff.diff_ratio * 100)

    return result
