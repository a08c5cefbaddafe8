"""Run orchestrator — walks pages x devices x modes x regions and builds a verdict."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from regionguard.allowlist.matcher import classify
from regionguard.baseline.store import BaselineStore, lookup, merge_entries
from regionguard.capture.renderer import Renderer, RenderSession, TextRecognizer
from regionguard.comparator.comparator import check_availability, compare_region
from regionguard.imaging.raster import load_png, save_png
from regionguard.models.allowlist import Allowlist
from regionguard.models.baseline import BaselineDocument, BaselineEntry, RegionKey
from regionguard.models.capture import OcrSample
from regionguard.models.change import PLACEHOLDER, Change, Decision, Evidence, RunVerdict
from regionguard.models.config import PageConfig, RegionConfig, RunSettings, VisualConfig, resolve_thresholds
from regionguard.ocr.scorer import assess_legibility

logger = logging.getLogger(__name__)


def _now() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


@dataclass
class RegionOutcome:
    decisions: list[Decision] = field(default_factory=list)
    new_baseline: BaselineEntry | None = None


class Orchestrator:
    """Drives the rendering and OCR collaborators and classifies every change.

    Regions are processed one at a time inside one session per
    (page, device, mode); a collaborator exception aborts the run.
    """

    def __init__(
        self,
        settings: RunSettings,
        config: VisualConfig,
        renderer: Renderer,
        recognizer: TextRecognizer | None = None,
        allowlist: Allowlist | None = None,
        store: BaselineStore | None = None,
    ):
        self.settings = settings
        self.config = config
        self.renderer = renderer
        self.recognizer = recognizer if settings.ocr else None
        self.allowlist = allowlist if allowlist is not None else Allowlist.load(settings.allowlist_path)
        self.store = store or BaselineStore(
            Path(settings.baselines_path), Path(settings.baseline_images_dir)
        )
        self.out_dir = Path(settings.out_dir)

    def _artifact(self, kind: str, page: PageConfig, key: RegionKey, suffix: str = ".png") -> Path:
        return self.out_dir / kind / page.slug / key.region / f"{key.device}-{key.mode}{suffix}"

    def _decide(self, change: Change, evidence: Evidence | None = None) -> Decision:
        decision = classify(change, self.allowlist.allow, evidence)
        logger.debug("  %s %s", "ALLOW" if decision.allowed else "FAIL", change.summary())
        return decision

    async def run(self) -> RunVerdict:
        verdict = RunVerdict(
            profile=self.settings.profile,
            update_baseline=self.settings.update_baseline,
            started_at=_now(),
        )
        doc = self.store.load()
        self.out_dir.mkdir(parents=True, exist_ok=True)

        try:
            profile = self.config.get_profile(self.settings.profile)
        except KeyError:
            change = Change(
                type="config", page=PLACEHOLDER, device=PLACEHOLDER, mode=PLACEHOLDER,
                region=PLACEHOLDER, detail=f'Unknown profile "{self.settings.profile}"',
            )
            verdict.decisions.append(self._decide(change))
            verdict.completed_at = _now()
            return verdict

        for page in self.config.active_pages(profile):
            regions = self.config.regions_for(page, profile)
            for device in self.config.devices_for(page, profile):
                if not self.renderer.has_device(device):
                    change = Change(
                        type="config", page=page.path, device=device, mode=PLACEHOLDER,
                        region=PLACEHOLDER, detail=f"Unknown device preset: {device}",
                    )
                    verdict.decisions.append(self._decide(change))
                    continue
                for mode in self.config.modes_for(page, profile):
                    logger.info("%s | %s | %s", page.path, device, mode)
                    async with self.renderer.session(device, mode) as session:
                        await session.open(page.path)
                        for region in regions:
                            outcome = await self._verify_region(session, page, device, mode, region, doc)
                            verdict.decisions.extend(outcome.decisions)
                            if outcome.new_baseline:
                                verdict.new_baselines.append(outcome.new_baseline)
                        annotated = self.out_dir / "annotated" / f"{page.slug}-{device}-{mode}.png"
                        await session.annotate(regions, annotated)

        if self.settings.update_baseline:
            self.store.save(merge_entries(doc, verdict.new_baselines))
            logger.info("Baseline updated (%d entries)", len(verdict.new_baselines))

        verdict.completed_at = _now()
        return verdict

    async def _verify_region(
        self,
        session: RenderSession,
        page: PageConfig,
        device: str,
        mode: str,
        region: RegionConfig,
        doc: BaselineDocument,
    ) -> RegionOutcome:
        key = RegionKey(page.path, device, mode, region.id)
        logger.debug("  region %s (%s)", region.id, region.selector)
        outcome = RegionOutcome()

        capture = await session.capture(region, self._artifact("current", page, key))
        unavailable = check_availability(key, region, capture)
        if unavailable:
            outcome.decisions.append(self._decide(unavailable))
            return outcome

        # The renderer reports where it actually wrote the screenshot.
        current_path = Path(capture.image_path) if capture.image_path else None

        if self.settings.update_baseline:
            if current_path is None:
                raise RuntimeError(f"Renderer returned no screenshot for {key}")
            stored = self.store.store_image(current_path, page.slug, key)
            outcome.new_baseline = BaselineEntry(
                page=key.page,
                device=key.device,
                mode=key.mode,
                region=key.region,
                text=capture.text,
                structure=capture.structure,
                bbox=capture.bbox,
                image=stored.as_posix(),
            )
            return outcome

        thresholds = resolve_thresholds(region, self.config.defaults)
        current_image = str(current_path) if current_path else None
        current_only = Evidence(current_image=current_image)

        if region.ocr_enabled and self.recognizer is not None:
            stem = self._artifact("ocr", page, key, suffix="")
            samples = []
            for target in await session.ocr_targets(region, stem):
                text = await self.recognizer.recognize(Path(target.image_path), page.ocr_lang_for(region))
                samples.append(OcrSample(expected=target.expected_text, actual=text))
            assessment = assess_legibility(key, samples, thresholds.min_ocr_score)
            if assessment.change:
                outcome.decisions.append(self._decide(assessment.change, current_only))
        elif not region.ocr:
            logger.debug("    OCR skipped for region")

        baseline = lookup(doc, key)
        baseline_path = self.store.entry_image_path(baseline, page.slug) if baseline else None
        has_baseline_image = baseline_path is not None and baseline_path.exists()
        if baseline is not None and not has_baseline_image:
            logger.warning("Baseline image missing for %s: %s", key, baseline_path)

        result = compare_region(
            key,
            region,
            capture,
            baseline,
            baseline_image=load_png(baseline_path) if has_baseline_image else None,
            current_image=load_png(current_path) if has_baseline_image and current_path else None,
            defaults=self.config.defaults,
        )

        diff_path = None
        if result.pixel_diff and result.pixel_diff.mask:
            diff_path = save_png(result.pixel_diff.mask, self._artifact("diff", page, key))

        for change in result.changes:
            if change.type in ("baseline-missing", "baseline-image-missing"):
                evidence = current_only
            else:
                evidence = Evidence(
                    baseline_image=str(baseline_path) if has_baseline_image else None,
                    current_image=current_image,
                    diff_image=str(diff_path) if diff_path and change.type == "visual" else None,
                )
            outcome.decisions.append(self._decide(change, evidence))
        return outcome
