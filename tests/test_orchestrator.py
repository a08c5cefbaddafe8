"""Tests for the run orchestrator, driven by fake rendering and OCR collaborators."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import FakeRecognizer, FakeRenderer
from regionguard.baseline.store import BaselineStore
from regionguard.imaging.raster import load_png
from regionguard.models.allowlist import Allowlist, AllowlistRule
from regionguard.models.baseline import BaselineDocument, BaselineEntry
from regionguard.models.capture import BoundingBox, Capture, StructureSignature
from regionguard.models.config import ProfileConfig
from regionguard.ocr.tesseract import RecognizerError
from regionguard.orchestrator import Orchestrator

BLACK = (0, 0, 0, 255)


@pytest.fixture
def renderer(capture) -> FakeRenderer:
    nav = Capture(
        selector_match_count=1,
        text="Home About",
        structure=StructureSignature(tag_counts={"a": 2}, link_count=2, element_count=2, text_length=10),
        bbox=BoundingBox(x=0, y=0, width=1280, height=60),
    )
    fake = FakeRenderer({"hero": capture, "nav": nav})
    fake.ocr_texts["hero"] = ["Welcome to Montreal"]
    return fake


async def _accept_baseline(settings, config, renderer):
    update = settings.model_copy(update={"update_baseline": True, "ocr": False})
    verdict = await Orchestrator(update, config, renderer).run()
    assert verdict.success
    return verdict


def _types(verdict):
    return [d.change.type for d in verdict.decisions]


class TestUpdateBaseline:
    @pytest.mark.asyncio
    async def test_writes_document_and_images(self, run_settings, visual_config, renderer):
        verdict = await _accept_baseline(run_settings, visual_config, renderer)

        assert verdict.update_baseline
        assert len(verdict.new_baselines) == 2
        data = json.loads(Path(run_settings.baselines_path).read_text())
        assert data["generatedAt"]
        assert [e["region"] for e in data["entries"]] == ["hero", "nav"]
        hero_image = Path(run_settings.baseline_images_dir) / "montreal" / "hero" / "desktop-light.png"
        assert hero_image.exists()
        assert data["entries"][0]["image"] == hero_image.as_posix()
        assert renderer.opened == [("/en/montreal.html", "desktop", "light")]
        assert renderer.annotated == [Path(run_settings.out_dir) / "annotated" / "montreal-desktop-light.png"]

    @pytest.mark.asyncio
    async def test_stores_screenshot_where_renderer_wrote_it(self, run_settings, visual_config, renderer, tmp_path):
        renderer.shot_dir = tmp_path / "shots"
        renderer.colors["hero"] = BLACK

        await _accept_baseline(run_settings, visual_config, renderer)

        stored = Path(run_settings.baseline_images_dir) / "montreal" / "hero" / "desktop-light.png"
        assert stored.read_bytes() == (tmp_path / "shots" / "hero-desktop-light.png").read_bytes()
        assert not (Path(run_settings.out_dir) / "current" / "montreal" / "hero" / "desktop-light.png").exists()

    @pytest.mark.asyncio
    async def test_keeps_unrelated_entries(self, run_settings, visual_config, renderer):
        store = BaselineStore(Path(run_settings.baselines_path), Path(run_settings.baseline_images_dir))
        store.save(BaselineDocument(entries=[
            BaselineEntry(page="/en/other.html", device="desktop", mode="light", region="hero"),
        ]))
        await _accept_baseline(run_settings, visual_config, renderer)
        assert [e.page for e in store.load().entries] == ["/en/montreal.html", "/en/montreal.html", "/en/other.html"]

    @pytest.mark.asyncio
    async def test_unavailable_region_not_accepted(self, run_settings, visual_config, renderer):
        renderer.captures["nav"] = Capture(selector_match_count=0)
        update = run_settings.model_copy(update={"update_baseline": True, "ocr": False})
        verdict = await Orchestrator(update, visual_config, renderer).run()
        assert _types(verdict) == ["missing-region"]
        assert [e.region for e in verdict.new_baselines] == ["hero"]


class TestVerify:
    @pytest.mark.asyncio
    async def test_unchanged_site_passes(self, run_settings, visual_config, renderer):
        await _accept_baseline(run_settings, visual_config, renderer)
        recognizer = FakeRecognizer(renderer)

        verdict = await Orchestrator(run_settings, visual_config, renderer, recognizer).run()

        assert verdict.decisions == []
        assert verdict.success
        assert verdict.started_at and verdict.completed_at
        # nav has OCR disabled
        assert len(recognizer.calls) == 1
        assert recognizer.calls[0][1] == "eng"

    @pytest.mark.asyncio
    async def test_allowlisted_text_change(self, run_settings, visual_config, renderer):
        await _accept_baseline(run_settings, visual_config, renderer)
        renderer.captures["hero"] = renderer.captures["hero"].model_copy(update={"text": "Bienvenue à Montréal"})
        renderer.ocr_texts["hero"] = ["Bienvenue à Montréal"]
        allowlist = Allowlist(allow=[AllowlistRule(region="hero", type="text")])

        verdict = await Orchestrator(
            run_settings, visual_config, renderer, FakeRecognizer(renderer), allowlist
        ).run()

        assert verdict.success
        assert [c.type for c in verdict.allowed] == ["text"]
        evidence = verdict.decisions[0].evidence
        assert evidence.baseline_image.endswith("desktop-light.png")
        assert evidence.current_image.endswith("desktop-light.png")
        assert evidence.diff_image is None

    @pytest.mark.asyncio
    async def test_allowlist_read_from_settings_path(self, run_settings, visual_config, renderer):
        await _accept_baseline(run_settings, visual_config, renderer)
        renderer.captures["hero"] = renderer.captures["hero"].model_copy(update={"text": "Bienvenue à Montréal"})
        renderer.ocr_texts["hero"] = ["Bienvenue à Montréal"]
        Path(run_settings.allowlist_path).write_text(json.dumps({"allow": [{"region": "hero", "type": "text"}]}))

        verdict = await Orchestrator(run_settings, visual_config, renderer, FakeRecognizer(renderer)).run()

        assert verdict.success
        assert [c.type for c in verdict.allowed] == ["text"]

    @pytest.mark.asyncio
    async def test_diff_uses_screenshot_renderer_reported(self, run_settings, visual_config, renderer, tmp_path):
        await _accept_baseline(run_settings, visual_config, renderer)
        renderer.shot_dir = tmp_path / "shots"
        renderer.colors["hero"] = BLACK

        verdict = await Orchestrator(run_settings, visual_config, renderer, FakeRecognizer(renderer)).run()

        assert _types(verdict) == ["visual"]
        shot = tmp_path / "shots" / "hero-desktop-light.png"
        assert verdict.decisions[0].evidence.current_image == str(shot)

    @pytest.mark.asyncio
    async def test_missing_region_fails(self, run_settings, visual_config, renderer):
        await _accept_baseline(run_settings, visual_config, renderer)
        renderer.captures["nav"] = Capture(selector_match_count=0)

        verdict = await Orchestrator(run_settings, visual_config, renderer, FakeRecognizer(renderer)).run()

        assert not verdict.success
        assert [(c.type, c.region) for c in verdict.failing] == [("missing-region", "nav")]

    @pytest.mark.asyncio
    async def test_visual_change_writes_diff(self, run_settings, visual_config, renderer):
        await _accept_baseline(run_settings, visual_config, renderer)
        renderer.colors["hero"] = BLACK

        verdict = await Orchestrator(run_settings, visual_config, renderer, FakeRecognizer(renderer)).run()

        assert _types(verdict) == ["visual"]
        diff = Path(run_settings.out_dir) / "diff" / "montreal" / "hero" / "desktop-light.png"
        assert diff.exists()
        assert verdict.decisions[0].evidence.diff_image == str(diff)

    @pytest.mark.asyncio
    async def test_illegible_text_fails(self, run_settings, visual_config, renderer):
        await _accept_baseline(run_settings, visual_config, renderer)
        recognizer = FakeRecognizer(renderer, misreads={"Welcome to Montreal": "W3lc0me t0 M0ntr3al"})

        verdict = await Orchestrator(run_settings, visual_config, renderer, recognizer).run()

        assert _types(verdict) == ["ocr"]
        decision = verdict.decisions[0]
        assert decision.change.detail.startswith("OCR min ")
        assert decision.evidence.baseline_image is None
        assert decision.evidence.current_image is not None

    @pytest.mark.asyncio
    async def test_no_ocr_targets(self, run_settings, visual_config, renderer):
        await _accept_baseline(run_settings, visual_config, renderer)
        renderer.ocr_texts["hero"] = ["   "]

        verdict = await Orchestrator(run_settings, visual_config, renderer, FakeRecognizer(renderer)).run()

        assert _types(verdict) == ["ocr-missing"]

    @pytest.mark.asyncio
    async def test_ocr_disabled_by_settings(self, run_settings, visual_config, renderer):
        await _accept_baseline(run_settings, visual_config, renderer)
        recognizer = FakeRecognizer(renderer)
        settings = run_settings.model_copy(update={"ocr": False})

        verdict = await Orchestrator(settings, visual_config, renderer, recognizer).run()

        assert verdict.success
        assert recognizer.calls == []

    @pytest.mark.asyncio
    async def test_recognizer_failure_aborts_run(self, run_settings, visual_config, renderer):
        await _accept_baseline(run_settings, visual_config, renderer)

        class BrokenRecognizer:
            async def recognize(self, image_path, lang):
                raise RecognizerError("tesseract not found")

        with pytest.raises(RecognizerError):
            await Orchestrator(run_settings, visual_config, renderer, BrokenRecognizer()).run()


class TestBaselineGaps:
    @pytest.mark.asyncio
    async def test_no_baseline_document(self, run_settings, visual_config, renderer):
        verdict = await Orchestrator(run_settings, visual_config, renderer).run()

        assert _types(verdict) == ["baseline-missing", "baseline-missing"]
        for decision in verdict.decisions:
            assert decision.evidence.baseline_image is None
            assert decision.evidence.current_image is not None

    @pytest.mark.asyncio
    async def test_baseline_image_deleted(self, run_settings, visual_config, renderer):
        await _accept_baseline(run_settings, visual_config, renderer)
        (Path(run_settings.baseline_images_dir) / "montreal" / "nav" / "desktop-light.png").unlink()

        verdict = await Orchestrator(run_settings, visual_config, renderer, FakeRecognizer(renderer)).run()

        assert [(c.type, c.region) for c in verdict.failing] == [("baseline-image-missing", "nav")]

    @pytest.mark.asyncio
    async def test_current_image_not_decoded_without_baseline_image(self, run_settings, visual_config, renderer):
        with patch("regionguard.orchestrator.load_png", wraps=load_png) as loader:
            verdict = await Orchestrator(run_settings, visual_config, renderer).run()

        assert _types(verdict) == ["baseline-missing", "baseline-missing"]
        loader.assert_not_called()

    @pytest.mark.asyncio
    async def test_recorded_image_outside_images_dir(self, run_settings, visual_config, renderer, tmp_path):
        await _accept_baseline(run_settings, visual_config, renderer)
        store = BaselineStore(Path(run_settings.baselines_path), Path(run_settings.baseline_images_dir))
        doc = store.load()
        moved = tmp_path / "archive" / "hero.png"
        moved.parent.mkdir()
        hero = doc.entries[0]
        Path(hero.image).rename(moved)
        doc.entries[0] = hero.model_copy(update={"image": str(moved)})
        store.save(doc)

        verdict = await Orchestrator(run_settings, visual_config, renderer, FakeRecognizer(renderer)).run()

        assert verdict.success
        assert verdict.decisions == []


class TestConfigProblems:
    @pytest.mark.asyncio
    async def test_unknown_device(self, run_settings, visual_config, renderer):
        visual_config.devices = ["desktop", "nokia-3310"]

        verdict = await Orchestrator(run_settings, visual_config, renderer).run()

        config_changes = [c for c in verdict.failing if c.type == "config"]
        assert len(config_changes) == 1
        assert config_changes[0].device == "nokia-3310"
        assert config_changes[0].mode == "-"
        assert config_changes[0].detail == "Unknown device preset: nokia-3310"
        assert renderer.opened == [("/en/montreal.html", "desktop", "light")]

    @pytest.mark.asyncio
    async def test_unknown_profile(self, run_settings, visual_config, renderer):
        settings = run_settings.model_copy(update={"profile": "smoke"})

        verdict = await Orchestrator(settings, visual_config, renderer).run()

        assert _types(verdict) == ["config"]
        change = verdict.decisions[0].change
        assert (change.page, change.device, change.mode, change.region) == ("-", "-", "-", "-")
        assert renderer.opened == []

    @pytest.mark.asyncio
    async def test_profile_narrows_run(self, run_settings, visual_config, renderer):
        visual_config.profiles["smoke"] = ProfileConfig(pages=["montreal"], regions=["hero"], modes=["dark"])
        settings = run_settings.model_copy(update={"profile": "smoke"})

        verdict = await Orchestrator(settings, visual_config, renderer).run()

        assert [(c.type, c.mode, c.region) for c in verdict.failing] == [("baseline-missing", "dark", "hero")]
        assert renderer.opened == [("/en/montreal.html", "desktop", "dark")]
