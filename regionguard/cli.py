"""CLI entry point for region-level visual verification."""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import nullcontext
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from regionguard.baseline.store import BaselineStore
from regionguard.capture.playwright_renderer import PlaywrightRenderer
from regionguard.capture.static_server import StaticServer
from regionguard.models.allowlist import AllowlistRule
from regionguard.models.capture import OcrSample
from regionguard.models.change import RunVerdict
from regionguard.models.config import RunSettings, VisualConfig
from regionguard.ocr.scorer import score_sample
from regionguard.ocr.tesseract import TesseractRecognizer
from regionguard.orchestrator import Orchestrator
from regionguard.reporter.reporter import Reporter
from regionguard.text.fuzzy import format_score

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


async def run_check(settings: RunSettings, config: VisualConfig) -> RunVerdict:
    recognizer = TesseractRecognizer(settings.tesseract_cmd, settings.tesseract_psm)
    async with PlaywrightRenderer(settings.base_url, headless=settings.headless) as renderer:
        orchestrator = Orchestrator(settings, config, renderer, recognizer)
        return await orchestrator.run()


def print_verdict(verdict: RunVerdict) -> None:
    if verdict.allowed:
        console.print(f"[yellow]{len(verdict.allowed)} change(s) allowed by allowlist.[/yellow]")
        for change in verdict.allowed:
            console.print(f"ALLOW {change.summary()}", markup=False, highlight=False)
    if verdict.failing:
        console.print(f"[red]{len(verdict.failing)} failure(s).[/red]")
        for change in verdict.failing:
            console.print(f"FAIL {change.summary()}", markup=False, highlight=False)

    table = Table(title="Visual Verification Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Profile", verdict.profile)
    table.add_row("Mode", "update baseline" if verdict.update_baseline else "verify")
    table.add_row("Allowed", f"[yellow]{len(verdict.allowed)}[/yellow]")
    table.add_row("Failing", f"[red]{len(verdict.failing)}[/red]")
    if verdict.update_baseline:
        table.add_row("New baselines", str(len(verdict.new_baselines)))
    table.add_row("Result", "[green]success[/green]" if verdict.success else "[red]failed[/red]")
    console.print(table)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Region-level visual regression and OCR legibility checks"""
    setup_logging(verbose)


@cli.command()
@click.option("--config", "-c", "config_path", default="tests/visual/regions.json", help="Region config file")
@click.option("--baselines", default="tests/visual/baselines.json", help="Baseline document path")
@click.option("--baseline-images", default="tests/visual/baselines", help="Baseline images directory")
@click.option("--allowlist", default="tests/visual/allowlist.json", help="Allowlist file path")
@click.option("--out", "out_dir", default="build/visual", help="Output directory for artifacts")
@click.option("--base-url", default="http://127.0.0.1:4173", help="URL of the running site")
@click.option("--serve", "serve_dir", default=None, help="Serve this built site directory during the run")
@click.option("--port", default=4173, type=int, help="Port for --serve")
@click.option("--profile", default="full", help="Config profile to run")
@click.option("--update-baseline", is_flag=True, help="Write current captures as the new baseline")
@click.option("--no-ocr", is_flag=True, help="Skip OCR legibility checks")
@click.option("--report", is_flag=True, help="Write JSON and HTML reports")
@click.option("--report-out", default=None, help="HTML report path")
@click.option("--headed", is_flag=True, help="Show the browser window")
def check(
    config_path: str,
    baselines: str,
    baseline_images: str,
    allowlist: str,
    out_dir: str,
    base_url: str,
    serve_dir: str | None,
    port: int,
    profile: str,
    update_baseline: bool,
    no_ocr: bool,
    report: bool,
    report_out: str | None,
    headed: bool,
) -> None:
    """Capture configured regions and compare them against the baseline."""
    try:
        config = VisualConfig.load(config_path)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    settings = RunSettings(
        baselines_path=baselines,
        baseline_images_dir=baseline_images,
        allowlist_path=allowlist,
        out_dir=out_dir,
        base_url=base_url,
        profile=profile,
        update_baseline=update_baseline,
        ocr=not no_ocr and not update_baseline,
        report_path=report_out,
        headless=not headed,
    )

    try:
        server = StaticServer(serve_dir, port) if serve_dir else nullcontext()
        with server:
            if serve_dir:
                settings.base_url = server.base_url
            verdict = asyncio.run(run_check(settings, config))
    except Exception as e:
        logger.debug("Run aborted", exc_info=True)
        console.print(f"[red]Run aborted: {e}[/red]")
        sys.exit(1)

    print_verdict(verdict)
    if report:
        for fmt, path in Reporter(settings).generate_reports(verdict).items():
            console.print(f"  {fmt.upper()} report: [blue]{path}[/blue]")

    sys.exit(0 if verdict.success else 1)


@cli.command()
@click.argument("expected")
@click.argument("actual")
@click.option("--min-score", default=0.97, type=float, help="Minimum passing score")
def score(expected: str, actual: str, min_score: float) -> None:
    """Score OCR text ACTUAL against EXPECTED text."""
    value = score_sample(OcrSample(expected=expected, actual=actual))
    passed = value >= min_score
    colour = "green" if passed else "red"
    console.print(f"[{colour}]{format_score(value)}[/{colour}] (min {format_score(min_score)})")
    sys.exit(0 if passed else 1)


@cli.group()
def baseline() -> None:
    """Inspect or prune the baseline document."""
    pass


def _store(baselines: str, baseline_images: str) -> BaselineStore:
    return BaselineStore(Path(baselines), Path(baseline_images))


@baseline.command("list")
@click.option("--baselines", default="tests/visual/baselines.json", help="Baseline document path")
@click.option("--baseline-images", default="tests/visual/baselines", help="Baseline images directory")
def baseline_list(baselines: str, baseline_images: str) -> None:
    """List baseline entries."""
    doc = _store(baselines, baseline_images).load()
    if not doc.entries:
        console.print("[yellow]No baseline entries[/yellow]")
        return
    table = Table(title=f"Baselines (generated {doc.generated_at or 'never'})")
    for column in ("Page", "Device", "Mode", "Region", "BBox"):
        table.add_column(column)
    for entry in doc.entries:
        box = entry.bbox
        bbox = f"{box.x:g},{box.y:g} {box.width:g}x{box.height:g}" if box else "-"
        table.add_row(entry.page, entry.device, entry.mode, entry.region, bbox)
    console.print(table)


@baseline.command("remove")
@click.option("--page", default=None, help="Page path, or * for all")
@click.option("--device", default=None, help="Device preset, or * for all")
@click.option("--mode", default=None, help="Color scheme, or * for all")
@click.option("--region", default=None, help="Region id, or * for all")
@click.option("--baselines", default="tests/visual/baselines.json", help="Baseline document path")
@click.option("--baseline-images", default="tests/visual/baselines", help="Baseline images directory")
def baseline_remove(
    page: str | None,
    device: str | None,
    mode: str | None,
    region: str | None,
    baselines: str,
    baseline_images: str,
) -> None:
    """Remove matching baseline entries and their images."""
    if not any((page, device, mode, region)):
        console.print("[red]Refusing to remove every entry; pass at least one filter (use * explicitly).[/red]")
        sys.exit(1)
    store = _store(baselines, baseline_images)
    doc, removed = store.remove(store.load(), AllowlistRule(page=page, device=device, mode=mode, region=region))
    store.save(doc)
    console.print(f"[green]Removed {len(removed)} baseline entr{'y' if len(removed) == 1 else 'ies'}[/green]")


if __name__ == "__main__":
    cli()
