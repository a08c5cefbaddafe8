"""HTML report generator — one card per change with baseline, current and diff images."""

from __future__ import annotations

import base64
import html
import logging
from pathlib import Path

from regionguard.models.change import Decision, RunVerdict

logger = logging.getLogger(__name__)

_STYLE = """
    body { font-family: system-ui, sans-serif; padding: 20px; background: #f6f6f6; color: #222; }
    .card { background: #fff; border: 1px solid #ddd; border-radius: 8px; padding: 12px; margin-bottom: 16px; }
    .card.fail { border-left: 4px solid #ef4444; }
    .card.allow { border-left: 4px solid #eab308; }
    .title { font-weight: 600; margin-bottom: 6px; }
    .badge { display: inline-block; padding: 1px 8px; border-radius: 10px; font-size: 12px; color: #fff; }
    .badge.fail { background: #ef4444; }
    .badge.allow { background: #eab308; }
    .detail { color: #555; margin-bottom: 10px; }
    .imgs { display: grid; grid-template-columns: repeat(auto-fit, minmax(260px, 1fr)); gap: 12px; }
    .img { border: 1px solid #eee; border-radius: 6px; padding: 6px; background: #fafafa; }
    .img-label { font-size: 12px; color: #666; margin-bottom: 4px; }
    img { width: 100%; height: auto; display: block; background: #fff; }
    .empty { color: #999; font-size: 12px; text-align: center; padding: 24px 0; }
"""


def _embed_image(path: str | None) -> str:
    """Read an image file and return a base64 data URI, or empty string on failure."""
    if not path:
        return ""
    p = Path(path)
    if not p.exists() or p.stat().st_size == 0:
        return ""
    with open(p, "rb") as f:
        data = base64.b64encode(f.read()).decode()
    return f"data:image/png;base64,{data}"


def _image_cell(label: str, path: str | None) -> str:
    uri = _embed_image(path)
    if not uri:
        return '<div class="img empty">n/a</div>'
    return f'<div class="img"><div class="img-label">{label}</div><img src="{uri}" alt="{label}"></div>'


def _build_card(decision: Decision) -> str:
    c = decision.change
    status = "allow" if decision.allowed else "fail"
    title = html.escape(f"{c.type} {c.page} {c.device} {c.mode} {c.region}")
    ev = decision.evidence
    return f'''
    <div class="card {status}">
      <div class="title"><span class="badge {status}">{status.upper()}</span> {title}</div>
      <div class="detail">{html.escape(c.detail)}</div>
      <div class="imgs">
        {_image_cell("baseline", ev.baseline_image)}
        {_image_cell("current", ev.current_image)}
        {_image_cell("diff", ev.diff_image)}
      </div>
    </div>'''


def generate_html_report(verdict: RunVerdict, output_path: Path) -> None:
    """Write a self-contained HTML report of every change in the run."""
    cards = "\n".join(_build_card(d) for d in verdict.decisions)
    doc = f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Visual Regression Report</title>
  <style>{_STYLE}</style>
</head>
<body>
  <h1>Visual Regression Report</h1>
  <p>{len(verdict.decisions)} change(s): {len(verdict.failing)} failing, {len(verdict.allowed)} allowed</p>
  {cards}
</body>
</html>
"""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(doc, encoding="utf-8")
    logger.debug("Wrote HTML report with %d cards", len(verdict.decisions))
