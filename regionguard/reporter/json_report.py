"""JSON report output."""

from __future__ import annotations

import json
from pathlib import Path

from regionguard.models.change import RunVerdict


def generate_json_report(verdict: RunVerdict, output_path: Path) -> None:
    """Write a machine-readable verdict report."""
    report = verdict.model_dump(exclude={"new_baselines"})
    report["success"] = verdict.success
    report["allowed"] = [c.model_dump() for c in verdict.allowed]
    report["failing"] = [c.model_dump() for c in verdict.failing]
    report["new_baselines"] = len(verdict.new_baselines)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(report, f, indent=2, default=str)
