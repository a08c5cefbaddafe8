"""Report generation orchestration."""

from __future__ import annotations

import logging
from pathlib import Path

from regionguard.models.change import RunVerdict
from regionguard.models.config import RunSettings

from .html_report import generate_html_report
from .json_report import generate_json_report

logger = logging.getLogger(__name__)


class Reporter:
    """Writes report files for a finished run."""

    def __init__(self, settings: RunSettings):
        self.settings = settings

    def generate_reports(self, verdict: RunVerdict) -> dict[str, str]:
        """Generate reports. Returns format -> file path.

        The HTML report is only produced when the run has failures.
        """
        out_dir = Path(self.settings.out_dir)
        generated = {}

        json_path = out_dir / "verdict.json"
        generate_json_report(verdict, json_path)
        generated["json"] = str(json_path)
        logger.info("JSON report: %s", json_path)

        if verdict.failing:
            html_path = Path(self.settings.report_path) if self.settings.report_path else out_dir / "report.html"
            generate_html_report(verdict, html_path)
            generated["html"] = str(html_path)
            logger.info("HTML report: %s", html_path)
        else:
            logger.info("No failures; HTML report not written")

        return generated
