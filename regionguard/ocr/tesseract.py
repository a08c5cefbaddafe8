"""Tesseract OCR recognizer, run on a worker thread through pytesseract."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import pytesseract

logger = logging.getLogger(__name__)


class RecognizerError(RuntimeError):
    """The OCR binary is unavailable or failed. Fatal to a run."""


class TesseractRecognizer:
    def __init__(self, command: str = "tesseract", psm: int = 6):
        self.command = command
        self.psm = psm

    def build_config(self) -> str:
        return f"--psm {self.psm}"

    def _recognize_sync(self, image_path: Path, lang: str) -> str:
        pytesseract.pytesseract.tesseract_cmd = self.command
        return pytesseract.image_to_string(str(image_path), lang=lang, config=self.build_config())

    async def recognize(self, image_path: Path, lang: str) -> str:
        logger.debug("OCR %s (lang=%s, %s)", image_path, lang, self.build_config())
        try:
            return await asyncio.to_thread(self._recognize_sync, image_path, lang)
        except pytesseract.TesseractNotFoundError as e:
            raise RecognizerError(
                f"OCR binary '{self.command}' not found; install tesseract or set TESSERACT_BIN"
            ) from e
        except pytesseract.TesseractError as e:
            raise RecognizerError(f"{self.command} exited with code {e.status}: {e.message}") from e
