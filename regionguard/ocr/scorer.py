"""OCR legibility scoring against the text a region is expected to show."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from regionguard.models.baseline import RegionKey
from regionguard.models.capture import OcrSample
from regionguard.models.change import Change
from regionguard.text.fuzzy import format_score, similarity
from regionguard.text.normalizer import normalize_for_ocr

logger = logging.getLogger(__name__)


@dataclass
class OcrAssessment:
    scores: list[float] = field(default_factory=list)
    change: Change | None = None

    @property
    def min_score(self) -> float:
        return min(self.scores) if self.scores else 0.0

    @property
    def avg_score(self) -> float:
        return sum(self.scores) / len(self.scores) if self.scores else 0.0


def score_sample(sample: OcrSample) -> float:
    return similarity(normalize_for_ocr(sample.expected), normalize_for_ocr(sample.actual))


def assess_legibility(key: RegionKey, samples: list[OcrSample], min_score: float) -> OcrAssessment:
    """Score every sample; the weakest one decides.

    Samples with no letters or digits to read are ignored. With nothing left
    to score the capture path is presumed broken and an ``ocr-missing`` change
    is raised.
    """
    assessment = OcrAssessment(
        scores=[score_sample(s) for s in samples if normalize_for_ocr(s.expected)]
    )
    if not assessment.scores:
        assessment.change = Change.for_key("ocr-missing", key, "No OCR targets found.")
        return assessment

    summary = f"OCR min {format_score(assessment.min_score)} avg {format_score(assessment.avg_score)}"
    if assessment.min_score < min_score:
        assessment.change = Change.for_key("ocr", key, summary)
    else:
        logger.debug("%s: %s", key, summary)
    return assessment
