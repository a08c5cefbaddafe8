"""Text normalization at three strengths: whitespace, comparison, OCR."""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")
_COMBINING_MARKS = re.compile("[\u0300-\u036f]")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs to a single space and trim."""
    return _WHITESPACE.sub(" ", text or "").strip()


def normalize_for_comparison(text: str) -> str:
    """Whitespace-normalize, strip diacritics and lowercase."""
    decomposed = unicodedata.normalize("NFKD", normalize_whitespace(text))
    return _COMBINING_MARKS.sub("", decomposed).lower()


def normalize_for_ocr(text: str) -> str:
    """Reduce text to lowercase ASCII alphanumeric words separated by single spaces.

    OCR engines routinely garble punctuation and case, so neither may count
    against legibility.
    """
    return _NON_ALNUM.sub(" ", normalize_for_comparison(text)).strip()


def summarize_text(text: str, max_len: int = 160) -> str:
    trimmed = normalize_whitespace(text)
    if len(trimmed) <= max_len:
        return trimmed
    return f"{trimmed[:max_len]}…"
