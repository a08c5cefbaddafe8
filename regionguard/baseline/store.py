"""Baseline store — keyed persistence of accepted region state."""

from __future__ import annotations

import json
import logging
import shutil
import time
from pathlib import Path
from typing import Iterable

from pydantic import ValidationError

from regionguard.allowlist.matcher import matches_value
from regionguard.models.allowlist import AllowlistRule
from regionguard.models.baseline import BaselineDocument, BaselineEntry, RegionKey

logger = logging.getLogger(__name__)


def lookup(doc: BaselineDocument, key: RegionKey) -> BaselineEntry | None:
    for entry in doc.entries:
        if entry.key == key:
            return entry
    return None


def merge_entries(doc: BaselineDocument, new_entries: Iterable[BaselineEntry]) -> BaselineDocument:
    """Overwrite entries by key, sort by key and stamp a fresh timestamp.

    Keys not present in ``new_entries`` are kept.
    """
    merged = doc.index()
    for entry in new_entries:
        merged[entry.key] = entry
    return BaselineDocument(
        generated_at=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        entries=[merged[key] for key in sorted(merged)],
    )


def rule_matches_entry(rule: AllowlistRule, entry: BaselineEntry) -> bool:
    return (
        matches_value(rule.page, entry.page)
        and matches_value(rule.device, entry.device)
        and matches_value(rule.mode, entry.mode)
        and matches_value(rule.region, entry.region)
    )


def remove_entries(doc: BaselineDocument, rule: AllowlistRule) -> tuple[BaselineDocument, list[BaselineEntry]]:
    """Drop entries matching ``rule``. Returns the new document and the removed entries."""
    kept = [e for e in doc.entries if not rule_matches_entry(rule, e)]
    removed = [e for e in doc.entries if rule_matches_entry(rule, e)]
    return doc.model_copy(update={"entries": kept}), removed


class BaselineStore:
    """Reads and writes the baseline JSON document and its images."""

    def __init__(self, document_path: Path, images_dir: Path):
        self.document_path = Path(document_path)
        self.images_dir = Path(images_dir)

    def load(self) -> BaselineDocument:
        """Load the document. A missing file yields an empty document."""
        if not self.document_path.exists():
            logger.info("No baseline document at %s, starting empty", self.document_path)
            return BaselineDocument()
        try:
            with open(self.document_path) as f:
                data = json.load(f)
            return BaselineDocument.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise ValueError(f"Corrupt baseline document {self.document_path}: {e}") from e

    def save(self, doc: BaselineDocument) -> None:
        self.document_path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "generatedAt": doc.generated_at,
            "entries": [
                e.model_dump(by_alias=True, exclude_none=True)
                for e in sorted(doc.entries, key=lambda e: e.key)
            ],
        }
        with open(self.document_path, "w") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
        logger.debug("Saved %d baseline entries to %s", len(doc.entries), self.document_path)

    def image_path(self, page_label: str, key: RegionKey) -> Path:
        return self.images_dir / page_label / key.region / f"{key.device}-{key.mode}.png"

    def entry_image_path(self, entry: BaselineEntry, page_label: str) -> Path:
        """The accepted image recorded for an entry, else its conventional location."""
        if entry.image:
            return Path(entry.image)
        return self.image_path(page_label, entry.key)

    def store_image(self, source: Path, page_label: str, key: RegionKey) -> Path:
        """Copy a current capture into place as the accepted image."""
        dest = self.image_path(page_label, key)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, dest)
        logger.debug("Stored baseline image for %s at %s", key, dest)
        return dest

    def remove(self, doc: BaselineDocument, rule: AllowlistRule) -> tuple[BaselineDocument, list[BaselineEntry]]:
        """Explicitly remove matching entries and delete their recorded images."""
        updated, removed = remove_entries(doc, rule)
        for entry in removed:
            image = Path(entry.image) if entry.image else None
            if image is not None and image.exists():
                image.unlink()
            elif entry.image:
                logger.warning("Baseline image for %s already gone: %s", entry.key, image)
            logger.info("Removed baseline %s", entry.key)
        return updated, removed
