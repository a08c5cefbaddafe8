"""Allowlist document data structures."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

RuleValue = Optional[Union[str, list[str]]]


class AllowlistRule(BaseModel):
    """Pattern over change fields. Absent or "*" matches anything."""

    page: RuleValue = None
    device: RuleValue = None
    mode: RuleValue = None
    region: RuleValue = None
    type: RuleValue = None


class Allowlist(BaseModel):
    allow: list[AllowlistRule] = Field(default_factory=list)

    @classmethod
    def load(cls, path: str | Path) -> "Allowlist":
        """Load an allowlist from JSON. A missing file is an empty allowlist."""
        path = Path(path)
        if not path.exists():
            logger.debug("No allowlist at %s, nothing is allowed", path)
            return cls()
        with open(path) as f:
            data = json.load(f)
        return cls(**data)
