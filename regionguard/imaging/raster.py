"""PNG decoding and encoding at the edge of the pixel diff engine."""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image

from regionguard.imaging.pixel_diff import PixelGrid

logger = logging.getLogger(__name__)


def load_png(path: str | Path) -> PixelGrid:
    with Image.open(path) as img:
        rgba = img.convert("RGBA")
        return PixelGrid(rgba.width, rgba.height, rgba.tobytes())


def save_png(grid: PixelGrid, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.frombytes("RGBA", grid.size, grid.data).save(path)
    logger.debug("Wrote %dx%d image to %s", grid.width, grid.height, path)
    return path
