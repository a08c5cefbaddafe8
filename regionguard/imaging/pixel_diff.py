"""Pixel diff engine — compares two decoded RGBA pixel grids."""

from __future__ import annotations

from dataclasses import dataclass

# Sum of four channel deltas at their maximum (4 * 255).
MAX_CHANNEL_DELTA = 1020
DIFF_PIXEL = bytes((255, 0, 0, 255))


@dataclass(frozen=True)
class PixelGrid:
    width: int
    height: int
    data: bytes  # RGBA, row-major, width * height * 4 bytes

    def __post_init__(self) -> None:
        if len(self.data) != self.width * self.height * 4:
            raise ValueError(
                f"RGBA buffer of {len(self.data)} bytes does not fit {self.width}x{self.height}"
            )

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height


@dataclass(frozen=True)
class PixelDiff:
    diff_ratio: float
    diff_pixels: int = 0
    total_pixels: int = 0
    size_mismatch: bool = False
    mask: PixelGrid | None = None


def diff_pixels(baseline: PixelGrid, current: PixelGrid, threshold: float) -> PixelDiff:
    """Count pixels whose normalized RGBA delta exceeds ``threshold``.

    Grids of different sizes are a full mismatch. A mask (differing pixels
    opaque red, the rest transparent) is only built when something differs.
    """
    if baseline.size != current.size:
        return PixelDiff(diff_ratio=1.0, size_mismatch=True)

    total = baseline.width * baseline.height
    if total == 0:
        return PixelDiff(diff_ratio=0.0)

    a = baseline.data
    b = current.data
    mask = bytearray(len(a))
    different = 0
    for i in range(0, len(a), 4):
        delta = (
            abs(a[i] - b[i])
            + abs(a[i + 1] - b[i + 1])
            + abs(a[i + 2] - b[i + 2])
            + abs(a[i + 3] - b[i + 3])
        ) / MAX_CHANNEL_DELTA
        if delta > threshold:
            different += 1
            mask[i:i + 4] = DIFF_PIXEL

    return PixelDiff(
        diff_ratio=different / total,
        diff_pixels=different,
        total_pixels=total,
        mask=PixelGrid(baseline.width, baseline.height, bytes(mask)) if different else None,
    )
