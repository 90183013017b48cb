"""Pixel comparator — normalizes two screenshots and diffs them with pixelmatch."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from PIL import Image
from pixelmatch.contrib.PIL import pixelmatch

from sitediff.models.diff_result import ComparisonMetrics

logger = logging.getLogger(__name__)


@dataclass
class Comparison:
    """Outcome of comparing a baseline against an actual screenshot."""

    baseline: Image.Image  # cropped to the common size
    actual: Image.Image
    diff_image: Image.Image
    changed: int
    total: int

    @property
    def ratio(self) -> float:
        if not self.total:
            return 0.0
        return min(1.0, max(0.0, self.changed / self.total))

    @property
    def size(self) -> tuple[int, int]:
        return self.diff_image.size

    def metrics(self) -> ComparisonMetrics:
        return ComparisonMetrics(total=self.total, changed=self.changed, ratio=self.ratio)


def load_image(path: str | Path) -> Image.Image:
    """Read a PNG fully into memory as RGBA. Raises OSError if unreadable."""
    with Image.open(path) as img:
        return img.convert("RGBA")


def crop_to(image: Image.Image, width: int, height: int) -> Image.Image:
    """Crop from the top-left corner; never scales or pads."""
    if image.size == (width, height):
        return image
    return image.crop((0, 0, width, height))


def normalize_pair(baseline: Image.Image, actual: Image.Image) -> tuple[Image.Image, Image.Image]:
    """Crop both images to the element-wise minimum of their dimensions."""
    width = min(baseline.width, actual.width)
    height = min(baseline.height, actual.height)
    if baseline.size != actual.size:
        logger.debug("Dimension mismatch %s vs %s, cropping to %dx%d",
                     baseline.size, actual.size, width, height)
    return crop_to(baseline, width, height), crop_to(actual, width, height)


def compare(baseline: Image.Image, actual: Image.Image, threshold: float = 0.1) -> Comparison:
    """Diff two RGBA images; ``threshold`` is pixelmatch's per-pixel sensitivity."""
    base, act = normalize_pair(baseline.convert("RGBA"), actual.convert("RGBA"))
    width, height = base.size
    diff_image = Image.new("RGBA", (width, height))
    total = width * height

    if total == 0:
        return Comparison(baseline=base, actual=act, diff_image=diff_image, changed=0, total=0)

    changed = pixelmatch(base, act, diff_image, threshold=threshold)
    return Comparison(baseline=base, actual=act, diff_image=diff_image,
                      changed=int(changed), total=total)

