"""Attributes changed pixels to captured DOM landmark zones."""

from __future__ import annotations

import logging
import math

import numpy as np

from sitediff.models.diff_result import DomZone, ScoredZone, ZoneBounds

logger = logging.getLogger(__name__)


def _clip_box(zone: DomZone, width: int, height: int, scale: float) -> tuple[int, int, int, int]:
    b = zone.bounds
    x1 = max(0, math.floor(b.x * scale))
    y1 = max(0, math.floor(b.y * scale))
    x2 = min(width, math.ceil((b.x + b.width) * scale))
    y2 = min(height, math.ceil((b.y + b.height) * scale))
    return x1, y1, max(x1, x2), max(y1, y2)


def score_zones(
    mask: np.ndarray,
    zones: list[DomZone],
    limit: int = 12,
    scale: float = 1.0,
) -> list[ScoredZone]:
    """Rank zones by the share of their clipped area that changed.

    ``scale`` converts CSS-pixel bounds to screenshot pixels (the device scale
    factor). Zones with no area left after clipping are dropped. A pixel inside
    overlapping zones counts toward each of them.
    """
    if not zones:
        return []

    height, width = mask.shape[:2]
    scored: list[ScoredZone] = []
    for zone in zones:
        x1, y1, x2, y2 = _clip_box(zone, width, height, scale)
        area = (x2 - x1) * (y2 - y1)
        if area <= 0:
            logger.debug("Dropping zone %s: no overlap with %dx%d diff", zone.selector, width, height)
            continue
        changed = int(np.count_nonzero(mask[y1:y2, x1:x2]))
        scored.append(ScoredZone(
            selector=zone.selector,
            label=zone.label,
            tag=zone.tag,
            bounds=ZoneBounds(x=x1, y=y1, width=x2 - x1, height=y2 - y1),
            diff_ratio=changed / area,
        ))

    # sorted() is stable, so ties keep document order
    scored = sorted(scored, key=lambda z: z.diff_ratio, reverse=True)
    return scored[:limit]
