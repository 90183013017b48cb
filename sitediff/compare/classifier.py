"""Diff pixel classifier — decides which diff-image pixels are real changes.

Tuned to the pixelmatch output convention: differing pixels are drawn in a
bright highlight colour (red by default, yellow for anti-aliasing) while
unchanged pixels are copied through as faded, near-white grayscale. A pixel
counts as changed when it is visible and either matches a highlight signature
or is not near-white. If the comparator is swapped, re-check its encoding
against these constants.
"""

from __future__ import annotations

import numpy as np
from PIL import Image

HIGHLIGHT_MIN = 200
HIGHLIGHT_MAX_OTHER = 80
NEAR_WHITE_MIN = 220


def is_diff_pixel(r: int, g: int, b: int, a: int) -> bool:
    """Classify a single RGBA pixel of a diff image."""
    if a == 0:
        return False
    hi, lo = HIGHLIGHT_MIN, HIGHLIGHT_MAX_OTHER
    if r >= hi and g <= lo and b <= lo:
        return True
    if g >= hi and r <= lo and b <= lo:
        return True
    if b >= hi and r <= lo and g <= lo:
        return True
    if r >= hi and g >= hi and b <= lo:
        return True
    near_white = r >= NEAR_WHITE_MIN and g >= NEAR_WHITE_MIN and b >= NEAR_WHITE_MIN
    return not near_white


def diff_pixel_mask(diff_image: Image.Image) -> np.ndarray:
    """Vectorised ``is_diff_pixel`` over a whole image; returns a (h, w) bool array."""
    arr = np.asarray(diff_image.convert("RGBA"))
    r, g, b, a = arr[..., 0], arr[..., 1], arr[..., 2], arr[..., 3]

    hi_r, hi_g, hi_b = r >= HIGHLIGHT_MIN, g >= HIGHLIGHT_MIN, b >= HIGHLIGHT_MIN
    lo_r, lo_g, lo_b = r <= HIGHLIGHT_MAX_OTHER, g <= HIGHLIGHT_MAX_OTHER, b <= HIGHLIGHT_MAX_OTHER

    highlight = (
        (hi_r & lo_g & lo_b)     # red
        | (hi_g & lo_r & lo_b)   # green
        | (hi_b & lo_r & lo_g)   # blue
        | (hi_r & hi_g & lo_b)   # yellow
    )
    near_white = (r >= NEAR_WHITE_MIN) & (g >= NEAR_WHITE_MIN) & (b >= NEAR_WHITE_MIN)
    return (a != 0) & (highlight | ~near_white)
