"""Coarse grid summary of where a page changed."""

from __future__ import annotations

import numpy as np

from sitediff.models.diff_result import HeatmapCell


def _bucket_index(length: int, buckets: int) -> np.ndarray:
    # floor(i / length * buckets) in exact integer arithmetic, clamped to the last bucket
    return np.minimum(buckets - 1, (np.arange(length) * buckets) // length)


def build_heatmap(mask: np.ndarray, rows: int = 4, cols: int = 4) -> list[HeatmapCell]:
    """Bucket a (h, w) changed-pixel mask into a rows x cols grid.

    Cells are returned in row-major order; each ratio is changed/total for the
    pixels falling in that cell (0 for an empty cell).
    """
    height, width = mask.shape[:2]
    totals = np.zeros(rows * cols, dtype=np.int64)
    changed = np.zeros(rows * cols, dtype=np.int64)

    if height and width:
        row_idx = _bucket_index(height, rows)
        col_idx = _bucket_index(width, cols)
        cell_idx = row_idx[:, None] * cols + col_idx[None, :]
        totals = np.bincount(cell_idx.ravel(), minlength=rows * cols)
        changed = np.bincount(cell_idx[mask], minlength=rows * cols)

    cells = []
    for r in range(rows):
        for c in range(cols):
            i = r * cols + c
            total = int(totals[i])
            cells.append(HeatmapCell(
                cell=f"r{r}c{c}",
                ratio=int(changed[i]) / total if total else 0.0,
            ))
    return cells
