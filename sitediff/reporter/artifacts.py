"""Per-route artifact output."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel

from sitediff.compare.pixel_comparator import Comparison
from sitediff.models.diff_result import (
    HeatmapCell,
    PerRouteResult,
    RouteArtifacts,
    RouteSummary,
    ScoredZone,
)

logger = logging.getLogger(__name__)


def write_json(path: Path, model: BaseModel) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(model.model_dump(by_alias=True), f, indent=2, default=str)


def write_route_artifacts(
    folder: Path,
    route: str,
    comparison: Comparison,
    heatmap: list[HeatmapCell],
    zones: list[ScoredZone],
    degraded: bool = False,
) -> PerRouteResult:
    """Persist one route's images and JSON files and return its result entry."""
    folder.mkdir(parents=True, exist_ok=True)
    artifacts = RouteArtifacts(
        baseline=str(folder / "baseline.png"),
        actual=str(folder / "actual.png"),
        diff=str(folder / "diff.png"),
    )
    comparison.baseline.save(artifacts.baseline, "PNG")
    comparison.actual.save(artifacts.actual, "PNG")
    comparison.diff_image.save(artifacts.diff, "PNG")
    write_json(folder / "metrics.json", comparison.metrics())

    summary = RouteSummary(
        route=route,
        diff_ratio=comparison.ratio,
        heatmap=heatmap,
        dom_zones=zones,
    )
    summary_path = folder / "summary.json"
    write_json(summary_path, summary)
    logger.debug("Wrote artifacts for %s to %s", route, folder)

    return PerRouteResult(
        route=route,
        diff_ratio=comparison.ratio,
        artifacts=artifacts,
        heatmap=heatmap,
        dom_zones=zones,
        summary_path=str(summary_path),
        degraded=degraded,
    )
