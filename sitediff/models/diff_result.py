"""Diff result data structures produced by the orchestrator.

Python attributes are snake_case; JSON artifacts use the camelCase aliases
(``diffRatio``, ``domZones``, ...) so they match the worker's wire format.
Always dump with ``by_alias=True`` when writing to disk.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ZoneBounds(_WireModel):
    x: float
    y: float
    width: float
    height: float


class DomZone(_WireModel):
    """A landmark region as reported by the in-page extraction script."""
    selector: str
    label: str
    tag: str
    id: Optional[str] = None
    class_list: list[str] = Field(default_factory=list)
    data_test_id: Optional[str] = None
    role: Optional[str] = None
    bounds: ZoneBounds


class ScoredZone(_WireModel):
    selector: str
    label: str
    tag: str
    bounds: ZoneBounds  # clipped to the diff image, integer pixels
    diff_ratio: float = 0.0


class HeatmapCell(_WireModel):
    cell: str  # "r{row}c{col}"
    ratio: float = 0.0


class ComparisonMetrics(_WireModel):
    total: int
    changed: int
    ratio: float


class RouteArtifacts(_WireModel):
    baseline: str
    actual: str
    diff: str


class RouteSummary(_WireModel):
    """Contents of a route's summary.json."""
    route: str
    diff_ratio: float
    heatmap: list[HeatmapCell] = Field(default_factory=list)
    dom_zones: list[ScoredZone] = Field(default_factory=list)


class PerRouteResult(_WireModel):
    route: str
    diff_ratio: float = Field(ge=0.0, le=1.0)
    artifacts: RouteArtifacts
    heatmap: list[HeatmapCell] = Field(default_factory=list)
    dom_zones: list[ScoredZone] = Field(default_factory=list)
    summary_path: str
    degraded: bool = False  # actual image fell back to the baseline


class DiffSummary(_WireModel):
    passed: int = 0
    failed: int = 0
    avg: float = 0.0

    @classmethod
    def from_routes(cls, routes: list[PerRouteResult], threshold: float) -> "DiffSummary":
        if not routes:
            return cls()
        passed = sum(1 for r in routes if r.diff_ratio <= threshold)
        avg = sum(r.diff_ratio for r in routes) / len(routes)
        return cls(passed=passed, failed=len(routes) - passed, avg=avg)


class DiffResult(_WireModel):
    job_id: str
    diff_id: str
    per_route: list[PerRouteResult] = Field(default_factory=list)
    summary: DiffSummary = Field(default_factory=DiffSummary)
    report_path: Optional[str] = None
