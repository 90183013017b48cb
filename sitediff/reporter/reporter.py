"""Report synthesis for a diff run."""

from __future__ import annotations

import logging
from pathlib import Path

from sitediff.compare.pixel_comparator import Comparison
from sitediff.models.config import DiffConfig
from sitediff.models.diff_result import DiffResult, HeatmapCell, PerRouteResult, ScoredZone
from sitediff.progress import ProgressReporter
from sitediff.url_utils import route_slug

from .artifacts import write_json, write_route_artifacts
from .html_report import generate_html_report

logger = logging.getLogger(__name__)


class ReportSynthesizer:
    """Writes per-route artifacts and the optional aggregate report under ``out_root``."""

    def __init__(self, config: DiffConfig, out_root: Path, progress: ProgressReporter | None = None):
        self.config = config
        self.out_root = out_root
        self.progress = progress or ProgressReporter()

    def route_folder(self, route: str) -> Path:
        return self.out_root / route_slug(route)

    def write_route(
        self,
        route: str,
        comparison: Comparison,
        heatmap: list[HeatmapCell],
        zones: list[ScoredZone],
        degraded: bool = False,
    ) -> PerRouteResult:
        return write_route_artifacts(
            self.route_folder(route), route, comparison, heatmap, zones, degraded=degraded,
        )

    def write_result(self, result: DiffResult) -> Path:
        """Persist the full DiffResult as result.json at the run root."""
        path = self.out_root / "result.json"
        write_json(path, result)
        logger.debug("Saved diff result to %s", path)
        return path

    def render_report(self, result: DiffResult, threshold: float) -> str | None:
        """Generate index.html. Failures are logged and reported, never raised."""
        path = self.out_root / "index.html"
        self.progress.emit("report", detail=str(path))
        try:
            self.out_root.mkdir(parents=True, exist_ok=True)
            generate_html_report(
                result, threshold, path, embed_images=self.config.report_embed_images,
            )
        except Exception as e:
            logger.warning("HTML report generation failed: %s", e)
            self.progress.emit("warning", detail=f"report generation failed: {e}")
            return None
        logger.info("HTML report: %s", path)
        return str(path)
