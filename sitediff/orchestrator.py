"""Diff orchestrator — validates inputs, serves the staged app, diffs every route."""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from pathlib import Path
from typing import Optional

from PIL import Image
from pydantic import ValidationError

from sitediff import errors
from sitediff.capture.capture_driver import Capture, CaptureDriver, RenderFailure
from sitediff.compare.classifier import diff_pixel_mask
from sitediff.compare.heatmap import build_heatmap
from sitediff.compare.pixel_comparator import compare, load_image
from sitediff.compare.zones import score_zones
from sitediff.errors import DiffError
from sitediff.models.config import DiffConfig, ViewportConfig
from sitediff.models.diff_result import DiffResult, DiffSummary, DomZone, PerRouteResult
from sitediff.models.request import Analysis, DiffRequest, RouteDescriptor
from sitediff.progress import ProgressReporter
from sitediff.reporter.reporter import ReportSynthesizer
from sitediff.server.supervisor import BuildServeSupervisor, ServerHandle
from sitediff.url_utils import cache_key_from_url

logger = logging.getLogger(__name__)


class DiffOrchestrator:
    """Runs a visual diff of the staged app against the crawled baselines.

    Routes are processed strictly one at a time, in analysis order, so at most
    one baseline/actual/diff triple is held in memory. Parallel rendering
    would change peak memory and output ordering and would need to be opt-in.
    """

    def __init__(self, config: DiffConfig, progress: ProgressReporter | None = None):
        self.config = config
        self.progress = progress or ProgressReporter()
        self.supervisor = BuildServeSupervisor(config, self.progress)

    def _new_capture_driver(self) -> CaptureDriver:
        return CaptureDriver(self.config)

    def run_diff(self, request: DiffRequest) -> DiffResult:
        """Synchronous entry point."""
        return asyncio.run(self.run(request))

    async def diff(
        self,
        generation_id: str,
        baselines: str = "cached",
        viewport: ViewportConfig | dict | None = None,
        threshold: float | None = None,
        render_report: bool = False,
    ) -> DiffResult:
        """Validate the raw parameters and run the diff."""
        try:
            request = DiffRequest(
                generation_id=generation_id,
                baselines=baselines,
                viewport=viewport if viewport is not None else self.config.default_viewport,
                threshold=threshold if threshold is not None else self.config.default_threshold,
                render_report=render_report,
            )
        except ValidationError as e:
            details = e.errors(include_url=False, include_context=False, include_input=False)
            error = errors.invalid_params(f"{e.error_count()} validation error(s)", details)
            self._report_failure(error)
            raise error from e
        return await self.run(request)

    def _report_failure(self, error: DiffError) -> None:
        logger.error("Diff failed (%s): %s", error.code, error.message)
        self.progress.emit("error", detail=error.message, code=error.code)

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def _check_preconditions(self) -> None:
        if not self.config.analysis_path.exists():
            raise errors.missing_analysis(self.config.analysis_path)
        if not self.config.generation_marker_path.exists():
            raise errors.missing_generation_artifacts(self.config.generation_marker_path)
        if not self.config.dependency_manifest_path.exists():
            raise errors.missing_dependency_manifest(self.config.dependency_manifest_path)

    def _load_analysis(self) -> Analysis:
        path = self.config.analysis_path
        try:
            with open(path) as f:
                data = json.load(f)
            return Analysis.model_validate(data)
        except (OSError, ValueError) as e:
            raise errors.invalid_analysis(path, str(e)) from e

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, request: DiffRequest) -> DiffResult:
        start = time.time()
        job_id = f"job_{uuid.uuid4().hex}"
        diff_id = f"diff_{uuid.uuid4().hex}"
        self.progress.context.update({"jobId": job_id, "generationId": request.generation_id})

        try:
            self._check_preconditions()
            analysis = self._load_analysis()
        except DiffError as e:
            self._report_failure(e)
            raise
        logger.info("=== Visual diff %s: %d routes (baselines=%s, threshold=%g) ===",
                    diff_id, len(analysis.routes), request.baselines, request.threshold)
        self.progress.emit("start", detail="initializing")

        out_root = self.config.diff_reports_dir / diff_id
        reporter = ReportSynthesizer(self.config, out_root, self.progress)

        server = self.supervisor.serve(self.config.staging_dir, log_path=out_root / "server.log")
        try:
            async with server as handle:
                async with self._new_capture_driver() as driver:
                    per_route = await self._diff_routes(driver, handle, analysis.routes, request, reporter)
        except DiffError as e:
            self._report_failure(e)
            raise

        result = DiffResult(
            job_id=job_id,
            diff_id=diff_id,
            per_route=per_route,
            summary=DiffSummary.from_routes(per_route, request.threshold),
        )
        if request.render_report:
            result.report_path = reporter.render_report(result, request.threshold)
        reporter.write_result(result)

        s = result.summary
        self.progress.emit("complete", passed=s.passed, failed=s.failed, avg=s.avg)
        logger.info("=== Diff complete in %.1fs: %d passed, %d failed, avg %.4f ===",
                    time.time() - start, s.passed, s.failed, s.avg)
        return result

    async def _diff_routes(
        self,
        driver: CaptureDriver,
        handle: ServerHandle,
        routes: list[RouteDescriptor],
        request: DiffRequest,
        reporter: ReportSynthesizer,
    ) -> list[PerRouteResult]:
        results: list[PerRouteResult] = []
        for index, descriptor in enumerate(routes):
            self.progress.emit("route", detail=descriptor.route, current=index, total=len(routes))
            logger.info("Diffing route [%d/%d]: %s", index + 1, len(routes), descriptor.route)
            result = await self._diff_route(driver, handle.base_url, descriptor, request, reporter)
            if result is not None:
                results.append(result)
        return results

    # ------------------------------------------------------------------
    # Per route
    # ------------------------------------------------------------------

    def _cached_baseline_path(self, descriptor: RouteDescriptor) -> Path:
        return self.config.crawl_cache_dir / cache_key_from_url(descriptor.source_url) / "snap.png"

    async def _resolve_baseline(
        self,
        driver: CaptureDriver,
        descriptor: RouteDescriptor,
        request: DiffRequest,
        folder: Path,
    ) -> Optional[Image.Image]:
        """Load the baseline image, or None if the route must be skipped."""
        if request.baselines == "recrawl":
            outcome = await driver.render_url(
                descriptor.source_url, request.viewport, folder / "baseline.png", stealth=True,
            )
            if isinstance(outcome, Capture):
                try:
                    return load_image(outcome.screenshot_path)
                except (OSError, ValueError) as e:
                    logger.debug("Recrawled baseline unreadable for %s: %s", descriptor.route, e)
            else:
                logger.warning("Recrawl of %s failed (%s), using cached baseline",
                               descriptor.source_url, outcome.error)

        path = self._cached_baseline_path(descriptor)
        try:
            return load_image(path)
        except (OSError, ValueError) as e:
            logger.debug("Skipping %s: baseline %s unreadable (%s)", descriptor.route, path, e)
            return None

    async def _diff_route(
        self,
        driver: CaptureDriver,
        base_url: str,
        descriptor: RouteDescriptor,
        request: DiffRequest,
        reporter: ReportSynthesizer,
    ) -> Optional[PerRouteResult]:
        route = descriptor.route
        folder = reporter.route_folder(route)

        baseline = await self._resolve_baseline(driver, descriptor, request, folder)
        if baseline is None:
            self.progress.emit("route-skipped", detail=route)
            return None

        outcome = await driver.render_route(base_url, route, request.viewport, folder / "actual.png")
        actual, zones, degraded = self._actual_from_outcome(outcome, baseline, route)

        return await asyncio.to_thread(
            self._compare_and_write, reporter, route, baseline, actual, zones,
            request, degraded,
        )

    def _actual_from_outcome(
        self,
        outcome: Capture | RenderFailure,
        baseline: Image.Image,
        route: str,
    ) -> tuple[Image.Image, list[DomZone], bool]:
        """Pick the actual image, falling back to the baseline when rendering failed."""
        if isinstance(outcome, Capture):
            try:
                return load_image(outcome.screenshot_path), outcome.dom_zones, False
            except (OSError, ValueError) as e:
                outcome = RenderFailure(url=outcome.url, error=f"unreadable screenshot: {e}",
                                        error_type=type(e).__name__)

        logger.warning("Render failed for %s (%s: %s); reusing baseline as actual, "
                       "diff for this route is not meaningful",
                       route, outcome.error_type or "error", outcome.error)
        self.progress.emit("route-degraded", detail=route, error=outcome.error)
        return baseline, [], True

    def _compare_and_write(
        self,
        reporter: ReportSynthesizer,
        route: str,
        baseline: Image.Image,
        actual: Image.Image,
        zones: list[DomZone],
        request: DiffRequest,
        degraded: bool,
    ) -> PerRouteResult:
        comparison = compare(baseline, actual, request.threshold)
        mask = diff_pixel_mask(comparison.diff_image)
        heatmap = build_heatmap(mask, self.config.heatmap_rows, self.config.heatmap_cols)
        scored = score_zones(
            mask, zones,
            limit=self.config.max_reported_zones,
            scale=request.viewport.device_scale,
        )
        result = reporter.write_route(route, comparison, heatmap, scored, degraded=degraded)
        logger.info("  %s: %.4f changed (%d/%d px)%s", route, comparison.ratio,
                    comparison.changed, comparison.total, " [degraded]" if degraded else "")
        return result
