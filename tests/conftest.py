"""Pytest configuration and shared fixtures."""

import json
from pathlib import Path
from typing import Optional
from unittest.mock import AsyncMock, Mock

import pytest
from PIL import Image
from playwright.async_api import Page

from sitediff.capture.capture_driver import Capture, RenderFailure
from sitediff.models.config import DiffConfig, ViewportConfig
from sitediff.models.diff_result import DomZone, ZoneBounds
from sitediff.progress import ProgressEvent, ProgressReporter
from sitediff.url_utils import cache_key_from_url


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def viewport_config() -> ViewportConfig:
    """Create a test viewport configuration."""
    return ViewportConfig(width=1280, height=800, device_scale=1.0)


@pytest.fixture
def diff_config(tmp_path: Path) -> DiffConfig:
    """Config rooted in a temporary workspace with fast timeouts."""
    return DiffConfig(
        workspace_dir=str(tmp_path / ".site2ts"),
        install_timeout_seconds=5,
        build_timeout_seconds=5,
        ready_timeout_seconds=1,
        ready_poll_interval_seconds=0.05,
        stop_grace_seconds=1,
    )


# ============================================================================
# Workspace Fixtures
# ============================================================================


def write_analysis(config: DiffConfig, routes: list[dict]) -> Path:
    path = config.analysis_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"routes": routes}))
    return path


def write_baseline(config: DiffConfig, source_url: str, image: Image.Image) -> Path:
    """Store an image in the crawl cache where the orchestrator looks for it."""
    path = config.crawl_cache_dir / cache_key_from_url(source_url) / "snap.png"
    path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path, "PNG")
    return path


@pytest.fixture
def workspace(diff_config: DiffConfig) -> DiffConfig:
    """A workspace with every precondition artifact present and no routes."""
    write_analysis(diff_config, [])
    diff_config.generation_marker_path.parent.mkdir(parents=True, exist_ok=True)
    diff_config.generation_marker_path.write_text("[]")
    diff_config.dependency_manifest_path.parent.mkdir(parents=True, exist_ok=True)
    diff_config.dependency_manifest_path.write_text('{"name": "staging"}')
    return diff_config


# ============================================================================
# Image Helpers
# ============================================================================


def solid_image(width: int, height: int, color=(255, 255, 255, 255)) -> Image.Image:
    return Image.new("RGBA", (width, height), color)


def image_with_box(width: int, height: int, box: tuple[int, int, int, int],
                   color=(0, 0, 0, 255), background=(255, 255, 255, 255)) -> Image.Image:
    """White image with a filled rectangle (x1, y1, x2, y2), end-exclusive."""
    img = solid_image(width, height, background)
    x1, y1, x2, y2 = box
    img.paste(Image.new("RGBA", (x2 - x1, y2 - y1), color), (x1, y1))
    return img


@pytest.fixture
def make_zone():
    def _make(x: float, y: float, width: float, height: float,
              selector: str = "main", tag: str = "main") -> DomZone:
        return DomZone(
            selector=selector, label=tag, tag=tag,
            bounds=ZoneBounds(x=x, y=y, width=width, height=height),
        )
    return _make


# ============================================================================
# Progress Fixtures
# ============================================================================


@pytest.fixture
def progress_events() -> list[ProgressEvent]:
    return []


@pytest.fixture
def progress(progress_events: list[ProgressEvent]) -> ProgressReporter:
    """Progress reporter that records every event into ``progress_events``."""
    reporter = ProgressReporter()
    reporter.subscribe(progress_events.append)
    return reporter


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_page() -> AsyncMock:
    """Create a mock Playwright page."""
    page = AsyncMock(spec=Page)
    page.goto = AsyncMock()
    page.evaluate = AsyncMock(return_value=[])
    page.screenshot = AsyncMock()
    return page


class FakeCaptureDriver:
    """Stands in for CaptureDriver; writes a prepared image per route or fails."""

    def __init__(self, images: Optional[dict[str, Image.Image]] = None,
                 zones: Optional[dict[str, list[DomZone]]] = None,
                 failing: Optional[set[str]] = None):
        self.images = images or {}
        self.zones = zones or {}
        self.failing = failing or set()
        self.rendered: list[str] = []
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.closed = True

    async def render_route(self, base_url, route, viewport, output_path):
        return await self.render_url(base_url.rstrip("/") + route, viewport, output_path, route=route)

    async def render_url(self, url, viewport, output_path, stealth=False, route=None):
        key = route if route is not None else url
        self.rendered.append(key)
        if key in self.failing or key not in self.images:
            return RenderFailure(url=url, error="net::ERR_CONNECTION_REFUSED", error_type="Error")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.images[key].save(output_path, "PNG")
        return Capture(url=url, screenshot_path=str(output_path), dom_zones=self.zones.get(key, []))


@pytest.fixture
def fake_server_handle() -> Mock:
    handle = Mock()
    handle.base_url = "http://localhost:3100"
    handle.port = 3100
    return handle
