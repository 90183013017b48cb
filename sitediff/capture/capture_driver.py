"""Capture driver — renders pages in headless Chromium and screenshots them."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional, Union

from playwright.async_api import Browser, Playwright, async_playwright
from pydantic import BaseModel, Field

from sitediff.models.config import DiffConfig, ViewportConfig
from sitediff.models.diff_result import DomZone
from sitediff.url_utils import route_url
from sitediff.utils.browser import create_capture_context, launch_browser

from .dom_zones import extract_dom_zones

logger = logging.getLogger(__name__)


class Capture(BaseModel):
    """A successful render: full-page screenshot plus landmark zones."""
    url: str
    screenshot_path: str
    dom_zones: list[DomZone] = Field(default_factory=list)
    duration_seconds: float = 0.0


class RenderFailure(BaseModel):
    """A render that could not complete; the caller decides how to recover."""
    url: str
    error: str
    error_type: str = ""


RenderOutcome = Union[Capture, RenderFailure]


class CaptureDriver:
    """Drives one Chromium instance for the lifetime of a diff run.

    The browser is launched lazily on the first render so that a missing
    browser install degrades each route instead of aborting the run.
    """

    def __init__(self, config: DiffConfig):
        self.config = config
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def __aenter__(self) -> "CaptureDriver":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _ensure_browser(self) -> Browser:
        if self._browser is None:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            logger.debug("Launching Chromium for capture (headless=%s)...", self.config.headless)
            self._browser = await launch_browser(self._playwright, headless=self.config.headless)
        return self._browser

    async def close(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.debug("Browser close failed: %s", e)
            self._browser = None
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug("Playwright stop failed: %s", e)
            self._playwright = None

    async def render_route(
        self,
        base_url: str,
        route: str,
        viewport: ViewportConfig,
        output_path: Path,
    ) -> RenderOutcome:
        """Render ``base_url + route`` and capture it to ``output_path``."""
        return await self.render_url(route_url(base_url, route), viewport, output_path)

    async def render_url(
        self,
        url: str,
        viewport: ViewportConfig,
        output_path: Path,
        stealth: bool = False,
    ) -> RenderOutcome:
        """Navigate, wait for network idle, extract zones, take a full-page screenshot."""
        start = time.time()
        context = None
        try:
            browser = await self._ensure_browser()
            context = await create_capture_context(browser, viewport, stealth=stealth)
            page = await context.new_page()
            logger.debug("Navigating to %s (%dx%d @%gx)", url,
                         viewport.width, viewport.height, viewport.device_scale)
            await page.goto(url, wait_until="networkidle",
                            timeout=self.config.navigation_timeout_ms)
            dom_zones = await extract_dom_zones(
                page,
                min_size=self.config.min_zone_size,
                limit=self.config.max_captured_zones,
            )
            output_path.parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(output_path), full_page=True)
        except Exception as e:
            logger.debug("Render of %s failed: %s", url, e)
            return RenderFailure(url=url, error=str(e), error_type=type(e).__name__)
        finally:
            if context is not None:
                try:
                    await context.close()
                except Exception as e:
                    logger.debug("Context close failed: %s", e)

        return Capture(
            url=url,
            screenshot_path=str(output_path),
            dom_zones=dom_zones,
            duration_seconds=round(time.time() - start, 2),
        )
