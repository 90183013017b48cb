"""Tests for DOM zone extraction, the capture driver and browser utilities."""

from unittest.mock import AsyncMock, patch

import pytest
from playwright.async_api import async_playwright

from sitediff.capture.capture_driver import Capture, CaptureDriver, RenderFailure
from sitediff.capture.dom_zones import (
    LANDMARK_SELECTORS,
    extract_dom_zones,
    parse_zones,
    preferred_selector,
)
from sitediff.models.config import DiffConfig, ViewportConfig
from sitediff.models.diff_result import DomZone
from sitediff.utils.browser import create_capture_context, launch_browser


def _raw_zone(**overrides) -> dict:
    zone = {
        "selector": "section",
        "label": "section",
        "tag": "section",
        "id": None,
        "classList": [],
        "dataTestId": None,
        "role": None,
        "bounds": {"x": 0, "y": 0, "width": 300.5, "height": 120.25},
    }
    zone.update(overrides)
    return zone


def _zone(**overrides) -> DomZone:
    return DomZone.model_validate(_raw_zone(**overrides))


class TestPreferredSelector:
    """Tests for selector normalization."""

    def test_prefers_id(self):
        assert preferred_selector(_zone(id="hero", dataTestId="x", classList=["a"])) == "#hero"

    def test_then_test_id(self):
        zone = _zone(tag="div", dataTestId="pricing", classList=["a"])
        assert preferred_selector(zone) == 'div[data-testid="pricing"]'

    def test_then_up_to_three_classes(self):
        zone = _zone(classList=["a", "b", "c", "d", "e"])
        assert preferred_selector(zone) == "section.a.b.c"

    def test_falls_back_to_tag(self):
        assert preferred_selector(_zone(tag="footer")) == "footer"


class TestParseZones:
    """Tests for validating the in-page payload."""

    def test_valid_payload(self):
        zones = parse_zones([_raw_zone(id="main-content", tag="main")])
        assert len(zones) == 1
        assert zones[0].selector == "#main-content"
        assert zones[0].bounds.width == 300.5

    def test_malformed_entries_dropped(self):
        zones = parse_zones([
            _raw_zone(),
            {"selector": "nav"},  # no bounds
            "garbage",
            _raw_zone(bounds={"x": "left", "y": 0, "width": 1, "height": 1}),
        ])
        assert len(zones) == 1

    def test_non_list_payload(self):
        assert parse_zones(None) == []
        assert parse_zones({"zones": []}) == []

    def test_respects_limit(self):
        zones = parse_zones([_raw_zone(id=f"z{i}") for i in range(30)], limit=24)
        assert len(zones) == 24
        assert zones[0].selector == "#z0"
        assert zones[-1].selector == "#z23"


class TestExtractDomZones:
    """Tests for running the landmark scan in a page."""

    @pytest.mark.asyncio
    async def test_passes_options_to_page(self, mock_page):
        mock_page.evaluate.return_value = [_raw_zone(tag="header", selector="header")]

        zones = await extract_dom_zones(mock_page, min_size=32, limit=24)

        assert len(zones) == 1
        script, options = mock_page.evaluate.call_args.args
        assert "getBoundingClientRect" in script
        assert options == {"selectors": LANDMARK_SELECTORS, "minSize": 32, "limit": 24}

    def test_landmark_selectors(self):
        for sel in ("header", "nav", "main", "section", "footer", "[data-testid]",
                    '[role="banner"]', '[role="navigation"]', '[role="main"]',
                    '[role="contentinfo"]'):
            assert sel in LANDMARK_SELECTORS

    @pytest.mark.asyncio
    async def test_dedupe_set_is_local_to_the_script(self, mock_page):
        await extract_dom_zones(mock_page)
        script = mock_page.evaluate.call_args.args[0]
        assert "const seen = new Set()" in script


class TestCreateCaptureContext:
    """Tests for capture context options."""

    @pytest.mark.asyncio
    async def test_viewport_and_device_scale(self):
        browser = AsyncMock()
        context = AsyncMock()
        browser.new_context = AsyncMock(return_value=context)

        await create_capture_context(browser, ViewportConfig(width=375, height=812, device_scale=2))

        kwargs = browser.new_context.call_args.kwargs
        assert kwargs["viewport"] == {"width": 375, "height": 812}
        assert kwargs["device_scale_factor"] == 2
        context.add_init_script.assert_not_called()

    @pytest.mark.asyncio
    async def test_stealth_adds_init_script(self):
        browser = AsyncMock()
        context = AsyncMock()
        browser.new_context = AsyncMock(return_value=context)

        await create_capture_context(browser, ViewportConfig(), stealth=True)

        context.add_init_script.assert_called_once()


class TestCaptureDriver:
    """Tests for CaptureDriver rendering outcomes."""

    def _driver_with_page(self, page):
        context = AsyncMock()
        context.new_page = AsyncMock(return_value=page)
        browser = AsyncMock()
        driver = CaptureDriver(DiffConfig())
        driver._browser = browser
        return driver, context

    @pytest.mark.asyncio
    async def test_successful_render(self, mock_page, tmp_path):
        mock_page.evaluate.return_value = [_raw_zone(id="hero")]
        driver, context = self._driver_with_page(mock_page)
        out = tmp_path / "root" / "actual.png"

        with patch("sitediff.capture.capture_driver.create_capture_context",
                   new_callable=AsyncMock, return_value=context):
            outcome = await driver.render_route("http://localhost:3100/", "/about",
                                                ViewportConfig(), out)

        assert isinstance(outcome, Capture)
        assert outcome.url == "http://localhost:3100/about"
        assert outcome.screenshot_path == str(out)
        assert [z.selector for z in outcome.dom_zones] == ["#hero"]
        mock_page.goto.assert_awaited_once_with(
            "http://localhost:3100/about", wait_until="networkidle", timeout=60_000,
        )
        mock_page.screenshot.assert_awaited_once_with(path=str(out), full_page=True)
        context.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_zones_extracted_before_screenshot(self, mock_page, tmp_path):
        calls = []
        mock_page.evaluate.side_effect = lambda *a, **k: calls.append("zones") or []
        mock_page.screenshot.side_effect = lambda *a, **k: calls.append("screenshot")
        driver, context = self._driver_with_page(mock_page)

        with patch("sitediff.capture.capture_driver.create_capture_context",
                   new_callable=AsyncMock, return_value=context):
            await driver.render_route("http://localhost:3100", "/", ViewportConfig(),
                                      tmp_path / "a.png")

        assert calls == ["zones", "screenshot"]

    @pytest.mark.asyncio
    async def test_navigation_error_returns_failure(self, mock_page, tmp_path):
        mock_page.goto.side_effect = TimeoutError("Timeout 60000ms exceeded")
        driver, context = self._driver_with_page(mock_page)

        with patch("sitediff.capture.capture_driver.create_capture_context",
                   new_callable=AsyncMock, return_value=context):
            outcome = await driver.render_route("http://localhost:3100", "/slow",
                                                ViewportConfig(), tmp_path / "a.png")

        assert isinstance(outcome, RenderFailure)
        assert "Timeout" in outcome.error
        assert outcome.error_type == "TimeoutError"
        context.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_browser_launch_failure_returns_failure(self, tmp_path):
        driver = CaptureDriver(DiffConfig())
        with patch.object(driver, "_ensure_browser",
                          AsyncMock(side_effect=RuntimeError("Executable doesn't exist"))):
            outcome = await driver.render_url("http://localhost:3100/", ViewportConfig(),
                                              tmp_path / "a.png")
        assert isinstance(outcome, RenderFailure)
        assert "Executable" in outcome.error

    @pytest.mark.asyncio
    async def test_close_releases_browser(self):
        driver = CaptureDriver(DiffConfig())
        browser = AsyncMock()
        playwright = AsyncMock()
        driver._browser, driver._playwright = browser, playwright

        async with driver:
            pass

        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()
        assert driver._browser is None


# ============================================================================
# In-page landmark scan (real Chromium)
# ============================================================================


LANDMARK_PAGE = """
<html><body style="margin: 0">
  <nav style="height: 20px">too short</nav>
  <header id="top" style="height: 80px">Header</header>
  <section class="card" style="height: 100px">First card</section>
  <section class="card" style="height: 100px">Second card</section>
  <main class="a b c d e f g" style="height: 100px">Main</main>
  <div data-testid="pricing" style="height: 60px">Pricing</div>
  <footer role="contentinfo" style="height: 50px">Footer</footer>
</body></html>
"""


async def _scan(markup: str, limit: int = 24):
    async with async_playwright() as playwright:
        try:
            browser = await launch_browser(playwright)
        except Exception as e:
            pytest.skip(f"Chromium not available: {e}")
        try:
            page = await browser.new_page(viewport={"width": 800, "height": 600})
            await page.set_content(markup)
            return await extract_dom_zones(page, min_size=32, limit=limit)
        finally:
            await browser.close()


@pytest.mark.integration
class TestLandmarkScanInBrowser:
    """Runs the extraction script against real markup."""

    @pytest.mark.asyncio
    async def test_filters_dedupes_and_labels(self):
        zones = await _scan(LANDMARK_PAGE)

        assert [z.selector for z in zones] == [
            "#top",
            "section.card",
            "main.a.b.c",
            'div[data-testid="pricing"]',
            "footer",
        ]
        assert [z.label for z in zones] == [
            "header #top",
            "section .card",
            "main .a.b.c",
            "div [data-testid=pricing]",
            "footer [role=contentinfo]",
        ]
        main = zones[2]
        assert main.class_list == ["a", "b", "c", "d", "e", "f"]
        assert main.bounds.width == 800
        assert main.bounds.height == 100

    @pytest.mark.asyncio
    async def test_bounds_in_document_order(self):
        zones = await _scan(LANDMARK_PAGE)
        tops = [z.bounds.y for z in zones]
        assert tops == sorted(tops)
        assert zones[0].bounds.y == 20  # below the dropped nav

    @pytest.mark.asyncio
    async def test_capped_in_document_order(self):
        markup = "".join(f'<section id="s{i}" style="height: 40px">{i}</section>' for i in range(30))
        zones = await _scan(f"<html><body>{markup}</body></html>")
        assert len(zones) == 24
        assert zones[0].selector == "#s0"
        assert zones[-1].selector == "#s23"
