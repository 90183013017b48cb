"""Browser launch and capture context helpers."""

from __future__ import annotations

from typing import Optional

from playwright.async_api import Browser, BrowserContext, Playwright

from sitediff.models.config import ViewportConfig

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)

# Only applied when re-capturing baselines from the live source site, which may
# run bot detection. The staged app is always rendered without it.
_STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });

Object.defineProperty(navigator, 'languages', {
    get: () => ['en-US', 'en'],
});

if (!window.chrome) {
    window.chrome = {};
}
if (!window.chrome.runtime) {
    window.chrome.runtime = {};
}
"""


async def launch_browser(playwright: Playwright, headless: bool = True) -> Browser:
    """Launch headless Chromium for screenshot capture."""
    return await playwright.chromium.launch(
        headless=headless,
        args=[
            "--disable-blink-features=AutomationControlled",
            "--hide-scrollbars",
        ],
    )


async def create_capture_context(
    browser: Browser,
    viewport: ViewportConfig,
    user_agent: Optional[str] = None,
    stealth: bool = False,
) -> BrowserContext:
    """Create a browser context pinned to a viewport and device scale.

    Locale, timezone and motion preferences are fixed so that two captures
    of the same page render identically.
    """
    context = await browser.new_context(
        viewport=viewport.as_playwright_viewport(),
        device_scale_factor=viewport.device_scale,
        user_agent=user_agent or DEFAULT_USER_AGENT,
        locale="en-US",
        timezone_id="America/New_York",
        reduced_motion="reduce",
        extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
    )
    if stealth:
        await context.add_init_script(_STEALTH_INIT_SCRIPT)
    return context
