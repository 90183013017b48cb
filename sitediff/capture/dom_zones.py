"""DOM zone extraction — catalogs landmark regions of a rendered page."""

from __future__ import annotations

import logging

from playwright.async_api import Page
from pydantic import ValidationError

from sitediff.models.diff_result import DomZone

logger = logging.getLogger(__name__)

LANDMARK_SELECTORS = [
    "header",
    "nav",
    "main",
    "section",
    "footer",
    "[data-testid]",
    '[role="banner"]',
    '[role="navigation"]',
    '[role="main"]',
    '[role="contentinfo"]',
]

_EXTRACT_ZONES_JS = """(opts) => {
    const nodes = Array.from(document.querySelectorAll(opts.selectors.join(',')));
    const seen = new Set();
    const zones = [];
    for (const el of nodes) {
        if (zones.length >= opts.limit) break;
        const rect = el.getBoundingClientRect();
        if (rect.width < opts.minSize || rect.height < opts.minSize) continue;

        const tag = el.tagName.toLowerCase();
        const id = el.id || null;
        const dataTestId = el.getAttribute('data-testid') || null;
        const role = el.getAttribute('role') || null;
        const classes = Array.from(el.classList || []).slice(0, 6);

        const key = [el.tagName, id, dataTestId, classes.join('.')].join('|');
        if (seen.has(key)) continue;
        seen.add(key);

        const labelParts = [tag];
        if (id) labelParts.push('#' + id);
        if (classes.length) labelParts.push('.' + classes.slice(0, 3).join('.'));
        if (dataTestId) labelParts.push('[data-testid=' + dataTestId + ']');
        if (role) labelParts.push('[role=' + role + ']');

        zones.push({
            selector: tag,
            label: labelParts.join(' '),
            tag: tag,
            id: id,
            classList: classes,
            dataTestId: dataTestId,
            role: role,
            bounds: { x: rect.x, y: rect.y, width: rect.width, height: rect.height },
        });
    }
    return zones;
}"""


def preferred_selector(zone: DomZone) -> str:
    """Most specific stable selector: id, then test-id, then up to 3 classes, else tag."""
    if zone.id:
        return f"#{zone.id}"
    if zone.data_test_id:
        return f'{zone.tag}[data-testid="{zone.data_test_id}"]'
    if zone.class_list:
        return zone.tag + "".join(f".{cls}" for cls in zone.class_list[:3])
    return zone.tag


def parse_zones(raw_zones: object, limit: int = 24) -> list[DomZone]:
    """Validate the page payload into DomZone models, dropping malformed entries."""
    if not isinstance(raw_zones, list):
        logger.debug("Zone payload is not a list (%s), ignoring", type(raw_zones).__name__)
        return []

    zones: list[DomZone] = []
    for raw in raw_zones:
        try:
            zone = DomZone.model_validate(raw)
        except ValidationError as e:
            logger.debug("Dropping malformed zone payload %r: %s", raw, e)
            continue
        zones.append(zone.model_copy(update={"selector": preferred_selector(zone)}))
        if len(zones) >= limit:
            break
    return zones


async def extract_dom_zones(page: Page, min_size: int = 32, limit: int = 24) -> list[DomZone]:
    """Run the landmark scan in the page and return validated zones in document order."""
    raw_zones = await page.evaluate(
        _EXTRACT_ZONES_JS,
        {"selectors": LANDMARK_SELECTORS, "minSize": min_size, "limit": limit},
    )
    zones = parse_zones(raw_zones, limit=limit)
    logger.debug("Extracted %d DOM zones", len(zones))
    return zones
