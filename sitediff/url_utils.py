"""Shared URL utilities — route slugs and content-addressed cache keys."""

from __future__ import annotations

import hashlib
import re

_UNSAFE_SLUG_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def cache_key_from_url(url: str) -> str:
    """Key of a crawled page in the crawl cache (SHA-1 of the source URL)."""
    return hashlib.sha1(url.encode()).hexdigest()


def route_slug(route: str) -> str:
    """Filesystem-safe folder name for a route."""
    if route in ("/", ""):
        return "root"
    slug = route[1:] if route.startswith("/") else route
    slug = slug.replace("/", "_")
    return _UNSAFE_SLUG_CHARS.sub("_", slug)


def route_url(base_url: str, route: str) -> str:
    """Join the served app's base URL and a route path."""
    base = base_url.rstrip("/")
    if not route:
        return base + "/"
    if not route.startswith("/"):
        route = "/" + route
    return base + route
