"""URL helpers for the transparency center and the ingest service."""

from __future__ import annotations

import re
import urllib.parse

GATC_BASE_URL = "https://adstransparency.google.com/"
BATCH_ENDPOINT_PATH = "/api/ads/batch"
CREATIVE_HOST_RE = re.compile(r"googleusercontent|ggpht|gstatic|googleapis|doubleclick", re.IGNORECASE)


def build_search_url(
    *,
    region: str,
    platform: str,
    start_date: str,
    end_date: str,
    search_url: str | None = None,
) -> str:
    """Return the transparency center search URL, honoring an explicit override."""

    if search_url:
        return search_url
    query = urllib.parse.urlencode(
        {
            "region": region,
            "platform": platform,
            "start-date": start_date,
            "end-date": end_date,
        }
    )
    return f"{GATC_BASE_URL}?{query}"


def is_creative_image_url(url: str | None) -> bool:
    """True when ``url`` is an http(s) image served from a Google creative host."""

    if not url:
        return False
    try:
        parsed = urllib.parse.urlparse(url)
    except ValueError:
        return False
    if parsed.scheme.lower() not in ("http", "https"):
        return False
    return bool(CREATIVE_HOST_RE.search(url))


def batch_endpoint(api_base: str) -> str:
    base = api_base if api_base.endswith("/") else f"{api_base}/"
    return urllib.parse.urljoin(base, BATCH_ENDPOINT_PATH)


__all__ = [
    "BATCH_ENDPOINT_PATH",
    "CREATIVE_HOST_RE",
    "GATC_BASE_URL",
    "batch_endpoint",
    "build_search_url",
    "is_creative_image_url",
]
