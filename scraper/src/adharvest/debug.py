"""Debug artifact helpers for failed harvest runs."""

from __future__ import annotations

import os
import re

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from .logging import jlog

DEBUG_DIR = "media/debug"
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def ensure_debug_dir() -> str:
    """Create the debug directory if it does not exist and return the path."""

    os.makedirs(DEBUG_DIR, exist_ok=True)
    return DEBUG_DIR


def debug_html_path(advertiser: str) -> str:
    slug = _UNSAFE_CHARS.sub("_", advertiser).strip("_") or "advertiser"
    return os.path.join(DEBUG_DIR, f"page_{slug}.html")


async def dump_page_html(page: Page, advertiser: str) -> str | None:
    """Persist the current page HTML for later debugging (best effort)."""

    path = debug_html_path(advertiser)
    try:
        ensure_debug_dir()
        html = await page.content()
        with open(path, "w", encoding="utf-8") as f:
            f.write(html)
    except (OSError, PlaywrightError) as exc:  # pragma: no cover - logging only
        jlog("error", event="debug_save_html_error", advertiser=advertiser, error=str(exc))
        return None
    jlog("info", event="debug_html_saved", advertiser=advertiser, path=path)
    return path


__all__ = ["DEBUG_DIR", "debug_html_path", "dump_page_html", "ensure_debug_dir"]
