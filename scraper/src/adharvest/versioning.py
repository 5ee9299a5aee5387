"""Scraper version resolution helpers."""

from __future__ import annotations

import os
from importlib import metadata

DISTRIBUTION_NAME = "adharvest"


def package_version() -> str:
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return "0+unknown"


def get_scraper_version(script_name: str, script_version: str | None = None) -> str:
    """Return ``<script>:<version>``; ``AD_SCRAPER_VERSION`` overrides it wholesale."""

    override = os.getenv("AD_SCRAPER_VERSION")
    if override:
        return override
    return f"{script_name}:{script_version or package_version()}"


__all__ = ["get_scraper_version", "package_version"]
