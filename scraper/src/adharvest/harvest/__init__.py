"""Advertiser harvest pipeline exports."""

from __future__ import annotations

from .pipeline import CliArgs, get_scraper_version, parse_args, run

__all__ = ["CliArgs", "parse_args", "run", "get_scraper_version"]
