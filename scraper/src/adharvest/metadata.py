"""Metadata helpers for harvested ads."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SearchSource:
    """Transparency center query a creative was harvested from."""

    region: str
    platform: str
    start_date: str
    end_date: str

    def to_dict(self) -> dict[str, str]:
        return {
            "region": self.region,
            "platform": self.platform,
            "startDate": self.start_date,
            "endDate": self.end_date,
        }


def build_ad_metadata(
    *,
    alt_text: str | None,
    text_snippets: Sequence[str],
    source: SearchSource,
    scraper_version: str | None = None,
) -> dict[str, Any]:
    """Return ad metadata with deterministic key ordering for auditability."""

    md: dict[str, Any] = {}
    if alt_text:
        md["alt"] = alt_text
    md["textSnippets"] = list(text_snippets)
    md["source"] = source.to_dict()
    if scraper_version:
        md["scraperVersion"] = scraper_version
    return md


__all__ = ["SearchSource", "build_ad_metadata"]
