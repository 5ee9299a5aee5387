"""Turn collected creatives into batch entries, optionally with vision insights."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import datetime

from .collector import CollectedCreative
from .describe import DEFAULT_VISION_TIMEOUT_S, Describer
from .errors import EnrichmentFailure
from .hashing import derive_ad_identifier
from .logging import jlog
from .metadata import SearchSource, build_ad_metadata
from .payload import DEFAULT_INSIGHT_TYPE, AdEntry, InsightEntry


async def describe_creative(
    describer: Describer,
    creative: CollectedCreative,
    *,
    ad_identifier: str,
    timeout_s: float = DEFAULT_VISION_TIMEOUT_S,
) -> InsightEntry | None:
    """Return one summary insight, or ``None`` when the description failed."""

    try:
        description = await asyncio.wait_for(describer.describe(creative.image_url), timeout=timeout_s)
    except Exception as exc:
        # One creative never sinks the batch; cancellation still propagates.
        jlog(
            "warning" if isinstance(exc, (EnrichmentFailure, TimeoutError)) else "error",
            event="enrichment_failed",
            ad_identifier=ad_identifier,
            image_url=creative.image_url,
            model=describer.model_label,
            error_type=type(exc).__name__,
            error=str(exc) or type(exc).__name__,
        )
        return None
    return InsightEntry(
        model=describer.model_label,
        insight_type=DEFAULT_INSIGHT_TYPE,
        insight=description.text,
        raw_response=description.raw_response,
        created_at=description.created_at,
    )


async def enrich_creatives(
    creatives: Sequence[CollectedCreative],
    *,
    source: SearchSource,
    seen_at: datetime | None = None,
    describer: Describer | None = None,
    timeout_s: float = DEFAULT_VISION_TIMEOUT_S,
    scraper_version: str | None = None,
) -> list[AdEntry]:
    """Build one :class:`AdEntry` per creative, in collection order."""

    entries: list[AdEntry] = []
    total = len(creatives)
    for index, creative in enumerate(creatives):
        ad_identifier = derive_ad_identifier(creative.image_url, index + 1)
        insights: list[InsightEntry] = []
        if describer is not None:
            jlog(
                "info",
                event="enrichment_start",
                position=index + 1,
                total=total,
                ad_identifier=ad_identifier,
                model=describer.model_label,
            )
            insight = await describe_creative(describer, creative, ad_identifier=ad_identifier, timeout_s=timeout_s)
            if insight is not None:
                insights.append(insight)
        entries.append(
            AdEntry(
                ad_identifier=ad_identifier,
                image_url=creative.image_url,
                metadata=build_ad_metadata(
                    alt_text=creative.alt_text,
                    text_snippets=creative.text_snippets,
                    source=source,
                    scraper_version=scraper_version,
                ),
                insights=insights,
                seen_at=seen_at,
            )
        )
    return entries


__all__ = ["describe_creative", "enrich_creatives"]
