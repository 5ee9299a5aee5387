"""Idempotent batch upsert of harvested ads and their insights.

Each ad is upserted on (advertiser, platform, ad identifier):

- insert sets ``first_seen = last_seen = `` the effective timestamp;
- conflict replaces ``image_url``, replaces ``metadata`` only with a non-null
  value, and sets ``last_seen`` to the effective timestamp even when it is
  older than the stored one (latest write wins).

Insights are upserted on (ad id, model, insight type); a conflict rewrites
``insight``, ``raw_response`` and ``updated_at`` and leaves ``created_at`` alone.

The effective ad timestamp is ``seen_at``, else the batch ``scraped_at``, else
one ``now`` taken when the batch starts. The whole batch runs in a single store
transaction, so a failing ad rolls back the ads written before it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from .db.store import AdStore
from .errors import IntegrityError
from .logging import adlog, jlog, logging_context
from .payload import AdEntry, BatchPayload, BatchResult, parse_batch_payload

UTC = getattr(datetime, "UTC", timezone.utc)


def _apply_ad(store: AdStore, payload: BatchPayload, ad: AdEntry, seen_at: datetime) -> int:
    store.upsert_ad(
        advertiser=payload.advertiser,
        platform=payload.platform,
        ad_identifier=ad.ad_identifier,
        image_url=ad.image_url,
        metadata=ad.metadata,
        seen_at=seen_at,
    )
    ad_id = store.find_ad_id(advertiser=payload.advertiser, platform=payload.platform, ad_identifier=ad.ad_identifier)
    if ad_id is None:
        adlog(
            "ad_lookup_missing",
            ad_identifier=ad.ad_identifier,
            advertiser=payload.advertiser,
            image_url=ad.image_url,
            level="error",
        )
        raise IntegrityError(f"Failed to look up stored ad record {ad.ad_identifier!r}.")

    for insight in ad.insights:
        store.upsert_insight(
            ad_id=ad_id,
            model=insight.model,
            insight_type=insight.insight_type,
            insight=insight.insight,
            raw_response=insight.raw_response,
            created_at=insight.created_at or seen_at,
            updated_at=seen_at,
        )
    return ad_id


def apply_batch(store: AdStore, payload: BatchPayload, *, now: datetime | None = None) -> BatchResult:
    """Persist ``payload`` into ``store`` and return how many ads were processed."""

    default_ts = payload.scraped_at or now or datetime.now(UTC)
    processed = 0
    with logging_context(advertiser=payload.advertiser, platform=payload.platform):
        try:
            with store.transaction():
                for ad in payload.ads:
                    seen_at = ad.seen_at or default_ts
                    with logging_context(ad_identifier=ad.ad_identifier):
                        ad_id = _apply_ad(store, payload, ad, seen_at)
                    processed += 1
                    jlog(
                        "debug",
                        event="ad_upserted",
                        ad_id=ad_id,
                        ad_identifier=ad.ad_identifier,
                        insights=len(ad.insights),
                    )
        except Exception as exc:
            jlog("error", event="batch_rolled_back", processed_before_failure=processed, error=str(exc))
            raise
        jlog("info", event="batch_applied", processed_ads=processed)
    return BatchResult(advertiser=payload.advertiser, platform=payload.platform, processed_ads=processed)


def ingest_json(store: AdStore, body: Any, *, now: datetime | None = None) -> BatchResult:
    """Validate a decoded wire document and apply it."""

    return apply_batch(store, parse_batch_payload(body), now=now)


__all__ = ["apply_batch", "ingest_json"]
