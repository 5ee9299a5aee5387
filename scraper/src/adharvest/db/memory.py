"""In-memory ad store with the same upsert semantics as the Postgres tables.

Used for local runs of the API (``ADHARVEST_STORE=memory``) and by the tests.
"""

from __future__ import annotations

import copy
import itertools
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from ..payload import JSONObject, JSONValue
from .store import StoredAd, StoredInsight


class MemoryAdStore:
    def __init__(self) -> None:
        self.ads: dict[int, StoredAd] = {}
        self.insights: dict[int, StoredInsight] = {}
        self._ad_keys: dict[tuple[str, str, str], int] = {}
        self._insight_keys: dict[tuple[int, str, str], int] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            snapshot = copy.deepcopy((self.ads, self.insights, self._ad_keys, self._insight_keys))
            try:
                yield
            except BaseException:
                self.ads, self.insights, self._ad_keys, self._insight_keys = snapshot
                raise

    def upsert_ad(
        self,
        *,
        advertiser: str,
        platform: str,
        ad_identifier: str,
        image_url: str,
        metadata: JSONObject | None,
        seen_at: datetime,
    ) -> None:
        with self._lock:
            key = (advertiser, platform, ad_identifier)
            ad_id = self._ad_keys.get(key)
            if ad_id is None:
                ad_id = next(self._ids)
                self._ad_keys[key] = ad_id
                self.ads[ad_id] = StoredAd(
                    id=ad_id,
                    advertiser_name=advertiser,
                    platform=platform,
                    ad_identifier=ad_identifier,
                    image_url=image_url,
                    metadata=copy.deepcopy(metadata),
                    first_seen=seen_at,
                    last_seen=seen_at,
                )
                return
            ad = self.ads[ad_id]
            ad.image_url = image_url
            if metadata is not None:
                ad.metadata = copy.deepcopy(metadata)
            ad.last_seen = seen_at

    def find_ad_id(self, *, advertiser: str, platform: str, ad_identifier: str) -> int | None:
        return self._ad_keys.get((advertiser, platform, ad_identifier))

    def upsert_insight(
        self,
        *,
        ad_id: int,
        model: str,
        insight_type: str,
        insight: str,
        raw_response: JSONValue,
        created_at: datetime,
        updated_at: datetime,
    ) -> None:
        with self._lock:
            if ad_id not in self.ads:
                raise KeyError(f"ad {ad_id} does not exist")
            key = (ad_id, model, insight_type)
            insight_id = self._insight_keys.get(key)
            if insight_id is None:
                insight_id = next(self._ids)
                self._insight_keys[key] = insight_id
                self.insights[insight_id] = StoredInsight(
                    id=insight_id,
                    ad_id=ad_id,
                    model=model,
                    insight_type=insight_type,
                    insight=insight,
                    raw_response=copy.deepcopy(raw_response),
                    created_at=created_at,
                    updated_at=updated_at,
                )
                return
            row = self.insights[insight_id]
            row.insight = insight
            row.raw_response = copy.deepcopy(raw_response)
            row.updated_at = updated_at

    def delete_ad(self, ad_id: int) -> None:
        """Remove an ad and, like ``ON DELETE CASCADE``, all of its insights."""

        with self._lock:
            ad = self.ads.pop(ad_id, None)
            if ad is None:
                return
            self._ad_keys.pop((ad.advertiser_name, ad.platform, ad.ad_identifier), None)
            for key, insight_id in list(self._insight_keys.items()):
                if key[0] == ad_id:
                    del self._insight_keys[key]
                    self.insights.pop(insight_id, None)

    def fetch_ads(self, *, advertiser: str | None, limit: int) -> list[StoredAd]:
        with self._lock:
            rows = [ad for ad in self.ads.values() if not advertiser or ad.advertiser_name == advertiser]
            rows.sort(key=lambda ad: (ad.last_seen, ad.id), reverse=True)
            out: list[StoredAd] = []
            for ad in rows[:limit]:
                view = copy.deepcopy(ad)
                children = [i for i in self.insights.values() if i.ad_id == ad.id]
                children.sort(key=lambda i: (i.updated_at, i.id), reverse=True)
                view.insights = copy.deepcopy(children)
                out.append(view)
            return out


__all__ = ["MemoryAdStore"]
