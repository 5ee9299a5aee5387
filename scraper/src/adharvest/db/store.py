"""Storage interface shared by the Postgres and in-memory ad stores."""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from ..payload import JSONObject, JSONValue, format_timestamp


@dataclass
class StoredInsight:
    id: int
    ad_id: int
    model: str
    insight_type: str
    insight: str
    raw_response: JSONValue
    created_at: datetime
    updated_at: datetime

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "model": self.model,
            "insightType": self.insight_type,
            "insight": self.insight,
            "rawResponse": self.raw_response,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }


@dataclass
class StoredAd:
    id: int
    advertiser_name: str
    platform: str
    ad_identifier: str
    image_url: str
    metadata: JSONObject | None
    first_seen: datetime
    last_seen: datetime
    insights: list[StoredInsight] = field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "advertiserName": self.advertiser_name,
            "platform": self.platform,
            "adIdentifier": self.ad_identifier,
            "imageUrl": self.image_url,
            "metadata": self.metadata,
            "firstSeen": format_timestamp(self.first_seen),
            "lastSeen": format_timestamp(self.last_seen),
            "insights": [i.to_wire() for i in self.insights],
        }


class AdStore(Protocol):
    """Persistence operations the batch ingest engine relies on.

    ``upsert_ad`` and ``upsert_insight`` must each be atomic single-row upserts.
    """

    def transaction(self) -> AbstractContextManager[Any]:
        """Scope in which every write commits together or not at all."""

    def upsert_ad(
        self,
        *,
        advertiser: str,
        platform: str,
        ad_identifier: str,
        image_url: str,
        metadata: JSONObject | None,
        seen_at: datetime,
    ) -> None: ...

    def find_ad_id(self, *, advertiser: str, platform: str, ad_identifier: str) -> int | None: ...

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
    ) -> None: ...

    def fetch_ads(self, *, advertiser: str | None, limit: int) -> list[StoredAd]: ...


__all__ = ["AdStore", "StoredAd", "StoredInsight"]
