"""Batch payload types, wire validation and serialisation.

The wire format is camelCase JSON::

    {"advertiser": str, "platform"?: str, "scrapedAt"?: ISO8601,
     "ads": [{"adIdentifier": str, "imageUrl": str, "metadata"?: object,
              "seenAt"?: ISO8601,
              "insights"?: [{"model": str, "insight": str, "insightType"?: str,
                             "rawResponse"?: any, "createdAt"?: ISO8601}]}]}

:func:`parse_batch_payload` validates the whole document up front and raises
:class:`~adharvest.errors.ValidationError` carrying the offending field path,
so nothing is written for a malformed batch.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union, cast

from .errors import ValidationError

UTC = getattr(datetime, "UTC", timezone.utc)

DEFAULT_PLATFORM = "google_ads_transparency"
DEFAULT_INSIGHT_TYPE = "summary"

JSONValue = Union[None, bool, int, float, str, list["JSONValue"], dict[str, "JSONValue"]]
JSONObject = dict[str, JSONValue]


@dataclass(frozen=True)
class InsightEntry:
    model: str
    insight: str
    insight_type: str = DEFAULT_INSIGHT_TYPE
    raw_response: JSONValue = None
    created_at: datetime | None = None

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {"model": self.model, "insight": self.insight, "insightType": self.insight_type}
        if self.raw_response is not None:
            out["rawResponse"] = self.raw_response
        if self.created_at is not None:
            out["createdAt"] = format_timestamp(self.created_at)
        return out


@dataclass(frozen=True)
class AdEntry:
    ad_identifier: str
    image_url: str
    metadata: JSONObject | None = None
    insights: list[InsightEntry] = field(default_factory=list)
    seen_at: datetime | None = None

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {"adIdentifier": self.ad_identifier, "imageUrl": self.image_url}
        if self.metadata is not None:
            out["metadata"] = self.metadata
        out["insights"] = [i.to_wire() for i in self.insights]
        if self.seen_at is not None:
            out["seenAt"] = format_timestamp(self.seen_at)
        return out


@dataclass(frozen=True)
class BatchPayload:
    advertiser: str
    ads: list[AdEntry]
    platform: str = DEFAULT_PLATFORM
    scraped_at: datetime | None = None

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {"advertiser": self.advertiser, "platform": self.platform}
        if self.scraped_at is not None:
            out["scrapedAt"] = format_timestamp(self.scraped_at)
        out["ads"] = [ad.to_wire() for ad in self.ads]
        return out


@dataclass(frozen=True)
class BatchResult:
    advertiser: str
    platform: str
    processed_ads: int

    def to_wire(self) -> dict[str, Any]:
        return {"advertiser": self.advertiser, "platform": self.platform, "processedAds": self.processed_ads}


# ============================
# Timestamps
# ============================


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""

    text = value.strip()
    if not text:
        raise ValueError("empty timestamp")
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


# ============================
# Validation
# ============================


def _optional_string(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def _require_string(value: Any, path: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"Field {path} must be a string.", field=path)
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(f"Field {path} cannot be empty.", field=path)
    return trimmed


def _optional_timestamp(value: Any, path: str) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"Field {path} must be a string when provided.", field=path)
    try:
        return parse_timestamp(value)
    except ValueError:
        raise ValidationError(f"Field {path} must be an ISO 8601 timestamp.", field=path) from None


def _require_object(value: Any, path: str, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ValidationError(f"{what} {path} must be an object.", field=path)
    return value


def _json_value(value: Any, path: str) -> JSONValue:
    try:
        json.dumps(value, allow_nan=False)
    except (TypeError, ValueError):
        raise ValidationError(f"Field {path} is not a serialisable JSON value.", field=path) from None
    return value


def _parse_insight(value: Any, path: str) -> InsightEntry:
    raw = _require_object(value, path, "Insight")
    return InsightEntry(
        model=_require_string(raw.get("model"), f"{path}.model"),
        insight=_require_string(raw.get("insight"), f"{path}.insight"),
        insight_type=_optional_string(raw.get("insightType")) or DEFAULT_INSIGHT_TYPE,
        raw_response=_json_value(raw.get("rawResponse"), f"{path}.rawResponse"),
        created_at=_optional_timestamp(raw.get("createdAt"), f"{path}.createdAt"),
    )


def _parse_ad(value: Any, index: int) -> AdEntry:
    path = f"ads[{index}]"
    raw = _require_object(value, path, "Ad entry")
    ad_identifier = _require_string(raw.get("adIdentifier"), f"{path}.adIdentifier")
    image_url = _require_string(raw.get("imageUrl"), f"{path}.imageUrl")

    metadata: JSONObject | None = None
    if "metadata" in raw:
        if not isinstance(raw["metadata"], dict):
            raise ValidationError(f"{path}.metadata must be an object when provided.", field=f"{path}.metadata")
        metadata = cast(JSONObject, _json_value(raw["metadata"], f"{path}.metadata"))

    seen_at = _optional_timestamp(raw.get("seenAt"), f"{path}.seenAt")

    insights_raw = raw.get("insights")
    insights: list[InsightEntry] = []
    if insights_raw is not None:
        if not isinstance(insights_raw, list):
            raise ValidationError(f"{path}.insights must be an array when provided.", field=f"{path}.insights")
        insights = [_parse_insight(entry, f"{path}.insights[{j}]") for j, entry in enumerate(insights_raw)]

    return AdEntry(
        ad_identifier=ad_identifier,
        image_url=image_url,
        metadata=metadata,
        insights=insights,
        seen_at=seen_at,
    )


def parse_batch_payload(body: Any) -> BatchPayload:
    """Validate a decoded JSON document and return a :class:`BatchPayload`."""

    if not isinstance(body, dict):
        raise ValidationError("Request body must be an object.")

    advertiser = _require_string(body.get("advertiser"), "advertiser")
    platform = _optional_string(body.get("platform")) or DEFAULT_PLATFORM
    scraped_at = _optional_timestamp(body.get("scrapedAt"), "scrapedAt")

    ads_raw = body.get("ads")
    if not isinstance(ads_raw, list) or not ads_raw:
        raise ValidationError("Field ads must be a non-empty array.", field="ads")

    return BatchPayload(
        advertiser=advertiser,
        platform=platform,
        scraped_at=scraped_at,
        ads=[_parse_ad(entry, i) for i, entry in enumerate(ads_raw)],
    )


__all__ = [
    "DEFAULT_INSIGHT_TYPE",
    "DEFAULT_PLATFORM",
    "AdEntry",
    "BatchPayload",
    "BatchResult",
    "InsightEntry",
    "JSONObject",
    "JSONValue",
    "format_timestamp",
    "parse_batch_payload",
    "parse_timestamp",
]
