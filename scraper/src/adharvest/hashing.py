"""Deterministic identifiers for harvested creatives."""

from __future__ import annotations

import hashlib


def image_url_digest(image_url: str) -> str:
    """Return the hex sha1 digest of a creative image URL."""

    return hashlib.sha1(image_url.encode("utf-8")).hexdigest()


def derive_ad_identifier(image_url: str, ordinal: int) -> str:
    """Return ``<sha1(image_url)>-<ordinal>`` for a creative at a 1-based position."""

    if ordinal < 1:
        raise ValueError(f"ordinal must be >= 1, got {ordinal}")
    return f"{image_url_digest(image_url)}-{ordinal}"


__all__ = ["derive_ad_identifier", "image_url_digest"]
