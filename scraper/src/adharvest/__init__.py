"""Harvest, deduplicate and idempotently store Ads Transparency Center creatives."""

from .collector import CollectedCreative, CollectorConfig, CreativeCollector, CreativeObservation, collect_creatives
from .errors import CollectionTimeout, EnrichmentFailure, HarvestError, IntegrityError, TransportError, ValidationError
from .hashing import derive_ad_identifier
from .ingest import apply_batch, ingest_json
from .logging import adlog, configure_logging, jlog
from .metadata import SearchSource, build_ad_metadata
from .payload import AdEntry, BatchPayload, BatchResult, InsightEntry, parse_batch_payload
from .snippets import MAX_SNIPPETS, merge_snippets, unique_snippets
from .urls import build_search_url, is_creative_image_url
from .versioning import get_scraper_version

__all__ = [
    "AdEntry",
    "BatchPayload",
    "BatchResult",
    "CollectedCreative",
    "CollectionTimeout",
    "CollectorConfig",
    "CreativeCollector",
    "CreativeObservation",
    "EnrichmentFailure",
    "HarvestError",
    "InsightEntry",
    "IntegrityError",
    "MAX_SNIPPETS",
    "SearchSource",
    "TransportError",
    "ValidationError",
    "adlog",
    "apply_batch",
    "build_ad_metadata",
    "build_search_url",
    "collect_creatives",
    "configure_logging",
    "derive_ad_identifier",
    "get_scraper_version",
    "ingest_json",
    "is_creative_image_url",
    "jlog",
    "merge_snippets",
    "parse_batch_payload",
    "unique_snippets",
]
