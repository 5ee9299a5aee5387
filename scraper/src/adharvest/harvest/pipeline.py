#!/usr/bin/env python3
"""
harvest_ads.py

Creative harvester for the Google Ads Transparency Center (GATC).

Overview
--------
For one advertiser this pipeline:
- opens the transparency center search, selects the advertiser and waits for the results grid,
- scrolls / presses "Load more" until no new creative appears for a few passes,
- deduplicates creatives by image URL and merges their alt text and text snippets,
- optionally describes each creative with an OpenAI vision model,
- and delivers one batch to the ingest API, straight to Postgres, or to stdout.

Usage (examples)
----------------
# Print the batch instead of storing it
python scripts/harvest_ads.py --advertiser "Acme Corp" --skip-vision

# Deliver to a running ingest API
python scripts/harvest_ads.py "Acme Corp" --api-base http://127.0.0.1:8000 --max-scrolls 24

# Write directly to Postgres (DB_PASSWORD required)
python scripts/harvest_ads.py --advertiser "Acme Corp" --db-host 127.0.0.1
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from playwright.async_api import async_playwright

from adharvest.collector import (
    DEFAULT_MAX_PASSES,
    DEFAULT_PASS_TIMEOUT_MS,
    DEFAULT_READY_TIMEOUT_MS,
    DEFAULT_SETTLE_DELAY_MS,
    DEFAULT_STAGNANT_THRESHOLD,
    CollectedCreative,
    CollectorConfig,
    CreativeCollector,
)
from adharvest.db import PostgresAdStore, sql_connect
from adharvest.debug import dump_page_html
from adharvest.describe import DEFAULT_VISION_MODEL, DEFAULT_VISION_TIMEOUT_S, Describer, create_describer
from adharvest.enrich import enrich_creatives
from adharvest.errors import CollectionTimeout
from adharvest.ingest import apply_batch
from adharvest.logging import jlog, logging_context
from adharvest.metadata import SearchSource
from adharvest.payload import DEFAULT_PLATFORM, BatchPayload
from adharvest.playwright import CHROMIUM_LAUNCH_ARGS, VIEWPORT, PlaywrightPageSession, cleanup_playwright
from adharvest.transport import send_batch
from adharvest.urls import build_search_url
from adharvest.versioning import get_scraper_version as resolve_version

UTC = getattr(datetime, "UTC", timezone.utc)

# ============================
# Constants & configuration
# ============================
DEFAULT_REGION = "anywhere"
DEFAULT_GATC_PLATFORM = "SEARCH"
DEFAULT_PAGE_TIMEOUT_MS = int(os.getenv("PAGE_TIMEOUT_MS", str(DEFAULT_READY_TIMEOUT_MS)))

SCRIPT_NAME = "harvest"


def get_scraper_version() -> str:
    return resolve_version(SCRIPT_NAME)


# ============================
# Argument parsing & validation
# ============================


@dataclass(frozen=True)
class CliArgs:
    advertiser: str
    region: str
    platform: str
    start_date: str
    end_date: str
    max_scrolls: int
    scroll_delay_ms: int
    stagnant_rounds: int
    page_timeout_ms: int
    vision_timeout_s: float
    api_base: str | None
    api_token: str | None
    skip_vision: bool
    vision_model: str
    headless: bool
    search_url: str | None
    sql_conn: str | None
    db_host: str | None
    db_port: int | None
    debug_html: bool

    @property
    def source(self) -> SearchSource:
        return SearchSource(region=self.region, platform=self.platform, start_date=self.start_date, end_date=self.end_date)

    @property
    def writes_database(self) -> bool:
        return bool(self.db_host or self.sql_conn)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes")


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def validate_args(ns: argparse.Namespace) -> None:
    if not ns.advertiser:
        raise ValueError("Missing advertiser name. Provide it via --advertiser or as a positional argument.")
    if ns.start_date > ns.end_date:
        raise ValueError(f"start_date ({ns.start_date}) is after end_date ({ns.end_date})")
    if ns.max_scrolls < 1:
        raise ValueError("--max-scrolls must be >= 1")
    if ns.stagnant_rounds < 1:
        raise ValueError("--stagnant-rounds must be >= 1")
    if ns.scroll_delay < 0:
        raise ValueError("--scroll-delay must be >= 0")
    if ns.api_base and (ns.db_host or ns.sql_conn):
        jlog("warning", event="multiple_delivery_targets", message="--api-base takes precedence over database flags")


def parse_args(argv: Sequence[str] | None = None) -> CliArgs:
    today = datetime.now(UTC).date().isoformat()
    p = argparse.ArgumentParser(description="Harvest an advertiser's creatives from the Ads Transparency Center")
    p.add_argument("advertiser_pos", nargs="?", metavar="ADVERTISER")
    p.add_argument("--advertiser", help="Advertiser name to search for (or AD_TRANSPARENCY_ADVERTISER)")
    p.add_argument("--start-date", default=os.getenv("AD_TRANSPARENCY_START_DATE"), help="YYYY-MM-DD (default: today)")
    p.add_argument("--end-date", default=os.getenv("AD_TRANSPARENCY_END_DATE"), help="YYYY-MM-DD (default: start date)")
    p.add_argument("--region", default=os.getenv("AD_TRANSPARENCY_REGION", DEFAULT_REGION))
    p.add_argument("--platform", default=os.getenv("AD_TRANSPARENCY_PLATFORM", DEFAULT_GATC_PLATFORM))
    p.add_argument(
        "--max-scrolls",
        type=int,
        default=DEFAULT_MAX_PASSES,
        help=f"Maximum extraction passes while collecting creatives (default: {DEFAULT_MAX_PASSES})",
    )
    p.add_argument(
        "--scroll-delay",
        type=int,
        default=DEFAULT_SETTLE_DELAY_MS,
        help=f"Delay in ms between passes (default: {DEFAULT_SETTLE_DELAY_MS})",
    )
    p.add_argument(
        "--stagnant-rounds",
        type=int,
        default=DEFAULT_STAGNANT_THRESHOLD,
        help="Stop after this many consecutive passes without a new creative",
    )
    p.add_argument(
        "--page-timeout-ms",
        type=int,
        default=DEFAULT_PAGE_TIMEOUT_MS,
        help="Timeout (ms) for navigation and for the first creatives to render (default from PAGE_TIMEOUT_MS env).",
    )
    p.add_argument("--vision-timeout-s", type=float, default=DEFAULT_VISION_TIMEOUT_S)
    p.add_argument("--api-base", "--worker", dest="api_base", default=os.getenv("WORKER_API_BASE"))
    p.add_argument(
        "--api-token",
        "--worker-token",
        dest="api_token",
        default=os.getenv("WORKER_API_TOKEN") or os.getenv("WORKER_AUTH_TOKEN"),
        help="Bearer token sent in the Authorization header",
    )
    p.add_argument("--skip-vision", action="store_true", default=_env_flag("SKIP_VISION"))
    p.add_argument("--vision-model", default=os.getenv("OPENAI_VISION_MODEL", DEFAULT_VISION_MODEL))
    p.add_argument("--headful", action="store_true", help="Launch Chromium with a visible window for debugging")
    p.add_argument("--search-url", default=os.getenv("AD_TRANSPARENCY_URL"))
    p.add_argument("--sql-conn", default=os.getenv("SQL_CONN"), help="Cloud SQL connection name if using sockets")
    p.add_argument("--db-host", default=os.getenv("DB_HOST"), help="Postgres host for direct writes")
    p.add_argument("--db-port", type=int)
    p.add_argument("--debug-html", action="store_true", help="Dump page HTML to media/debug/ when collection fails.")

    ns = p.parse_args(argv)
    ns.advertiser = _blank_to_none(ns.advertiser or ns.advertiser_pos or os.getenv("AD_TRANSPARENCY_ADVERTISER"))
    ns.start_date = _blank_to_none(ns.start_date) or today
    ns.end_date = _blank_to_none(ns.end_date) or ns.start_date
    validate_args(ns)

    return CliArgs(
        advertiser=ns.advertiser,
        region=ns.region.strip(),
        platform=ns.platform.strip(),
        start_date=ns.start_date,
        end_date=ns.end_date,
        max_scrolls=ns.max_scrolls,
        scroll_delay_ms=ns.scroll_delay,
        stagnant_rounds=ns.stagnant_rounds,
        page_timeout_ms=ns.page_timeout_ms,
        vision_timeout_s=ns.vision_timeout_s,
        api_base=_blank_to_none(ns.api_base),
        api_token=_blank_to_none(ns.api_token),
        skip_vision=ns.skip_vision,
        vision_model=ns.vision_model.strip(),
        headless=not ns.headful,
        search_url=_blank_to_none(ns.search_url),
        sql_conn=_blank_to_none(ns.sql_conn),
        db_host=_blank_to_none(ns.db_host),
        db_port=ns.db_port,
        debug_html=ns.debug_html,
    )


# ============================
# Pipeline stages
# ============================


def collector_config(args: CliArgs) -> CollectorConfig:
    return CollectorConfig(
        max_passes=args.max_scrolls,
        stagnant_threshold=args.stagnant_rounds,
        settle_delay_ms=args.scroll_delay_ms,
        ready_timeout_ms=args.page_timeout_ms,
        pass_timeout_ms=max(DEFAULT_PASS_TIMEOUT_MS, args.page_timeout_ms),
    )


async def collect_from_browser(args: CliArgs) -> list[CollectedCreative]:
    """Launch Chromium, open the advertiser's results and collect creatives."""

    url = build_search_url(
        region=args.region,
        platform=args.platform,
        start_date=args.start_date,
        end_date=args.end_date,
        search_url=args.search_url,
    )
    collector = CreativeCollector(collector_config(args))
    async with async_playwright() as pw:
        jlog("info", event="browser_launch", headless=args.headless)
        browser = await pw.chromium.launch(headless=args.headless, args=CHROMIUM_LAUNCH_ARGS)
        context = None
        try:
            context = await browser.new_context(viewport=VIEWPORT)
            page = await context.new_page()
            session = PlaywrightPageSession(page)
            try:
                await session.open(url, args.advertiser, timeout_ms=args.page_timeout_ms)
                await collector.run(session)
            except CollectionTimeout as exc:
                jlog("error", event="collection_timeout", error=str(exc), collected=len(collector))
                if args.debug_html:
                    await dump_page_html(page, args.advertiser)
                raise
        finally:
            await cleanup_playwright(context, browser)
    return collector.results()


def deliver(args: CliArgs, payload: BatchPayload) -> int | None:
    """Send ``payload`` to the API, the database or stdout; return the processed count."""

    if args.api_base:
        return send_batch(args.api_base, payload, token=args.api_token)
    if args.writes_database:
        store = PostgresAdStore(sql_connect(args.sql_conn, args.db_host, args.db_port))
        try:
            return apply_batch(store, payload).processed_ads
        finally:
            store.close()
    json.dump(payload.to_wire(), sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    jlog("info", event="payload_printed", message="No API base or database configured; printed payload to stdout.")
    return None


async def build_payload(
    args: CliArgs,
    creatives: Sequence[CollectedCreative],
    *,
    scraped_at: datetime,
    describer: Describer | None,
) -> BatchPayload:
    ads = await enrich_creatives(
        creatives,
        source=args.source,
        seen_at=scraped_at,
        describer=describer,
        timeout_s=args.vision_timeout_s,
        scraper_version=get_scraper_version(),
    )
    return BatchPayload(advertiser=args.advertiser, platform=DEFAULT_PLATFORM, scraped_at=scraped_at, ads=ads)


# ============================
# Entrypoint
# ============================


async def run(args: CliArgs, *, describer: Describer | None = None) -> int | None:
    """Execute the harvest pipeline for the supplied CLI arguments."""

    scraped_at = datetime.now(UTC)
    with logging_context(advertiser=args.advertiser):
        creatives = await collect_from_browser(args)
        jlog("info", event="creatives_collected", count=len(creatives))
        if not creatives:
            jlog("warning", event="no_creatives", message="No creatives detected on the page.")
            return 0

        if describer is None:
            describer = create_describer(skip=args.skip_vision, model=args.vision_model, timeout_s=args.vision_timeout_s)
        payload = await build_payload(args, creatives, scraped_at=scraped_at, describer=describer)
        return deliver(args, payload)


__all__ = ["CliArgs", "build_payload", "deliver", "get_scraper_version", "parse_args", "run"]
