import asyncio
import json
from datetime import datetime, timezone

import pytest
from adharvest.collector import CollectedCreative
from adharvest.harvest.pipeline import build_payload, collector_config, deliver, parse_args

ENV_VARS = [
    "AD_TRANSPARENCY_ADVERTISER",
    "AD_TRANSPARENCY_START_DATE",
    "AD_TRANSPARENCY_END_DATE",
    "WORKER_API_BASE",
    "WORKER_API_TOKEN",
    "WORKER_AUTH_TOKEN",
    "SKIP_VISION",
    "SQL_CONN",
    "DB_HOST",
    "AD_TRANSPARENCY_URL",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_parse_args_defaults():
    args = parse_args(["Acme Corp"])
    assert args.advertiser == "Acme Corp"
    assert args.region == "anywhere"
    assert args.platform == "SEARCH"
    assert args.end_date == args.start_date
    assert args.max_scrolls == 16
    assert args.scroll_delay_ms == 1200
    assert args.stagnant_rounds == 3
    assert args.headless is True
    assert args.api_base is None
    assert args.writes_database is False


def test_parse_args_reads_environment(monkeypatch):
    monkeypatch.setenv("AD_TRANSPARENCY_ADVERTISER", "Env Advertiser")
    monkeypatch.setenv("SKIP_VISION", "true")
    monkeypatch.setenv("WORKER_API_BASE", "https://api.example")
    args = parse_args(["--start-date", "2024-01-01", "--end-date", "2024-01-31", "--headful"])
    assert args.advertiser == "Env Advertiser"
    assert args.skip_vision is True
    assert args.api_base == "https://api.example"
    assert args.headless is False
    assert args.source.end_date == "2024-01-31"


def test_parse_args_requires_advertiser():
    with pytest.raises(ValueError):
        parse_args([])


def test_parse_args_rejects_inverted_dates():
    with pytest.raises(ValueError):
        parse_args(["Acme", "--start-date", "2024-02-01", "--end-date", "2024-01-01"])


def test_collector_config_maps_cli_flags():
    cfg = collector_config(parse_args(["Acme", "--max-scrolls", "5", "--scroll-delay", "0", "--stagnant-rounds", "2"]))
    assert cfg.max_passes == 5
    assert cfg.settle_delay_ms == 0
    assert cfg.stagnant_threshold == 2


def test_build_payload_and_print_delivery(capsys):
    args = parse_args(["Acme", "--skip-vision"])
    scraped_at = datetime(2024, 5, 1, tzinfo=timezone.utc)
    creatives = [CollectedCreative(image_url="u1", alt_text="alt", text_snippets=["x"])]
    payload = asyncio.run(build_payload(args, creatives, scraped_at=scraped_at, describer=None))

    assert payload.advertiser == "Acme"
    assert payload.platform == "google_ads_transparency"
    assert payload.ads[0].seen_at == scraped_at

    assert deliver(args, payload) is None
    printed = json.loads(capsys.readouterr().out)
    assert printed["advertiser"] == "Acme"
    assert printed["scrapedAt"] == "2024-05-01T00:00:00Z"
    assert printed["ads"][0]["metadata"]["alt"] == "alt"
