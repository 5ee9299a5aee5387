import asyncio
import json
import logging

from adharvest.logging import LOGGER_NAME, adlog, jlog, logging_context


def _records(caplog):
    return [json.loads(r.getMessage()) for r in caplog.records if r.name == LOGGER_NAME]


def test_scoped_fields_nest_and_unwind(caplog):
    caplog.set_level(logging.DEBUG, logger=LOGGER_NAME)
    with logging_context(advertiser="Acme", platform=None):
        with logging_context(ad_identifier="abc-1"):
            jlog("debug", event="inner")
        jlog("info", event="outer", advertiser="override")
    jlog("info", event="after")

    inner, outer, after = _records(caplog)
    assert inner["advertiser"] == "Acme" and inner["ad_identifier"] == "abc-1"
    assert "platform" not in inner
    assert outer["advertiser"] == "override" and "ad_identifier" not in outer
    assert "advertiser" not in after


def test_concurrent_tasks_do_not_share_context(caplog):
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)

    async def worker(name):
        with logging_context(worker=name):
            await asyncio.sleep(0)
            jlog("info", event="tick")

    async def main():
        await asyncio.gather(worker("a"), worker("b"))

    asyncio.run(main())
    assert sorted(r["worker"] for r in _records(caplog)) == ["a", "b"]


def test_adlog_carries_natural_key(caplog):
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)
    adlog("ad_lookup_missing", ad_identifier="x-1", advertiser="Acme", image_url="https://i/1", level="error")
    (record,) = _records(caplog)
    assert record["event"] == "ad_lookup_missing"
    assert record["image_url"] == "https://i/1"
    assert caplog.records[-1].levelno == logging.ERROR


def test_levels_below_threshold_are_dropped(caplog):
    caplog.set_level(logging.WARNING, logger=LOGGER_NAME)
    jlog("info", event="quiet")
    jlog("warning", event="loud")
    assert [r["event"] for r in _records(caplog)] == ["loud"]
