import asyncio
import json
import logging

from adlib_scraper.logging import LOGGER_NAME, current_context, jlog, logging_context


def test_jlog_emits_json_with_context(caplog):
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)
    with logging_context(group_key="89771"):
        with logging_context(ad_id="1", skipped=None):
            jlog("info", event="candidate_start")
    payload = json.loads(caplog.records[-1].getMessage())
    assert payload["event"] == "candidate_start"
    assert payload["group_key"] == "89771"
    assert payload["ad_id"] == "1"
    assert "skipped" not in payload
    assert "ad_id" not in current_context()


def test_context_is_isolated_between_tasks():
    seen = {}

    async def _task(ad_id):
        with logging_context(ad_id=ad_id):
            await asyncio.sleep(0)
            seen[ad_id] = current_context()["ad_id"]

    async def _main():
        await asyncio.gather(_task("1"), _task("2"), _task("3"))

    asyncio.run(_main())
    assert seen == {"1": "1", "2": "2", "3": "3"}
