import asyncio

from adlib_scraper.discovery import dedupe_candidates, discover, scroll_until_stable
from adlib_scraper.playwright import Anchor
from fakes import FakeSession, anchors_for, detail_url


def test_dedupe_keeps_first_occurrence_in_order():
    anchors = anchors_for("5", "3") + [Anchor(href=detail_url("5") + "?trk=second")] + anchors_for("7")
    candidates, skipped = dedupe_candidates(anchors)
    assert [c.ad_id for c in candidates] == ["5", "3", "7"]
    assert candidates[0].url == detail_url("5")
    assert skipped == 0


def test_dedupe_drops_unparseable_anchors():
    anchors = [Anchor(href="https://www.linkedin.com/ad-library/detail/"), Anchor(href=detail_url("9"))]
    candidates, _ = dedupe_candidates(anchors)
    assert [c.ad_id for c in candidates] == ["9"]


def test_dedupe_excludes_video_hints_when_asked():
    anchors = anchors_for("1", "2", "3", video=("2",))
    kept, skipped = dedupe_candidates(anchors, exclude_video=True)
    assert [c.ad_id for c in kept] == ["1", "3"]
    assert skipped == 1
    everything, _ = dedupe_candidates(anchors)
    assert [c.ad_id for c in everything] == ["1", "2", "3"]


def test_discover_truncates_to_max_candidates():
    session = FakeSession(anchors_for("5", "3", "5", "7"))
    candidates = asyncio.run(discover(session, 2, scroll_rounds=3, scroll_pause_ms=0, settle_ms=0))
    assert [c.ad_id for c in candidates] == ["5", "3"]
    assert session.scrolls == 3


def test_discover_with_no_links_returns_empty():
    session = FakeSession([Anchor(href="https://www.linkedin.com/ad-library/search")])
    assert asyncio.run(discover(session, 10, scroll_rounds=1, scroll_pause_ms=0, settle_ms=0)) == []


def test_scroll_until_stable_stops_early():
    session = FakeSession(anchors_for("1"), growth=[anchors_for("2"), anchors_for("3")])
    used = asyncio.run(scroll_until_stable(session, max_rounds=10, pause_ms=0, stable_rounds=2))
    # grows on rounds 1-2, unchanged on rounds 3-4
    assert used == 4
    assert session.scrolls == 4


def test_scroll_until_stable_respects_budget():
    session = FakeSession([], growth=[anchors_for(str(i)) for i in range(10)])
    assert asyncio.run(scroll_until_stable(session, max_rounds=3, pause_ms=0)) == 3
