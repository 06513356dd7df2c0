"""Candidate discovery from a rendered ad-library listing page."""

from __future__ import annotations

import asyncio
from typing import Iterable

from .config import DEFAULT_SCROLL_PAUSE_MS, DEFAULT_SCROLL_ROUNDS, DEFAULT_SETTLE_MS, DEFAULT_STABLE_ROUNDS
from .logging import jlog
from .models import CandidateRef
from .playwright import Anchor, RenderSession
from .urls import DETAIL_LINK_PATTERN, parse_detail_id


async def scroll_fixed_budget(session: RenderSession, *, rounds: int, pause_ms: int) -> None:
    """Scroll to the bottom ``rounds`` times, pausing after each round."""

    for idx in range(rounds):
        await session.trigger_scroll_growth()
        jlog("debug", event="discovery_scroll", round=idx + 1, rounds=rounds)
        await asyncio.sleep(pause_ms / 1000.0)


async def scroll_until_stable(
    session: RenderSession,
    *,
    max_rounds: int,
    pause_ms: int,
    stable_rounds: int = DEFAULT_STABLE_ROUNDS,
    pattern: str = DETAIL_LINK_PATTERN,
) -> int:
    """Scroll until the anchor count stops growing, bounded by ``max_rounds``.

    Returns the number of rounds actually used. Not the default path: the
    fixed budget in :func:`scroll_fixed_budget` is what discovery guarantees.
    """

    last_count = -1
    unchanged = 0
    for idx in range(max_rounds):
        await session.trigger_scroll_growth()
        await asyncio.sleep(pause_ms / 1000.0)
        count = len(await session.list_matching_anchors(pattern))
        jlog("debug", event="discovery_scroll", round=idx + 1, anchors=count)
        if count == last_count:
            unchanged += 1
            if unchanged >= stable_rounds:
                return idx + 1
        else:
            unchanged = 0
        last_count = count
    return max_rounds


def dedupe_candidates(anchors: Iterable[Anchor], *, exclude_video: bool = False) -> tuple[list[CandidateRef], int]:
    """Parse ids, drop unparseable anchors and keep each id's first URL.

    Returns the candidates in discovery order plus the number of distinct ids
    dropped by the listing-level video hint.
    """

    seen: dict[str, CandidateRef] = {}
    video_ids: set[str] = set()
    for anchor in anchors:
        ad_id = parse_detail_id(anchor.href)
        if not ad_id:
            continue
        if anchor.video_hint:
            video_ids.add(ad_id)
        if ad_id not in seen:
            seen[ad_id] = CandidateRef(ad_id=ad_id, url=anchor.href)
    candidates = list(seen.values())
    if not exclude_video:
        return candidates, 0
    kept = [c for c in candidates if c.ad_id not in video_ids]
    return kept, len(candidates) - len(kept)


async def discover(
    session: RenderSession,
    max_candidates: int,
    *,
    scroll_rounds: int = DEFAULT_SCROLL_ROUNDS,
    scroll_pause_ms: int = DEFAULT_SCROLL_PAUSE_MS,
    settle_ms: int = DEFAULT_SETTLE_MS,
    exclude_video: bool = False,
    until_stable: bool = False,
    stable_rounds: int = DEFAULT_STABLE_ROUNDS,
    pattern: str = DETAIL_LINK_PATTERN,
) -> list[CandidateRef]:
    """Grow the listing, then return at most ``max_candidates`` unique candidates."""

    if until_stable:
        used = await scroll_until_stable(
            session, max_rounds=scroll_rounds, pause_ms=scroll_pause_ms, stable_rounds=stable_rounds, pattern=pattern
        )
    else:
        await scroll_fixed_budget(session, rounds=scroll_rounds, pause_ms=scroll_pause_ms)
        used = scroll_rounds
    if settle_ms > 0:
        await asyncio.sleep(settle_ms / 1000.0)

    anchors = await session.list_matching_anchors(pattern)
    unique, video_skipped = dedupe_candidates(anchors, exclude_video=exclude_video)
    selected = unique[: max(0, max_candidates)]
    jlog(
        "info",
        event="discovery_done",
        anchors=len(anchors),
        unique=len(unique) + video_skipped,
        video_excluded=video_skipped,
        selected=len(selected),
        max_candidates=max_candidates,
        scroll_rounds=used,
    )
    return selected


__all__ = ["dedupe_candidates", "discover", "scroll_fixed_budget", "scroll_until_stable"]
