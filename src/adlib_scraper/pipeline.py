"""Run orchestration: discovery, per-candidate detail extraction and assets.

Candidates are processed strictly one at a time with a fixed pause between
them. The detail pages sit behind anti-bot defences that react to bursts and
to parallel connections from one session, so pacing is the throttle here and
throughput is not a goal.

Every candidate is isolated: a fetch error, an empty page or a video
placement only moves a counter. The one exception is
:class:`~adlib_scraper.errors.SessionUnavailable`, which means the render
session itself is gone and aborts the run.
"""

from __future__ import annotations

import asyncio
import os
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Sequence

from .assets import AssetAggregator, AssetDownloader, download_asset
from .classify import Classifier, is_non_processable
from .config import DEFAULT_ASSET_CONCURRENCY, DEFAULT_ITEM_DELAY_MS, DEFAULT_RETRY_BASE_MS, DEFAULT_RETRY_ITEM_DELAY_MS, RunConfig
from .debug import dump_markup
from .discovery import discover
from .errors import SessionUnavailable
from .extract import extract
from .fetch import TextFetcher, make_text_fetcher
from .logging import adlog, jlog, logging_context
from .models import AssetFetchOutcome, CandidateRef, FailedCandidate, Record, RunResult, RunSummary
from .output import OutputTarget, failed_candidates_from, load_results, records_from, write_results
from .playwright import open_render_session
from .storage import make_storage_client, mirror_run
from .urls import parse_group_key
from .versioning import get_scraper_version

NO_HEADLINE_REASON = "no headline found"
RETRY_SUFFIX = " (retry attempt)"

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class DetailRunOutput:
    summary: RunSummary
    records: list[Record] = field(default_factory=list)
    asset_outcomes: list[AssetFetchOutcome] = field(default_factory=list)
    failed_candidates: list[FailedCandidate] = field(default_factory=list)


class DetailPipeline:
    """Fetch, extract and classify candidates one by one."""

    def __init__(
        self,
        fetcher: TextFetcher,
        *,
        aggregator: Optional[AssetAggregator] = None,
        classifier: Classifier = is_non_processable,
        item_delay_ms: int = DEFAULT_ITEM_DELAY_MS,
        max_retries: int = 0,
        retry_base_ms: int = DEFAULT_RETRY_BASE_MS,
        on_first_success: Optional[Callable[[Record], object]] = None,
        debug_html: bool = False,
        sleep: Sleep = asyncio.sleep,
    ):
        self.fetcher = fetcher
        self.aggregator = aggregator
        self.classifier = classifier
        self.item_delay_ms = item_delay_ms
        self.max_retries = max_retries
        self.retry_base_ms = retry_base_ms
        self.on_first_success = on_first_success
        self.debug_html = debug_html
        self.sleep = sleep

    async def run(
        self,
        candidates: Sequence[CandidateRef],
        group_key: Optional[str],
        *,
        summary: Optional[RunSummary] = None,
    ) -> DetailRunOutput:
        if summary is None:
            summary = RunSummary()
            summary.increment("total_found", len(candidates))
        out = DetailRunOutput(summary=summary)
        total = len(candidates)
        for idx, candidate in enumerate(candidates):
            with logging_context(ad_id=candidate.ad_id or None, position=f"{idx + 1}/{total}"):
                await self._process(candidate, group_key, out)
            summary.increment("total_processed")
            if idx < total - 1 and self.item_delay_ms > 0:
                await self.sleep(self.item_delay_ms / 1000.0)
        return out

    async def _process(self, candidate: CandidateRef, group_key: Optional[str], out: DetailRunOutput) -> None:
        adlog("candidate_start", ad_id=candidate.ad_id, group_key=group_key, url=candidate.url)
        try:
            markup = await self._fetch(candidate)
            if self.debug_html:
                dump_markup(f"detail_{candidate.ad_id or 'unknown'}", markup)
            record = extract(markup, candidate.url)

            if record.headline is None:
                self._fail(out, candidate, NO_HEADLINE_REASON)
                return
            if self.classifier(record):
                out.summary.increment("classified_skipped")
                jlog("info", event="candidate_skipped", ad_id=record.ad_id, ad_format=record.ad_format)
                return

            out.records.append(record)
            out.summary.increment("successful_details")
            jlog(
                "info",
                event="candidate_succeeded",
                ad_id=record.ad_id,
                headline=record.headline[:60],
                company=record.company,
                ad_format=record.ad_format,
            )
            if len(out.records) == 1 and self.on_first_success is not None:
                self._notify_first_success(record)
        except SessionUnavailable:
            raise
        except Exception as exc:
            self._fail(out, candidate, str(exc) or exc.__class__.__name__)
            return

        # The record already counts as a success; asset trouble stays in the asset counters.
        if self.aggregator is not None:
            await self._submit_assets(self.aggregator, record, group_key, out)

    async def _submit_assets(
        self, aggregator: AssetAggregator, record: Record, group_key: Optional[str], out: DetailRunOutput
    ) -> None:
        try:
            outcomes = await aggregator.submit(record, group_key)
        except SessionUnavailable:
            raise
        except Exception as exc:
            jlog("error", event="asset_stage_failed", ad_id=record.ad_id, error=str(exc) or exc.__class__.__name__)
            return
        out.asset_outcomes.extend(outcomes)
        out.summary.record_asset_outcomes(outcomes)

    def _notify_first_success(self, record: Record) -> None:
        try:
            self.on_first_success(record)  # type: ignore[misc]
        except Exception as exc:
            jlog("error", event="first_success_hook_failed", ad_id=record.ad_id, error=str(exc))

    async def _fetch(self, candidate: CandidateRef) -> str:
        """Fetch markup, retrying with exponential backoff when configured."""

        attempt = 0
        while True:
            try:
                return await self.fetcher.fetch(candidate.url)
            except SessionUnavailable:
                raise
            except Exception:
                if attempt >= self.max_retries:
                    raise
            delay = (self.retry_base_ms / 1000.0) * (2**attempt) + random.uniform(0, 0.3)
            jlog("info", event="retry_backoff", ad_id=candidate.ad_id, attempt=attempt + 1, delay_s=round(delay, 3))
            await self.sleep(delay)
            attempt += 1

    def _fail(self, out: DetailRunOutput, candidate: CandidateRef, reason: str) -> None:
        out.summary.increment("failed_details")
        out.failed_candidates.append(FailedCandidate(ad_id=candidate.ad_id or None, url=candidate.url, reason=reason))
        jlog("error", event="candidate_failed", ad_id=candidate.ad_id, url=candidate.url, reason=reason)


def log_run_summary(result: RunResult) -> None:
    jlog(
        "info",
        event="run_summary",
        target_url=result.target_url,
        group_key=result.group_key,
        depth=result.depth,
        output_dir=result.output_dir,
        **result.summary.to_dict(),
    )


def _make_aggregator(target: OutputTarget, config: RunConfig, downloader: Optional[AssetDownloader] = None) -> AssetAggregator:
    return AssetAggregator(
        lambda: target.path,
        downloader=downloader or download_asset,
        timeout_s=config.asset_timeout_s,
        user_agent=config.user_agent,
    )


async def run_scrape(
    config: RunConfig,
    *,
    session_factory=open_render_session,
    fetcher: Optional[TextFetcher] = None,
    aggregator: Optional[AssetAggregator] = None,
    downloader: Optional[AssetDownloader] = None,
    storage_client=None,
) -> RunResult:
    """Execute discovery and, depending on ``config.depth``, details and assets."""

    group_key = parse_group_key(config.target_url)
    summary = RunSummary()
    result = RunResult(
        target_url=config.target_url,
        group_key=group_key,
        depth=config.depth,
        summary=summary,
        scraper_version=get_scraper_version(),
    )
    if config.output_dir:
        target = OutputTarget.fixed(config.output_dir)
    else:
        target = OutputTarget.provisional(group_key, base_dir=config.base_dir)

    with logging_context(group_key=group_key, depth=config.depth):
        async with session_factory(config) as session:
            candidates = await discover(
                session,
                config.max_candidates,
                scroll_rounds=config.scroll_rounds,
                scroll_pause_ms=config.scroll_pause_ms,
                settle_ms=config.settle_ms,
                exclude_video=config.exclude_video_listings,
                until_stable=config.scroll_until_stable,
                stable_rounds=config.stable_rounds,
            )
            result.candidates = candidates
            summary.increment("total_found", len(candidates))

            if not candidates:
                jlog("info", event="no_candidates", target_url=config.target_url)
            elif config.extract_details:
                if config.download_assets and aggregator is None:
                    aggregator = _make_aggregator(target, config, downloader)
                pipeline = DetailPipeline(
                    fetcher or make_text_fetcher(config.fetcher, timeout_s=config.fetch_timeout_s, user_agent=config.user_agent),
                    aggregator=aggregator if config.download_assets else None,
                    item_delay_ms=config.item_delay_ms,
                    max_retries=config.max_retries,
                    retry_base_ms=config.retry_base_ms,
                    on_first_success=lambda record: target.relocate(record.company),
                    debug_html=config.debug_html,
                )
                detail = await pipeline.run(candidates, group_key, summary=summary)
                result.records = detail.records
                result.failed_candidates = detail.failed_candidates
                result.asset_outcomes = detail.asset_outcomes

    summary.finalize()
    result.company_name = next((r.company for r in result.records if r.company), None)
    result.output_dir = target.path
    log_run_summary(result)
    _persist(result, config.save_results, config.gcs_bucket, config.gcs_project, config.dry_run, storage_client)
    return result


def _persist(result: RunResult, save: bool, bucket: Optional[str], project: Optional[str], dry_run: bool, storage_client, *, prefix: str = "scraping_results") -> None:
    if save and result.output_dir:
        result.results_path = write_results(result, result.output_dir, prefix=prefix)
    if bucket and result.output_dir:
        client = storage_client
        if client is None and not dry_run:
            client = make_storage_client(project)
        mirror_run(client, bucket, result, result.output_dir, result.results_path, dry_run=dry_run)


async def retry_failed(
    results_path: str,
    *,
    fetcher: TextFetcher,
    depth: int = 3,
    aggregator: Optional[AssetAggregator] = None,
    item_delay_ms: int = DEFAULT_RETRY_ITEM_DELAY_MS,
    max_retries: int = 0,
    retry_base_ms: int = DEFAULT_RETRY_BASE_MS,
    save_results: bool = True,
) -> RunResult:
    """Re-run the detail stage over the failed candidates of a previous run."""

    data = load_results(results_path)
    candidates = failed_candidates_from(data)
    out_dir = os.path.dirname(results_path) or "."
    group_key = data.get("group_key")
    summary = RunSummary()
    summary.increment("total_found", len(candidates))
    result = RunResult(
        target_url=data.get("target_url") or "",
        group_key=group_key,
        depth=depth,
        summary=summary,
        candidates=candidates,
        company_name=data.get("company_name"),
        scraper_version=get_scraper_version(),
        output_dir=out_dir,
    )
    if not candidates:
        jlog("info", event="no_failed_candidates", results_path=results_path)
        summary.finalize()
        return result

    if depth >= 3 and aggregator is None:
        aggregator = AssetAggregator(out_dir)
    pipeline = DetailPipeline(
        fetcher,
        aggregator=aggregator if depth >= 3 else None,
        item_delay_ms=item_delay_ms,
        max_retries=max_retries,
        retry_base_ms=retry_base_ms,
    )
    with logging_context(group_key=group_key, retry_of=os.path.basename(results_path)):
        detail = await pipeline.run(candidates, group_key, summary=summary)
    result.records = detail.records
    result.asset_outcomes = detail.asset_outcomes
    result.failed_candidates = [
        FailedCandidate(ad_id=f.ad_id, url=f.url, reason=f"{f.reason}{RETRY_SUFFIX}") for f in detail.failed_candidates
    ]
    summary.finalize()
    log_run_summary(result)
    _persist(result, save_results, None, None, False, None, prefix="scraping_results_retry")
    return result


async def download_from_results(
    results_path: str,
    *,
    max_assets: Optional[int] = None,
    concurrency: int = DEFAULT_ASSET_CONCURRENCY,
    aggregator: Optional[AssetAggregator] = None,
) -> list[AssetFetchOutcome]:
    """Fetch assets for records stored in a previous results file."""

    data = load_results(results_path)
    records = records_from(data)
    if max_assets is not None:
        records = records[: max(0, max_assets)]
    without_image = sum(1 for r in records if not r.image_url)
    aggregator = aggregator or AssetAggregator(os.path.dirname(results_path) or ".")
    outcomes = await aggregator.submit_many(records, data.get("group_key"), concurrency=concurrency)
    ok = sum(1 for o in outcomes if o.ok)
    jlog(
        "info",
        event="download_summary",
        results_path=results_path,
        records=len(records),
        records_without_image=without_image,
        successful_asset_fetches=ok,
        failed_asset_fetches=len(outcomes) - ok,
    )
    return outcomes


__all__ = [
    "DetailPipeline",
    "DetailRunOutput",
    "NO_HEADLINE_REASON",
    "download_from_results",
    "log_run_summary",
    "retry_failed",
    "run_scrape",
]
