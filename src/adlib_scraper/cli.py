"""Command line entrypoint.

Usage (examples)
----------------
# Discovery, details and assets for one advertiser (depth 3 is the default)
adlib-scraper run "https://www.linkedin.com/ad-library/search?companyIds=89771" 20

# Discovery and details only, without a residential browser session
adlib-scraper run "https://www.linkedin.com/ad-library/search?companyIds=89771" 20 2 --local-browser

# Retry the failed candidates of a previous run
adlib-scraper retry company_89771_20251022/scraping_results_1761154119634.json 3

# Fetch assets for records stored in a results file
adlib-scraper download company_89771_20251022/scraping_results_1761154119634.json 5 --concurrency 3
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
from dataclasses import dataclass
from typing import Optional, Sequence

from .config import (
    DEFAULT_ASSET_CONCURRENCY,
    DEFAULT_ASSET_TIMEOUT_S,
    DEFAULT_DEPTH,
    DEFAULT_FETCH_TIMEOUT_S,
    DEFAULT_ITEM_DELAY_MS,
    DEFAULT_MAX_CANDIDATES,
    DEFAULT_RETRY_BASE_MS,
    DEFAULT_RETRY_ITEM_DELAY_MS,
    DEFAULT_SCROLL_PAUSE_MS,
    DEFAULT_SCROLL_ROUNDS,
    DEFAULT_SETTLE_MS,
    DEFAULT_STABLE_ROUNDS,
    DEFAULT_USER_AGENT,
    DEPTH_LEVELS,
    RunConfig,
    require_api_key,
    validate_depth,
)
from .assets import AssetAggregator
from .errors import MissingCredential, SessionUnavailable
from .fetch import make_text_fetcher
from .logging import configure_logging, jlog, logging_context, set_global_context
from .pipeline import download_from_results, retry_failed, run_scrape
from .versioning import get_scraper_version


@dataclass(frozen=True)
class CliArgs:
    command: str
    config: Optional[RunConfig] = None
    results_path: Optional[str] = None
    depth: int = DEFAULT_DEPTH
    max_assets: Optional[int] = None
    concurrency: int = DEFAULT_ASSET_CONCURRENCY
    fetcher: str = "lynx"
    fetch_timeout_s: float = DEFAULT_FETCH_TIMEOUT_S
    asset_timeout_s: float = DEFAULT_ASSET_TIMEOUT_S
    item_delay_ms: int = DEFAULT_RETRY_ITEM_DELAY_MS
    max_retries: int = 0
    retry_base_ms: int = DEFAULT_RETRY_BASE_MS
    user_agent: str = DEFAULT_USER_AGENT


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from None
    if parsed < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {parsed}")
    return parsed


def _depth(value: str) -> int:
    try:
        return validate_depth(int(value))
    except ValueError:
        raise argparse.ArgumentTypeError(f"depth must be one of {DEPTH_LEVELS}, got {value!r}") from None


def _add_fetch_options(p: argparse.ArgumentParser, *, default_delay_ms: int) -> None:
    p.add_argument("--fetcher", choices=["lynx", "http"], default="lynx", help="How detail markup is retrieved")
    p.add_argument("--fetch-timeout-s", type=float, default=DEFAULT_FETCH_TIMEOUT_S)
    p.add_argument("--asset-timeout-s", type=float, default=DEFAULT_ASSET_TIMEOUT_S)
    p.add_argument("--delay-ms", type=int, default=default_delay_ms, help="Pause between detail pages")
    p.add_argument(
        "--max-retries",
        type=int,
        default=0,
        help="Retries per detail fetch with exponential backoff (default: 0)",
    )
    p.add_argument("--retry-base-ms", type=int, default=DEFAULT_RETRY_BASE_MS)
    p.add_argument("--user-agent", default=DEFAULT_USER_AGENT)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="adlib-scraper", description="Extract ad records from an ad-library listing")
    sub = p.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Discover, extract and download")
    run.add_argument("target_url", help="Ad-library listing URL, e.g. .../ad-library/search?companyIds=89771")
    run.add_argument("max_candidates", nargs="?", type=_positive_int, default=DEFAULT_MAX_CANDIDATES)
    run.add_argument(
        "depth",
        nargs="?",
        type=_depth,
        default=DEFAULT_DEPTH,
        help="1 = discovery only, 2 = + detail extraction, 3 = + asset download (default)",
    )
    _add_fetch_options(run, default_delay_ms=DEFAULT_ITEM_DELAY_MS)
    run.add_argument("--local-browser", action="store_true", help="Launch a local Chromium instead of browserless")
    run.add_argument("--scroll-rounds", type=int, default=DEFAULT_SCROLL_ROUNDS)
    run.add_argument("--scroll-pause-ms", type=int, default=DEFAULT_SCROLL_PAUSE_MS)
    run.add_argument("--settle-ms", type=int, default=DEFAULT_SETTLE_MS)
    run.add_argument(
        "--scroll-until-stable",
        action="store_true",
        help="Stop scrolling early once the number of detail links stops growing",
    )
    run.add_argument("--stable-rounds", type=int, default=DEFAULT_STABLE_ROUNDS)
    run.add_argument(
        "--keep-video-listings",
        action="store_true",
        help="Do not drop listing entries that look like video ads (details are still classified)",
    )
    run.add_argument("--output-dir", help="Write into this directory instead of company_<id>_<date>")
    run.add_argument("--base-dir", default=".", help="Parent of the per-company output directory")
    run.add_argument("--no-save", action="store_true", help="Do not write the results JSON file")
    run.add_argument("--gcs-bucket", help="Mirror results and assets to this bucket")
    run.add_argument("--gcs-project")
    run.add_argument("--dry-run", action="store_true", help="Log bucket uploads instead of performing them")
    run.add_argument("--debug-html", action="store_true", help="Dump raw detail markup to media/debug/")

    retry = sub.add_parser("retry", help="Retry failed candidates from a results file")
    retry.add_argument("results_path")
    retry.add_argument("depth", nargs="?", type=_depth, default=DEFAULT_DEPTH)
    _add_fetch_options(retry, default_delay_ms=DEFAULT_RETRY_ITEM_DELAY_MS)

    download = sub.add_parser("download", help="Fetch assets for records in a results file")
    download.add_argument("results_path")
    download.add_argument("max_assets", nargs="?", type=_positive_int)
    download.add_argument("--concurrency", type=_positive_int, default=DEFAULT_ASSET_CONCURRENCY)
    download.add_argument("--asset-timeout-s", type=float, default=DEFAULT_ASSET_TIMEOUT_S)
    download.add_argument("--user-agent", default=DEFAULT_USER_AGENT)
    return p


def validate_args(ns: argparse.Namespace) -> None:
    """Emit warnings for settings that are likely to trip the target's defences."""

    delay_ms = getattr(ns, "delay_ms", None)
    if delay_ms is not None and delay_ms < 100:
        jlog("warning", event="aggressive_pacing", delay_ms=delay_ms, message="Detail pages may start blocking requests.")
    if getattr(ns, "scroll_rounds", 1) < 1:
        raise ValueError("--scroll-rounds must be at least 1")


def parse_args(argv: Optional[Sequence[str]] = None) -> CliArgs:
    parser = build_parser()
    ns = parser.parse_args(argv)
    try:
        validate_args(ns)
    except ValueError as exc:
        parser.error(str(exc))

    if ns.command == "download":
        return CliArgs(
            command="download",
            results_path=ns.results_path,
            max_assets=ns.max_assets,
            concurrency=ns.concurrency,
            asset_timeout_s=ns.asset_timeout_s,
            user_agent=ns.user_agent,
        )
    if ns.command == "retry":
        return CliArgs(
            command="retry",
            results_path=ns.results_path,
            depth=ns.depth,
            fetcher=ns.fetcher,
            fetch_timeout_s=ns.fetch_timeout_s,
            asset_timeout_s=ns.asset_timeout_s,
            item_delay_ms=ns.delay_ms,
            max_retries=ns.max_retries,
            retry_base_ms=ns.retry_base_ms,
            user_agent=ns.user_agent,
        )

    config = RunConfig(
        target_url=ns.target_url,
        max_candidates=ns.max_candidates,
        depth=ns.depth,
        local_browser=ns.local_browser,
        user_agent=ns.user_agent,
        scroll_rounds=ns.scroll_rounds,
        scroll_pause_ms=ns.scroll_pause_ms,
        settle_ms=ns.settle_ms,
        scroll_until_stable=ns.scroll_until_stable,
        stable_rounds=ns.stable_rounds,
        exclude_video_listings=not ns.keep_video_listings,
        fetcher=ns.fetcher,
        fetch_timeout_s=ns.fetch_timeout_s,
        item_delay_ms=ns.delay_ms,
        max_retries=ns.max_retries,
        retry_base_ms=ns.retry_base_ms,
        asset_timeout_s=ns.asset_timeout_s,
        output_dir=ns.output_dir,
        base_dir=ns.base_dir,
        save_results=not ns.no_save,
        gcs_bucket=ns.gcs_bucket,
        gcs_project=ns.gcs_project,
        dry_run=ns.dry_run,
        debug_html=ns.debug_html,
    )
    return CliArgs(command="run", config=config, depth=ns.depth)


def _results_aggregator(results_path: str, args: CliArgs) -> AssetAggregator:
    # Assets land next to the results file they were derived from.
    return AssetAggregator(os.path.dirname(results_path) or ".", timeout_s=args.asset_timeout_s, user_agent=args.user_agent)


async def dispatch(args: CliArgs) -> None:
    if args.command == "run":
        if args.config is None:
            raise ValueError("run needs a RunConfig")
        await run_scrape(args.config)
        return

    results_path = args.results_path
    if not results_path:
        raise ValueError(f"{args.command} needs a results file")
    if args.command == "retry":
        fetcher = make_text_fetcher(args.fetcher, timeout_s=args.fetch_timeout_s, user_agent=args.user_agent)
        await retry_failed(
            results_path,
            fetcher=fetcher,
            depth=args.depth,
            aggregator=_results_aggregator(results_path, args) if args.depth >= 3 else None,
            item_delay_ms=args.item_delay_ms,
            max_retries=args.max_retries,
            retry_base_ms=args.retry_base_ms,
        )
    elif args.command == "download":
        await download_from_results(
            results_path,
            max_assets=args.max_assets,
            concurrency=args.concurrency,
            aggregator=_results_aggregator(results_path, args),
        )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse arguments and run the requested command; returns the exit status."""

    configure_logging()
    set_global_context(app="adlib_scraper")
    args = parse_args(argv)
    with logging_context(command=args.command, scraper_version=get_scraper_version()):
        try:
            if args.config is not None and not args.config.local_browser:
                require_api_key(args.config)
            asyncio.run(dispatch(args))
        except (MissingCredential, SessionUnavailable) as exc:
            jlog("error", event="run_aborted", error=str(exc))
            return 1
        except (OSError, json.JSONDecodeError) as exc:
            jlog("error", event="results_file_error", error=str(exc))
            return 1
    return 0


__all__ = ["CliArgs", "build_parser", "dispatch", "main", "parse_args", "validate_args"]
