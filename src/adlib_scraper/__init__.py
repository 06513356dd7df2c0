"""Ad-library listing scraper: discovery, detail extraction and asset download."""

from .assets import AssetAggregator, download_asset
from .classify import is_non_processable
from .config import RunConfig
from .discovery import dedupe_candidates, discover
from .errors import FetchError, MissingCredential, ScraperError, SessionUnavailable
from .extract import FIELD_RULES, extract
from .logging import adlog, jlog
from .models import AssetFetchOutcome, CandidateRef, FailedCandidate, Record, RunResult, RunSummary
from .pipeline import DetailPipeline, download_from_results, retry_failed, run_scrape
from .playwright import CHROMIUM_LAUNCH_ARGS, cleanup_playwright, open_render_session
from .versioning import get_scraper_version

__all__ = [
    "adlog",
    "AssetAggregator",
    "AssetFetchOutcome",
    "CandidateRef",
    "cleanup_playwright",
    "dedupe_candidates",
    "DetailPipeline",
    "discover",
    "download_asset",
    "download_from_results",
    "extract",
    "FailedCandidate",
    "FetchError",
    "FIELD_RULES",
    "get_scraper_version",
    "is_non_processable",
    "jlog",
    "MissingCredential",
    "open_render_session",
    "Record",
    "retry_failed",
    "run_scrape",
    "RunConfig",
    "RunResult",
    "RunSummary",
    "ScraperError",
    "SessionUnavailable",
    "CHROMIUM_LAUNCH_ARGS",
]
