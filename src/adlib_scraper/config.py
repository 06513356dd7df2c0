"""Run configuration and environment-driven defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .errors import MissingCredential

# Browserless unblock endpoint used to obtain an anti-bot browser session.
BROWSERLESS_UNBLOCK_URL = os.getenv("BROWSERLESS_UNBLOCK_URL", "https://production-sfo.browserless.io/chromium/unblock")
BROWSERLESS_API_KEY_ENV = "BROWSERLESS_API_KEY"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_MAX_CANDIDATES = 10
DEFAULT_DEPTH = 3
DEPTH_LEVELS = (1, 2, 3)

DEFAULT_SESSION_TIMEOUT_MS = int(os.getenv("SESSION_TIMEOUT_MS", str(5 * 60 * 1000)))
DEFAULT_SESSION_TTL_MS = int(os.getenv("SESSION_TTL_MS", "30000"))
DEFAULT_SCROLL_ROUNDS = int(os.getenv("ADLIB_SCROLL_ROUNDS", "5"))
DEFAULT_SCROLL_PAUSE_MS = int(os.getenv("ADLIB_SCROLL_PAUSE_MS", "2000"))
DEFAULT_SETTLE_MS = int(os.getenv("ADLIB_SETTLE_MS", "3000"))
DEFAULT_STABLE_ROUNDS = int(os.getenv("ADLIB_STABLE_ROUNDS", "2"))
DEFAULT_ANCESTOR_DEPTH = 5
DEFAULT_ITEM_DELAY_MS = int(os.getenv("ADLIB_ITEM_DELAY_MS", "300"))
DEFAULT_RETRY_ITEM_DELAY_MS = 500
DEFAULT_FETCH_TIMEOUT_S = float(os.getenv("ADLIB_FETCH_TIMEOUT_S", "60"))
DEFAULT_ASSET_TIMEOUT_S = float(os.getenv("ADLIB_ASSET_TIMEOUT_S", "30"))
DEFAULT_ASSET_CONCURRENCY = 3
DEFAULT_RETRY_BASE_MS = 500


@dataclass(frozen=True)
class RunConfig:
    """Everything a run needs, passed explicitly to each stage."""

    target_url: str
    max_candidates: int = DEFAULT_MAX_CANDIDATES
    depth: int = DEFAULT_DEPTH
    api_key: Optional[str] = None
    local_browser: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    session_timeout_ms: int = DEFAULT_SESSION_TIMEOUT_MS
    scroll_rounds: int = DEFAULT_SCROLL_ROUNDS
    scroll_pause_ms: int = DEFAULT_SCROLL_PAUSE_MS
    settle_ms: int = DEFAULT_SETTLE_MS
    scroll_until_stable: bool = False
    stable_rounds: int = DEFAULT_STABLE_ROUNDS
    exclude_video_listings: bool = True
    fetcher: str = "lynx"
    fetch_timeout_s: float = DEFAULT_FETCH_TIMEOUT_S
    item_delay_ms: int = DEFAULT_ITEM_DELAY_MS
    max_retries: int = 0
    retry_base_ms: int = DEFAULT_RETRY_BASE_MS
    asset_timeout_s: float = DEFAULT_ASSET_TIMEOUT_S
    output_dir: Optional[str] = None
    base_dir: str = "."
    save_results: bool = True
    gcs_bucket: Optional[str] = None
    gcs_project: Optional[str] = None
    dry_run: bool = False
    debug_html: bool = False

    @property
    def download_assets(self) -> bool:
        return self.depth >= 3

    @property
    def extract_details(self) -> bool:
        return self.depth >= 2


def validate_depth(depth: int) -> int:
    if depth not in DEPTH_LEVELS:
        raise ValueError(f"depth must be one of {DEPTH_LEVELS}, got {depth}")
    return depth


def require_api_key(config: RunConfig) -> str:
    """Return the browserless token or fail before any network activity."""

    key = config.api_key or os.getenv(BROWSERLESS_API_KEY_ENV)
    if not key:
        raise MissingCredential(f"{BROWSERLESS_API_KEY_ENV} environment variable is required for render sessions")
    return key


__all__ = [
    "BROWSERLESS_API_KEY_ENV",
    "BROWSERLESS_UNBLOCK_URL",
    "DEFAULT_ANCESTOR_DEPTH",
    "DEFAULT_ASSET_CONCURRENCY",
    "DEFAULT_ASSET_TIMEOUT_S",
    "DEFAULT_FETCH_TIMEOUT_S",
    "DEFAULT_DEPTH",
    "DEFAULT_ITEM_DELAY_MS",
    "DEFAULT_MAX_CANDIDATES",
    "DEFAULT_RETRY_BASE_MS",
    "DEFAULT_RETRY_ITEM_DELAY_MS",
    "DEFAULT_SCROLL_PAUSE_MS",
    "DEFAULT_SCROLL_ROUNDS",
    "DEFAULT_SESSION_TIMEOUT_MS",
    "DEFAULT_SESSION_TTL_MS",
    "DEFAULT_SETTLE_MS",
    "DEFAULT_STABLE_ROUNDS",
    "DEFAULT_USER_AGENT",
    "DEPTH_LEVELS",
    "RunConfig",
    "require_api_key",
    "validate_depth",
]
