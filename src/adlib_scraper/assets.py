"""Binary asset fetching for extracted records.

Every record with an image URL gets its own "main" fetch. The advertiser
logo is a companion asset shared by the whole group, so it is attempted at
most once per group key per run; the first attempt wins even if it fails.
"""

from __future__ import annotations

import asyncio
import os
import random
import time
from typing import Callable, Iterable, Optional, Protocol, Union

import requests

from .config import DEFAULT_ASSET_CONCURRENCY, DEFAULT_ASSET_TIMEOUT_S, DEFAULT_USER_AGENT
from .errors import FetchError
from .hashing import AssetFingerprint, fingerprint_asset
from .logging import jlog
from .models import ASSET_KIND_COMPANION, ASSET_KIND_MAIN, AssetFetchOutcome, Record
from .urls import asset_extension

_CHUNK = 64 * 1024
PARTIAL_SUFFIX = ".part"


class AssetDownloader(Protocol):
    def __call__(self, url: str, dest_path: str, *, timeout_s: float, user_agent: str) -> int: ...


def main_asset_name(ad_id: Optional[str], url: str, timestamp_ms: int) -> str:
    return f"{ad_id or 'unknown'}_main_image_{timestamp_ms}{asset_extension(url)}"


def companion_asset_name(group_key: str, url: str) -> str:
    return f"{group_key}_logo{asset_extension(url)}"


def _remove_partial(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def download_asset(url: str, dest_path: str, *, timeout_s: float = DEFAULT_ASSET_TIMEOUT_S, user_agent: str = DEFAULT_USER_AGENT) -> int:
    """Stream ``url`` into ``dest_path`` and return the byte size.

    Raises :class:`FetchError` on a non-200 status, transport error or when
    the whole transfer exceeds ``timeout_s``. Bytes are streamed into
    ``<dest_path>.part`` and moved onto ``dest_path`` only once complete, so
    a failed fetch never touches a file already saved under that name.
    """

    headers = {
        "User-Agent": user_agent,
        "Accept": "image/webp,image/apng,image/*,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Referer": "https://www.linkedin.com/",
    }
    part_path = dest_path + PARTIAL_SUFFIX
    deadline = time.monotonic() + timeout_s
    try:
        with requests.get(url, headers=headers, stream=True, timeout=timeout_s) as resp:
            if resp.status_code != 200:
                raise FetchError(f"HTTP {resp.status_code}: {resp.reason}")
            with open(part_path, "wb") as fh:
                for chunk in resp.iter_content(chunk_size=_CHUNK):
                    if time.monotonic() > deadline:
                        raise FetchError("Request timeout")
                    if chunk:
                        fh.write(chunk)
        os.replace(part_path, dest_path)
    except requests.RequestException as exc:
        _remove_partial(part_path)
        raise FetchError(str(exc)) from exc
    except BaseException:
        _remove_partial(part_path)
        raise
    return os.path.getsize(dest_path)


Destination = Union[str, Callable[[], str]]


class AssetAggregator:
    """Decides which assets to request for each record and records outcomes."""

    def __init__(
        self,
        destination: Destination,
        *,
        downloader: AssetDownloader = download_asset,
        timeout_s: float = DEFAULT_ASSET_TIMEOUT_S,
        user_agent: str = DEFAULT_USER_AGENT,
        fingerprint: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self._destination = destination
        self.downloader = downloader
        self.timeout_s = timeout_s
        self.user_agent = user_agent
        self.fingerprint = fingerprint
        self.clock = clock
        self._companion_fetched: set[str] = set()
        self._lock = asyncio.Lock()

    @property
    def destination(self) -> str:
        # Resolved per fetch: the output directory may be relocated mid-run.
        return self._destination() if callable(self._destination) else self._destination

    @property
    def companion_fetched(self) -> frozenset[str]:
        return frozenset(self._companion_fetched)

    async def _claim_companion(self, group_key: str) -> bool:
        async with self._lock:
            if group_key in self._companion_fetched:
                return False
            self._companion_fetched.add(group_key)
            return True

    async def submit(self, record: Record, group_key: Optional[str]) -> list[AssetFetchOutcome]:
        """Fetch the record's main asset and, once per group, its companion."""

        outcomes: list[AssetFetchOutcome] = []
        if record.image_url:
            name = main_asset_name(record.ad_id, record.image_url, int(self.clock() * 1000))
            outcomes.append(await self._fetch(ASSET_KIND_MAIN, record.image_url, name, record.ad_id))
        if record.logo_url and group_key and await self._claim_companion(group_key):
            name = companion_asset_name(group_key, record.logo_url)
            outcomes.append(await self._fetch(ASSET_KIND_COMPANION, record.logo_url, name, record.ad_id))
        return outcomes

    async def submit_many(
        self,
        records: Iterable[Record],
        group_key: Optional[str],
        *,
        concurrency: int = DEFAULT_ASSET_CONCURRENCY,
        max_jitter_s: float = 0.3,
    ) -> list[AssetFetchOutcome]:
        """Submit several records with bounded concurrency and per-task jitter."""

        sem = asyncio.Semaphore(max(1, concurrency))

        async def _one(record: Record) -> list[AssetFetchOutcome]:
            async with sem:
                if max_jitter_s > 0:
                    await asyncio.sleep(random.uniform(0, max_jitter_s))
                return await self.submit(record, group_key)

        batches = await asyncio.gather(*(_one(r) for r in records))
        return [outcome for batch in batches for outcome in batch]

    async def _fetch(self, kind: str, url: str, name: str, ad_id: Optional[str]) -> AssetFetchOutcome:
        dest_dir = self.destination
        path = os.path.join(dest_dir, name)
        try:
            os.makedirs(dest_dir, exist_ok=True)
            size = await asyncio.to_thread(self.downloader, url, path, timeout_s=self.timeout_s, user_agent=self.user_agent)
        except Exception as exc:
            error = str(exc) or exc.__class__.__name__
            jlog("warning", event="asset_failed", kind=kind, ad_id=ad_id, url=url, error=error)
            return AssetFetchOutcome(kind=kind, url=url, ad_id=ad_id, error=error)

        fp: AssetFingerprint | None = None
        if self.fingerprint:
            try:
                fp = await asyncio.to_thread(fingerprint_asset, path)
            except Exception as exc:
                # The file is already saved; a bad image only loses its fingerprint.
                jlog("warning", event="asset_fingerprint_failed", kind=kind, ad_id=ad_id, local_name=name, error=str(exc))
        jlog("info", event="asset_fetched", kind=kind, ad_id=ad_id, local_name=name, byte_size=size)
        return AssetFetchOutcome(
            kind=kind,
            url=url,
            ad_id=ad_id,
            local_name=name,
            byte_size=size,
            sha256=fp.sha256 if fp else None,
            width=fp.width if fp else None,
            height=fp.height if fp else None,
        )


__all__ = [
    "AssetAggregator",
    "AssetDownloader",
    "companion_asset_name",
    "download_asset",
    "main_asset_name",
]
