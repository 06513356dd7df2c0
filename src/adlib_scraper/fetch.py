"""Raw markup retrieval for detail pages.

Two interchangeable fetchers are provided. ``LynxTextFetcher`` shells out to
``lynx -source`` which the detail pages tolerate far better than scripted
HTTP clients; ``HttpTextFetcher`` is a plain ``requests`` fallback. Both open
exactly one connection per call and close it before returning.
"""

from __future__ import annotations

import asyncio
import shutil
from typing import Protocol

import requests

from .config import DEFAULT_FETCH_TIMEOUT_S, DEFAULT_USER_AGENT
from .errors import FetchError


class TextFetcher(Protocol):
    async def fetch(self, url: str) -> str: ...


class LynxTextFetcher:
    def __init__(self, *, timeout_s: float = DEFAULT_FETCH_TIMEOUT_S, binary: str = "lynx"):
        self.timeout_s = timeout_s
        self.binary = binary

    async def fetch(self, url: str) -> str:
        if shutil.which(self.binary) is None:
            raise FetchError(f"{self.binary} executable not found on PATH")
        proc = await asyncio.create_subprocess_exec(
            self.binary,
            "-source",
            url,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise FetchError(f"{self.binary} timed out after {self.timeout_s:g}s") from None
        if proc.returncode != 0:
            raise FetchError(f"{self.binary} exited with status {proc.returncode}")
        return stdout.decode("utf-8", errors="replace")


class HttpTextFetcher:
    def __init__(self, *, timeout_s: float = DEFAULT_FETCH_TIMEOUT_S, user_agent: str = DEFAULT_USER_AGENT):
        self.timeout_s = timeout_s
        self.user_agent = user_agent

    def _get(self, url: str) -> str:
        with requests.Session() as http:
            http.headers.update({"User-Agent": self.user_agent, "Accept-Language": "en-US,en;q=0.9"})
            try:
                resp = http.get(url, timeout=self.timeout_s)
            except requests.RequestException as exc:
                raise FetchError(str(exc)) from exc
            if resp.status_code != 200:
                raise FetchError(f"HTTP {resp.status_code}: {resp.reason}")
            return resp.text

    async def fetch(self, url: str) -> str:
        return await asyncio.to_thread(self._get, url)


def make_text_fetcher(kind: str, *, timeout_s: float = DEFAULT_FETCH_TIMEOUT_S, user_agent: str = DEFAULT_USER_AGENT) -> TextFetcher:
    if kind == "lynx":
        return LynxTextFetcher(timeout_s=timeout_s)
    if kind == "http":
        return HttpTextFetcher(timeout_s=timeout_s, user_agent=user_agent)
    raise ValueError(f"unknown fetcher: {kind}")


__all__ = ["HttpTextFetcher", "LynxTextFetcher", "TextFetcher", "make_text_fetcher"]
