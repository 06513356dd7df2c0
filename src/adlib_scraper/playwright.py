"""Playwright-backed render session for ad-library listing pages."""

from __future__ import annotations

import asyncio
import urllib.parse
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Protocol, Sequence

import requests
from playwright.async_api import Browser, Page, async_playwright
from playwright.async_api import Error as PlaywrightError

from .config import BROWSERLESS_UNBLOCK_URL, DEFAULT_ANCESTOR_DEPTH, DEFAULT_SESSION_TTL_MS, RunConfig, require_api_key
from .errors import SessionUnavailable
from .logging import jlog


@dataclass(frozen=True, slots=True)
class Anchor:
    href: str
    text: str = ""
    video_hint: bool = False


class RenderSession(Protocol):
    """What discovery needs from a rendered listing page."""

    async def trigger_scroll_growth(self) -> None: ...

    async def list_matching_anchors(self, pattern: str) -> Sequence[Anchor]: ...

    async def close(self) -> None: ...


_ANCHOR_INVENTORY_JS = """
(args) => {
    const links = Array.from(document.querySelectorAll(`a[href*="${args.pattern}"]`));
    return links.map(link => {
        let parent = link;
        let videoHint = false;
        for (let i = 0; i < args.depth; i++) {
            parent = parent.parentElement;
            if (!parent) break;
            const text = parent.textContent || '';
            const html = parent.innerHTML || '';
            if (text.includes('Video Ad') ||
                text.includes('Video ad') ||
                html.includes('video-player') ||
                html.includes('data-test-ad-type="video"') ||
                parent.querySelector('[data-test-ad-type="video"]') ||
                parent.querySelector('.video-player')) {
                videoHint = true;
                break;
            }
        }
        return { href: link.href, text: (link.textContent || '').trim(), videoHint };
    });
}
"""


class PlaywrightRenderSession:
    """A single listing page kept open for the lifetime of a run."""

    def __init__(self, page: Page, browser: Browser | None, *, ancestor_depth: int = DEFAULT_ANCESTOR_DEPTH):
        self.page = page
        self.browser = browser
        self.ancestor_depth = ancestor_depth
        self._closed = False

    async def trigger_scroll_growth(self) -> None:
        try:
            await self.page.evaluate("() => window.scrollTo(0, document.body.scrollHeight)")
        except PlaywrightError as exc:
            raise SessionUnavailable(f"scroll failed: {exc}") from exc

    async def list_matching_anchors(self, pattern: str) -> list[Anchor]:
        try:
            raw = await self.page.evaluate(_ANCHOR_INVENTORY_JS, {"pattern": pattern, "depth": self.ancestor_depth})
        except PlaywrightError as exc:
            raise SessionUnavailable(f"anchor inventory failed: {exc}") from exc
        return [Anchor(href=a.get("href") or "", text=a.get("text") or "", video_hint=bool(a.get("videoHint"))) for a in raw or []]

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await cleanup_playwright(self.page, self.browser)


def request_unblock_endpoint(target_url: str, api_key: str, *, timeout_ms: int, ttl_ms: int = DEFAULT_SESSION_TTL_MS) -> str:
    """Ask browserless for a pre-navigated, unblocked browser and return its CDP URL."""

    params = {"timeout": str(timeout_ms), "proxy": "residential", "token": api_key}
    resp = requests.post(
        BROWSERLESS_UNBLOCK_URL,
        params=params,
        json={"url": target_url, "browserWSEndpoint": True, "content": False, "screenshot": False, "ttl": ttl_ms},
        timeout=timeout_ms / 1000.0,
    )
    if not resp.ok:
        raise SessionUnavailable(f"Got non-ok response: {resp.text}")
    endpoint = (resp.json() or {}).get("browserWSEndpoint")
    if not endpoint:
        raise SessionUnavailable("unblock response did not include browserWSEndpoint")
    return f"{endpoint}?{urllib.parse.urlencode(params)}"


async def _pick_listing_page(browser: Browser, target_url: str, timeout_ms: int) -> Page:
    pages = [p for ctx in browser.contexts for p in ctx.pages]
    for page in pages:
        if "ad-library" in (page.url or ""):
            return page
    if pages:
        return pages[0]
    page = await browser.new_page()
    await page.goto(target_url, wait_until="domcontentloaded", timeout=timeout_ms)
    return page


async def listing_block_reason(page: Page) -> str | None:
    """Return a reason string if the listing page is an error or login wall."""

    try:
        title = await page.title()
    except PlaywrightError:
        return "page_unavailable"
    if "Error" in title or "429" in title or "403" in title:
        return f"error_page:{title}"
    if "authwall" in (page.url or ""):
        return "authwall"
    return None


@asynccontextmanager
async def open_render_session(config: RunConfig) -> AsyncIterator[PlaywrightRenderSession]:
    """Acquire the run's render session and release it exactly once."""

    api_key = "" if config.local_browser else require_api_key(config)
    async with async_playwright() as pw:
        browser: Browser | None = None
        session: PlaywrightRenderSession | None = None
        try:
            try:
                if config.local_browser:
                    browser = await pw.chromium.launch(headless=True, args=CHROMIUM_LAUNCH_ARGS)
                    context = await browser.new_context(user_agent=config.user_agent)
                    page = await context.new_page()
                    await page.goto(config.target_url, wait_until="domcontentloaded", timeout=config.session_timeout_ms)
                else:
                    endpoint = await asyncio.to_thread(
                        request_unblock_endpoint, config.target_url, api_key, timeout_ms=config.session_timeout_ms
                    )
                    browser = await pw.chromium.connect_over_cdp(endpoint)
                    page = await _pick_listing_page(browser, config.target_url, config.session_timeout_ms)
                await page.wait_for_selector("body", timeout=config.session_timeout_ms)
            except (PlaywrightError, requests.RequestException) as exc:
                raise SessionUnavailable(f"could not acquire render session: {exc}") from exc

            reason = await listing_block_reason(page)
            if reason:
                raise SessionUnavailable(f"listing page blocked: {reason}")
            jlog("info", event="session_acquired", url=page.url, local=config.local_browser)
            session = PlaywrightRenderSession(page, browser)
            yield session
        finally:
            if session is not None:
                await session.close()
            else:
                await cleanup_playwright(None, browser)
            jlog("info", event="session_released")


async def cleanup_playwright(page: Page | None, browser: Browser | None) -> None:
    """Close the page and browser, ignoring errors from an already-dead session."""

    for name, resource in (("page", page), ("browser", browser)):
        if resource is None:
            continue
        try:
            await resource.close()
        except Exception as exc:
            jlog("debug", event="session_cleanup_error", resource=name, error=str(exc))


CHROMIUM_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--single-process",
    "--no-zygote",
]


__all__ = [
    "Anchor",
    "CHROMIUM_LAUNCH_ARGS",
    "PlaywrightRenderSession",
    "RenderSession",
    "cleanup_playwright",
    "listing_block_reason",
    "open_render_session",
    "request_unblock_endpoint",
]
