import asyncio

import pytest

from adlib_scraper import playwright as pw_mod
from adlib_scraper.config import RunConfig
from adlib_scraper.errors import MissingCredential, SessionUnavailable
from adlib_scraper.playwright import open_render_session, request_unblock_endpoint

LISTING = "https://www.linkedin.com/ad-library/search?companyIds=89771"


class _Resp:
    def __init__(self, ok, payload=None, text=""):
        self.ok = ok
        self._payload = payload
        self.text = text

    def json(self):
        return self._payload


def test_request_unblock_endpoint_appends_params(monkeypatch):
    captured = {}

    def _post(url, params=None, json=None, timeout=None):
        captured.update(url=url, params=params, json=json)
        return _Resp(True, {"browserWSEndpoint": "wss://browserless.example/session/abc"})

    monkeypatch.setattr(pw_mod.requests, "post", _post)
    endpoint = request_unblock_endpoint(LISTING, "secret", timeout_ms=300000)
    assert endpoint.startswith("wss://browserless.example/session/abc?")
    assert "proxy=residential" in endpoint
    assert "token=secret" in endpoint
    assert captured["json"]["url"] == LISTING
    assert captured["json"]["browserWSEndpoint"] is True
    assert captured["json"]["ttl"] == 30000


def test_request_unblock_endpoint_non_ok(monkeypatch):
    monkeypatch.setattr(pw_mod.requests, "post", lambda *a, **kw: _Resp(False, text="quota exceeded"))
    with pytest.raises(SessionUnavailable, match="quota exceeded"):
        request_unblock_endpoint(LISTING, "secret", timeout_ms=1000)


def test_open_render_session_requires_credential(monkeypatch):
    monkeypatch.delenv("BROWSERLESS_API_KEY", raising=False)

    def _fail():
        raise AssertionError("playwright must not start without a credential")

    monkeypatch.setattr(pw_mod, "async_playwright", _fail)

    async def _open():
        async with open_render_session(RunConfig(target_url=LISTING)):
            pass

    with pytest.raises(MissingCredential):
        asyncio.run(_open())


class _FakePage:
    def __init__(self, title="LinkedIn Ad Library", url=LISTING):
        self.url = url
        self._title = title
        self.closed = 0

    async def title(self):
        return self._title

    async def wait_for_selector(self, selector, timeout=None):
        return None

    async def evaluate(self, script, arg=None):
        return []

    async def close(self):
        self.closed += 1


class _FakeContext:
    def __init__(self, pages):
        self.pages = pages


class _FakeBrowser:
    def __init__(self, page):
        self.contexts = [_FakeContext([page])]
        self.closed = 0

    async def close(self):
        self.closed += 1


class _FakeChromium:
    def __init__(self, browser=None, error=None):
        self.browser = browser
        self.error = error
        self.endpoints = []

    async def connect_over_cdp(self, endpoint):
        self.endpoints.append(endpoint)
        if self.error is not None:
            raise self.error
        return self.browser


class _FakePlaywright:
    def __init__(self, chromium):
        self.chromium = chromium

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def _remote(monkeypatch, chromium):
    monkeypatch.setattr(pw_mod, "async_playwright", lambda: _FakePlaywright(chromium))
    monkeypatch.setattr(pw_mod, "request_unblock_endpoint", lambda url, key, timeout_ms: f"wss://browserless.example/{key}")
    return RunConfig(target_url=LISTING, api_key="secret")


def test_blocked_listing_releases_browser_once(monkeypatch):
    page = _FakePage(title="429 Too Many Requests")
    browser = _FakeBrowser(page)
    config = _remote(monkeypatch, _FakeChromium(browser))
    entered = []

    async def _open():
        async with open_render_session(config):
            entered.append(True)

    with pytest.raises(SessionUnavailable, match="error_page:429"):
        asyncio.run(_open())
    assert entered == []
    assert browser.closed == 1
    assert page.closed == 0


def test_error_in_body_releases_session_once(monkeypatch):
    page = _FakePage()
    browser = _FakeBrowser(page)
    config = _remote(monkeypatch, _FakeChromium(browser))

    async def _open():
        async with open_render_session(config) as session:
            await session.close()
            raise RuntimeError("discovery blew up")

    with pytest.raises(RuntimeError, match="discovery blew up"):
        asyncio.run(_open())
    assert page.closed == 1
    assert browser.closed == 1


def test_normal_exit_releases_session_once(monkeypatch):
    page = _FakePage()
    browser = _FakeBrowser(page)
    chromium = _FakeChromium(browser)
    config = _remote(monkeypatch, chromium)

    async def _open():
        async with open_render_session(config) as session:
            assert session.page is page
            return await session.list_matching_anchors("/ad-library/detail/")

    assert asyncio.run(_open()) == []
    assert chromium.endpoints == ["wss://browserless.example/secret"]
    assert page.closed == 1
    assert browser.closed == 1


def test_connect_failure_becomes_session_unavailable(monkeypatch):
    config = _remote(monkeypatch, _FakeChromium(error=pw_mod.PlaywrightError("connect ECONNREFUSED")))

    async def _open():
        async with open_render_session(config):
            pass

    with pytest.raises(SessionUnavailable, match="ECONNREFUSED"):
        asyncio.run(_open())
