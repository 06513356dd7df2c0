import asyncio

import pytest
import requests

from adlib_scraper import fetch
from adlib_scraper.errors import FetchError
from adlib_scraper.fetch import HttpTextFetcher, LynxTextFetcher, make_text_fetcher


class _FakeHttp:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.headers = {}
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False

    def get(self, url, timeout=None):
        if self.error:
            raise self.error
        return self.response


class _Resp:
    def __init__(self, status_code, text="", reason="OK"):
        self.status_code = status_code
        self.text = text
        self.reason = reason


def test_make_text_fetcher():
    assert isinstance(make_text_fetcher("lynx"), LynxTextFetcher)
    assert isinstance(make_text_fetcher("http"), HttpTextFetcher)
    with pytest.raises(ValueError):
        make_text_fetcher("curl")


def test_lynx_missing_binary_is_a_fetch_error():
    fetcher = LynxTextFetcher(binary="definitely-not-a-real-lynx-binary")
    with pytest.raises(FetchError, match="not found"):
        asyncio.run(fetcher.fetch("https://www.linkedin.com/ad-library/detail/1"))


def test_http_fetcher_returns_body(monkeypatch):
    http = _FakeHttp(response=_Resp(200, "<html>ok</html>"))
    monkeypatch.setattr(fetch.requests, "Session", lambda: http)
    assert asyncio.run(HttpTextFetcher().fetch("https://x")) == "<html>ok</html>"
    assert http.closed


def test_http_fetcher_non_200(monkeypatch):
    monkeypatch.setattr(fetch.requests, "Session", lambda: _FakeHttp(response=_Resp(429, reason="Too Many Requests")))
    with pytest.raises(FetchError, match="HTTP 429"):
        asyncio.run(HttpTextFetcher().fetch("https://x"))


def test_http_fetcher_transport_error(monkeypatch):
    monkeypatch.setattr(fetch.requests, "Session", lambda: _FakeHttp(error=requests.Timeout("read timed out")))
    with pytest.raises(FetchError, match="timed out"):
        asyncio.run(HttpTextFetcher().fetch("https://x"))
