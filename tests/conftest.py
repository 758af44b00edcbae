"""Shared fixtures: a deterministic fetch backend and config/page builders."""

import asyncio

import pytest

from link_crawler.config import parse_config
from link_crawler.fetchers import FetchResult


class StubFetcher:
    """Serves canned responses keyed by URL.

    A value may be an HTML string, a FetchResult, an exception instance to
    raise, or a number of seconds to hang (for timeout tests). Unknown URLs
    return None.
    """

    def __init__(self, pages):
        self.pages = dict(pages)
        self.calls = []
        self.close_count = 0

    async def fetch(self, url):
        self.calls.append(url)
        item = self.pages.get(url)
        if item is None:
            return None
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, (int, float)):
            await asyncio.sleep(item)
            return None
        if isinstance(item, FetchResult):
            return item
        return FetchResult(
            html=item,
            final_url=url,
            content_type="text/html; charset=utf-8",
            status_code=200,
        )

    async def close(self):
        self.close_count += 1

    def page_calls(self):
        return [u for u in self.calls if not u.endswith("/robots.txt")]


def build_page(title, *links, body="Some documentation text.", heading=None):
    anchors = "".join(f'<li><a href="{href}">{href}</a></li>' for href in links)
    return (
        "<html><head>"
        f"<title>{title}</title>"
        '<meta name="description" content="About this page">'
        "</head><body>"
        f"<main><h1>{heading or title}</h1><p>{body}</p><ul>{anchors}</ul></main>"
        "</body></html>"
    )


@pytest.fixture
def page_html():
    return build_page


@pytest.fixture
def stub_fetcher():
    return StubFetcher


@pytest.fixture
def make_config(tmp_path):
    def _make(url="https://example.com", **overrides):
        options = {
            "output": tmp_path / "out",
            "delay": 0,
            "wait": 0,
        }
        options.update(overrides)
        return parse_config(url, **options)

    return _make


class FakeResponse:
    def __init__(self, url, status_code=200, text="", headers=None):
        self.url = url
        self.status_code = status_code
        self.text = text
        self.headers = headers or {"Content-Type": "text/html; charset=utf-8"}


class FakeSession:
    """Stands in for ``requests.Session``; replays queued responses."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requested = []
        self.closed = False

    def get(self, url, timeout=None, headers=None):
        self.requested.append(url)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self):
        self.closed = True


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def fake_session():
    return FakeSession
