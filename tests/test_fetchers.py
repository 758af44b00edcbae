"""Tests for the fetch backends that do not need a real browser."""

import asyncio
import threading

import pytest

from link_crawler.fetchers import BrowserFetcher, StaticFetcher, build_fetcher
from link_crawler.http_client import HttpClient


def test_static_fetcher_returns_result(fake_session, fake_response):
    session = fake_session([fake_response("https://example.com/final", text="<html>hi</html>")])
    fetcher = StaticFetcher(HttpClient(session))

    result = asyncio.run(fetcher.fetch("https://example.com"))

    assert result.html == "<html>hi</html>"
    assert result.final_url == "https://example.com/final"
    assert result.content_type.startswith("text/html")
    assert result.status_code == 200


def test_static_fetcher_non_2xx_is_none(fake_session, fake_response):
    session = fake_session([fake_response("https://example.com/x", status_code=404)])
    fetcher = StaticFetcher(HttpClient(session))

    assert asyncio.run(fetcher.fetch("https://example.com/x")) is None


def test_static_fetcher_close_is_idempotent(fake_session):
    session = fake_session([])
    fetcher = StaticFetcher(HttpClient(session))

    asyncio.run(fetcher.close())
    asyncio.run(fetcher.close())

    assert session.closed is True


def test_browser_fetcher_close_without_start(tmp_path):
    session_dir = tmp_path / "session"
    session_dir.mkdir()
    fetcher = BrowserFetcher(session_dir=session_dir)

    asyncio.run(fetcher.close())
    asyncio.run(fetcher.close())

    assert not session_dir.exists()


def test_browser_fetcher_keep_session(tmp_path):
    session_dir = tmp_path / "session"
    session_dir.mkdir()
    fetcher = BrowserFetcher(session_dir=session_dir, keep_session=True)

    asyncio.run(fetcher.close())

    assert session_dir.exists()


def test_build_fetcher_selects_backend(make_config):
    assert isinstance(build_fetcher(make_config()), BrowserFetcher)
    static = build_fetcher(make_config(static=True))
    assert isinstance(static, StaticFetcher)
    asyncio.run(static.close())


def test_static_fetches_do_not_overlap_after_timeout(fake_session, fake_response):
    """A timed-out request holds the session until it finishes."""
    slow_url = "https://example.com/slow"
    next_url = "https://example.com/next"
    release = threading.Event()

    class SlowSession(fake_session):
        def __init__(self, responses):
            super().__init__(responses)
            self.started = []
            self.active = 0
            self.max_active = 0

        def get(self, url, timeout=None, headers=None):
            self.started.append(url)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            try:
                if url == slow_url:
                    release.wait(5)
                return super().get(url, timeout, headers)
            finally:
                self.active -= 1

    session = SlowSession([fake_response(slow_url), fake_response(next_url, text="next")])
    fetcher = StaticFetcher(HttpClient(session))

    async def scenario():
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(fetcher.fetch(slow_url), timeout=0.05)
        second = asyncio.ensure_future(fetcher.fetch(next_url))
        await asyncio.sleep(0.1)
        waiting = list(session.started)
        release.set()
        return waiting, await second

    waiting, result = asyncio.run(scenario())

    assert waiting == [slow_url]
    assert result.html == "next"
    assert session.started == [slow_url, next_url]
    assert session.max_active == 1
