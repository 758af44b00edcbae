"""Tests for the retrying HTTP client."""

import pytest
from requests import exceptions as req_exc

from link_crawler.errors import FetchError
from link_crawler.http_client import HttpClient


def test_retries_transient_status(monkeypatch, fake_session, fake_response):
    sleeps = []
    monkeypatch.setattr("link_crawler.http_client.time.sleep", sleeps.append)
    session = fake_session(
        [
            fake_response("https://example.com", status_code=503, headers={"Retry-After": "3"}),
            fake_response("https://example.com", status_code=200, text="ok"),
        ]
    )

    resp = HttpClient(session, max_retries=2).get("https://example.com")

    assert resp.status_code == 200
    assert resp.text == "ok"
    assert sleeps == [3.0]


def test_backoff_then_fetch_error(monkeypatch, fake_session):
    sleeps = []
    monkeypatch.setattr("link_crawler.http_client.time.sleep", sleeps.append)
    session = fake_session([req_exc.ConnectionError("refused")] * 3)

    with pytest.raises(FetchError) as exc_info:
        HttpClient(session, max_retries=2, backoff_base_s=1.0).get("https://example.com")

    assert exc_info.value.url == "https://example.com"
    assert sleeps == [1.0, 2.0]
    assert len(session.requested) == 3


def test_last_transient_status_is_returned(monkeypatch, fake_session, fake_response):
    monkeypatch.setattr("link_crawler.http_client.time.sleep", lambda s: None)
    session = fake_session([fake_response("https://example.com", status_code=429)])

    resp = HttpClient(session, max_retries=0).get("https://example.com")

    assert resp.status_code == 429
    assert resp.ok is False


def test_content_type_lookup_is_case_insensitive(fake_session, fake_response):
    session = fake_session(
        [fake_response("https://example.com", headers={"content-type": "application/json"})]
    )

    resp = HttpClient(session).get("https://example.com")

    assert resp.content_type == "application/json"
