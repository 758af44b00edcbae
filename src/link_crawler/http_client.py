from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

import requests
from requests import exceptions as req_exc

from . import __version__
from .errors import FetchError

logger = logging.getLogger(__name__)

TRANSIENT_HTTP_STATUSES = {429, 500, 502, 503, 504}

DEFAULT_HEADERS = {
    "User-Agent": f"link-crawler/{__version__} (+https://pypi.org/project/link-crawler/)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


def _retry_after_seconds(headers: dict[str, str]) -> float | None:
    retry_after = headers.get("Retry-After")
    if not retry_after:
        return None
    try:
        return float(retry_after)
    except ValueError:
        return None


@dataclass(frozen=True)
class HttpResponse:
    url: str
    final_url: str
    status_code: int
    headers: dict[str, str]
    fetched_at: float
    text: str

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class HttpClient:
    def __init__(
        self,
        session: requests.Session,
        *,
        timeout_s: float = 30,
        max_retries: int = 2,
        backoff_base_s: float = 1.0,
    ) -> None:
        self._session = session
        self._timeout_s = timeout_s
        self._max_retries = max_retries
        self._backoff_base_s = backoff_base_s
        # Held for a whole retry loop; a timed-out caller leaves its worker
        # thread running, and the next request must wait for it.
        self._lock = threading.Lock()

    def get(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
    ) -> HttpResponse:
        merged_headers = dict(DEFAULT_HEADERS)
        merged_headers.update(headers or {})
        with self._lock:
            return self._get(url, merged_headers)

    def _get(self, url: str, merged_headers: dict[str, str]) -> HttpResponse:
        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                resp = self._session.get(
                    url, timeout=self._timeout_s, headers=merged_headers
                )

                if (
                    resp.status_code in TRANSIENT_HTTP_STATUSES
                    and attempt < self._max_retries
                ):
                    retry_after = _retry_after_seconds(dict(resp.headers))
                    wait_s = (
                        retry_after
                        if retry_after is not None
                        else self._backoff_base_s * (2**attempt)
                    )
                    logger.debug(
                        "HTTP %s for %s, retrying in %.1fs",
                        resp.status_code,
                        url,
                        wait_s,
                    )
                    time.sleep(wait_s)
                    continue

                return HttpResponse(
                    url=url,
                    final_url=str(resp.url),
                    status_code=int(resp.status_code),
                    headers={k: str(v) for k, v in resp.headers.items()},
                    fetched_at=time.time(),
                    text=resp.text,
                )
            except req_exc.RequestException as e:
                last_error = e
                if attempt >= self._max_retries:
                    break
                time.sleep(self._backoff_base_s * (2**attempt))

        raise FetchError(f"Failed to fetch {url}: {last_error}", url)

    def close(self) -> None:
        self._session.close()
