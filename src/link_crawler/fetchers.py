from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import requests

from .config import CrawlConfig
from .constants import SESSION_DIR
from .content import is_hypertext
from .errors import DependencyError, FetchError
from .http_client import HttpClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchResult:
    html: str
    final_url: str
    content_type: str
    status_code: int | None = None


class Fetcher(Protocol):
    """Single-session fetch backend.

    ``fetch`` returns None for pages that cannot be served (4xx/5xx, browser
    error pages) and raises :class:`FetchError` for backend failures.
    ``close`` must be safe to call more than once.
    """

    async def fetch(self, url: str) -> FetchResult | None: ...

    async def close(self) -> None: ...


class StaticFetcher:
    """Plain HTTP backend (no JavaScript rendering)."""

    def __init__(self, http: HttpClient) -> None:
        self._http = http
        self._closed = False

    async def fetch(self, url: str) -> FetchResult | None:
        resp = await asyncio.to_thread(self._http.get, url)
        if not resp.ok:
            logger.warning("HTTP %s: %s", resp.status_code, url)
            return None
        return FetchResult(
            html=resp.text,
            final_url=resp.final_url,
            content_type=resp.content_type,
            status_code=resp.status_code,
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._http.close()


class BrowserFetcher:
    """Playwright (chromium) backend.

    The browser is started on the first fetch and reuses one persistent
    context for the whole run. The profile directory is removed on close
    unless ``keep_session`` is set.
    """

    def __init__(
        self,
        *,
        headed: bool = False,
        render_wait_s: float = 0.0,
        timeout_s: float = 30.0,
        keep_session: bool = False,
        session_dir: Path | None = None,
    ) -> None:
        self._headed = headed
        self._render_wait_s = render_wait_s
        self._timeout_ms = int(timeout_s * 1000)
        self._keep_session = keep_session
        self._session_dir = session_dir or Path.cwd() / SESSION_DIR
        self._playwright = None
        self._context = None
        self._closed = False

    async def _ensure_started(self) -> None:
        if self._context is not None:
            return
        if self._closed:
            raise FetchError("Fetcher already closed", "")

        try:
            from playwright.async_api import Error as PlaywrightError
            from playwright.async_api import async_playwright
        except ImportError as e:
            raise DependencyError(
                "playwright not found. Install with: pip install playwright "
                "&& playwright install chromium",
                "playwright",
            ) from e

        self._playwright = await async_playwright().start()
        try:
            self._context = await self._playwright.chromium.launch_persistent_context(
                str(self._session_dir),
                headless=not self._headed,
            )
        except PlaywrightError as e:
            await self._playwright.stop()
            self._playwright = None
            raise DependencyError(
                f"chromium could not be launched ({e}). "
                "Install with: playwright install chromium",
                "chromium",
            ) from e
        logger.debug("Playwright browser started (headed=%s)", self._headed)

    async def fetch(self, url: str) -> FetchResult | None:
        await self._ensure_started()
        from playwright.async_api import Error as PlaywrightError

        page = await self._context.new_page()
        try:
            response = await page.goto(
                url, wait_until="domcontentloaded", timeout=self._timeout_ms
            )
            if page.url.startswith("chrome-error://"):
                return None
            status = response.status if response is not None else None
            if status is not None and not 200 <= status < 300:
                logger.debug("HTTP %s: %s", status, url)
                return None

            content_type = "text/html"
            if response is not None:
                content_type = response.headers.get("content-type", "text/html")

            if is_hypertext(content_type):
                if self._render_wait_s > 0:
                    await asyncio.sleep(self._render_wait_s)
                body = await page.content()
            else:
                body = await response.text()

            return FetchResult(
                html=body,
                final_url=page.url,
                content_type=content_type,
                status_code=status,
            )
        except PlaywrightError as e:
            message = str(e)
            if "ERR_HTTP_RESPONSE_CODE_FAILURE" in message or "chrome-error://" in message:
                return None
            raise FetchError(f"Failed to open page: {message}", url) from e
        finally:
            try:
                await page.close()
            except PlaywrightError as e:
                logger.debug("page.close() failed: %s", e)

    async def close(self) -> None:
        if self._closed:
            logger.debug("close() called but already closed (skipping)")
            return
        self._closed = True

        if self._context is not None:
            try:
                await self._context.close()
            except Exception as e:  # noqa: BLE001 - browser may already be gone
                logger.debug("Browser context close failed: %s", e)
            self._context = None
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:  # noqa: BLE001
                logger.debug("Playwright stop failed: %s", e)
            self._playwright = None

        if not self._keep_session and self._session_dir.exists():
            shutil.rmtree(self._session_dir, ignore_errors=True)


def build_fetcher(config: CrawlConfig) -> Fetcher:
    if config.static:
        return StaticFetcher(HttpClient(requests.Session(), timeout_s=config.timeout_s))
    return BrowserFetcher(
        headed=config.headed,
        render_wait_s=config.render_wait_s,
        timeout_s=config.timeout_s,
        keep_session=config.keep_session,
    )
