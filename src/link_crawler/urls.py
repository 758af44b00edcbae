from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import ParseResult, urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup

from .constants import PAGE_SLUG_MAX_LEN

_SKIP_HREF_PREFIXES = (
    "#",
    "javascript:",
    "mailto:",
    "tel:",
    "data:",
    "blob:",
    "ftp:",
)


def normalize_url(raw_url: str) -> str:
    """Normalize a URL for de-duplication.

    - Lowercases scheme + hostname.
    - Strips fragments.
    """

    parsed: ParseResult = urlparse(raw_url)
    parsed = parsed._replace(
        scheme=(parsed.scheme or "").lower(),
        netloc=(parsed.netloc or "").lower(),
        fragment="",
    )
    return urlunparse(parsed)


_ASSET_EXTS = {
    ".css",
    ".js",
    ".mjs",
    ".map",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".webp",
    ".svg",
    ".ico",
    ".woff",
    ".woff2",
    ".ttf",
    ".otf",
    ".eot",
    ".pdf",
    ".zip",
    ".tar",
    ".gz",
    ".tgz",
    ".mp3",
    ".mp4",
}


def is_asset_intent_url(url: str) -> bool:
    path = urlparse(url).path.lower()
    return any(path.endswith(ext) for ext in _ASSET_EXTS)


def slugify_title(text: str | None, *, max_len: int = PAGE_SLUG_MAX_LEN) -> str:
    """ASCII slug for page file names; empty when nothing usable remains."""

    text = (text or "").strip().lower()
    text = re.sub(r"[^a-z0-9\s_-]+", "", text)
    text = re.sub(r"[\s_]+", "-", text)
    text = re.sub(r"-+", "-", text).strip("-")
    return text[:max_len].strip("-")


_KNOWN_SUBDOMAIN_RE = re.compile(r"^(docs?|api|www|blog|dev|stage|staging)\.")
_MULTI_TLD_RE = re.compile(r"\.(co|com|ac|gov|org|net)\.[a-z]{2,}$", re.IGNORECASE)
_TLD_RE = re.compile(r"\.[a-z]{2,}$", re.IGNORECASE)


def generate_site_name(url: str) -> str:
    """Filesystem-safe site name used for the default output directory.

    https://nextjs.org/docs -> nextjs-docs
    https://docs.example.com/api -> example-api
    """

    try:
        parsed = urlparse(url)
    except ValueError:
        return "site"
    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    host = _KNOWN_SUBDOMAIN_RE.sub("", host)
    host = _MULTI_TLD_RE.sub("", host)
    host = _TLD_RE.sub("", host)

    segments = [s for s in (parsed.path or "").split("/") if s]
    name = f"{host}-{segments[0]}" if segments else host
    name = re.sub(r"[^a-zA-Z0-9-]", "-", name)
    name = re.sub(r"-+", "-", name).strip("-")
    return name or "site"


def is_same_host(url: str, base_url: str) -> bool:
    try:
        host = urlparse(url).hostname
        base = urlparse(base_url).hostname
    except ValueError:
        return False
    return bool(host) and host == base


@dataclass(frozen=True)
class UrlScope:
    base_url: str
    same_domain: bool = True
    include: re.Pattern[str] | None = None
    exclude: re.Pattern[str] | None = None

    def is_allowed(self, url: str) -> bool:
        if self.same_domain and not is_same_host(url, self.base_url):
            return False
        if self.include is not None and not self.include.search(url):
            return False
        if self.exclude is not None and self.exclude.search(url):
            return False
        if is_asset_intent_url(url):
            return False
        return True


def extract_links(
    html: str,
    *,
    page_url: str,
    scope: UrlScope | None = None,
    visited: set[str] | frozenset[str] = frozenset(),
) -> list[str]:
    """Absolute outbound links in document order, deduplicated.

    Links already in ``visited`` or outside ``scope`` are dropped.
    """

    soup = BeautifulSoup(html, "html.parser")

    def _attr_text(val: object) -> str:
        if isinstance(val, list):
            if not val:
                return ""
            return str(val[0])
        return str(val or "")

    base_href = None
    base = soup.find("base")
    if base is not None:
        base_href = _attr_text(base.get("href")).strip() or None

    effective_base = page_url
    if base_href is not None:
        effective_base = urljoin(page_url, base_href)

    out: dict[str, None] = {}
    for a in soup.select("a[href]"):
        href = _attr_text(a.get("href")).strip()
        if not href:
            continue
        if href.lower().startswith(_SKIP_HREF_PREFIXES):
            continue
        try:
            abs_url = normalize_url(urljoin(effective_base, href))
        except ValueError:
            continue
        if urlparse(abs_url).scheme not in {"http", "https"}:
            continue
        if abs_url in visited:
            continue
        if scope is not None and not scope.is_allowed(abs_url):
            continue
        out.setdefault(abs_url, None)

    return list(out)
