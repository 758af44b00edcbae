from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from .constants import SPEC_PATTERNS
from .manifest import PageMetadata

_HYPERTEXT_TYPES = {"text/html", "application/xhtml+xml"}

_BOILERPLATE_TAGS = ["script", "style", "noscript", "nav", "header", "footer", "aside"]

_MAIN_SELECTORS = (
    "main",
    "article",
    "div[role='main']",
    "[role='main']",
    ".content",
    "#content",
    "div[role='document']",
)


def looks_like_html(data: str) -> bool:
    head = data[:2048].lstrip().lower()
    return head.startswith("<") and (
        "<html" in head or "<!doctype" in head or "<head" in head
    )


def is_hypertext(content_type: str | None) -> bool:
    if not content_type:
        return False
    ct = content_type.split(";", 1)[0].strip().lower()
    return ct in _HYPERTEXT_TYPES


def detect_spec_kind(url: str) -> str | None:
    """Match a URL against the known API-spec signatures.

    Returns the spec type tag (``openapi``, ``jsonSchema``, ``graphql``) or
    None.
    """

    path = urlparse(url).path
    for kind, pattern in SPEC_PATTERNS.items():
        if pattern.search(path):
            return kind
    return None


def spec_filename(url: str) -> str:
    name = urlparse(url).path.rstrip("/").rsplit("/", 1)[-1]
    return name or "spec"


def _meta(soup: BeautifulSoup, name: str) -> str | None:
    for attr in ("name", "property"):
        el = soup.find("meta", attrs={attr: name})
        if el is not None:
            content = str(el.get("content") or "").strip()
            if content:
                return content
    return None


def extract_metadata(html: str) -> PageMetadata:
    soup = BeautifulSoup(html, "html.parser")
    title = None
    if soup.title and soup.title.get_text(strip=True):
        title = soup.title.get_text(" ", strip=True)
    return PageMetadata(
        title=title,
        description=_meta(soup, "description") or _meta(soup, "og:description"),
        keywords=_meta(soup, "keywords"),
        author=_meta(soup, "author"),
        og_title=_meta(soup, "og:title"),
        og_type=_meta(soup, "og:type"),
    )


@dataclass(frozen=True)
class ExtractedContent:
    title: str | None
    html: str | None


def _pick_main_content(soup: BeautifulSoup):
    for selector in _MAIN_SELECTORS:
        node = soup.select_one(selector)
        if node and node.get_text(strip=True):
            return node

    best = None
    best_len = 0
    for div in soup.find_all("div"):
        text_len = len(div.get_text(" ", strip=True))
        if text_len > best_len:
            best = div
            best_len = text_len
    return best or soup.body or soup


def extract_content(html: str) -> ExtractedContent:
    """Main content HTML plus the page's own heading title."""

    soup = BeautifulSoup(html, "html.parser")
    title = None
    h1 = soup.find("h1")
    if h1 and h1.get_text(strip=True):
        title = h1.get_text(" ", strip=True)
    elif soup.title and soup.title.get_text(strip=True):
        title = soup.title.get_text(" ", strip=True)

    for tag_name in _BOILERPLATE_TAGS:
        for t in soup.find_all(tag_name):
            t.decompose()

    main = _pick_main_content(soup)
    if main is None or not main.get_text(strip=True):
        return ExtractedContent(title=title, html=None)
    return ExtractedContent(title=title, html=str(main))
