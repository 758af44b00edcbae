from __future__ import annotations

import re

from bs4 import BeautifulSoup
from markdownify import MarkdownConverter

_LANGUAGE_CLASS_PATTERNS = (
    re.compile(r"language-([\w+#-]+)"),
    re.compile(r"lang-([\w+#-]+)"),
)

# Line-number gutters emitted by common highlighters (Torchlight, hljs, ...).
_LINE_NUMBER_SELECTORS = (
    ".line-number",
    ".linenumber",
    "[data-line-number]",
    "td.hljs-ln-numbers",
)

_EMPTY_BRACKET_LINK_RE = re.compile(r"\[\\\[\s*\\\]\]\([^)]*\)")


def _class_list(el) -> list[str]:
    classes = el.get("class") or []
    if isinstance(classes, str):
        return classes.split()
    return list(classes)


def _language_from_classes(el) -> str | None:
    for cls in _class_list(el):
        for pattern in _LANGUAGE_CLASS_PATTERNS:
            m = pattern.search(cls)
            if m:
                return m.group(1)
    return None


def detect_code_language(el) -> str | None:
    """Language of a ``<pre>`` block from data attributes or class names."""

    for candidate in (el, el.parent):
        if candidate is None or not hasattr(candidate, "get"):
            continue
        lang = candidate.get("data-language") or candidate.get("data-lang")
        if lang:
            return str(lang)
        lang = _language_from_classes(candidate)
        if lang:
            return lang

    code = el.find("code")
    if code is not None:
        lang = code.get("data-language") or _language_from_classes(code)
        if lang:
            return str(lang)
    return None


class _DocsConverter(MarkdownConverter):
    def convert_a(self, el, text, *args, **kwargs):
        if not (text or "").strip():
            return ""
        return super().convert_a(el, text, *args, **kwargs)


def _clean_soup_inplace(soup: BeautifulSoup) -> None:
    for tag_name in ["script", "style", "noscript"]:
        for t in soup.find_all(tag_name):
            t.decompose()
    for selector in _LINE_NUMBER_SELECTORS:
        for t in soup.select(selector):
            t.decompose()


def html_to_markdown(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    _clean_soup_inplace(soup)
    markdown = _DocsConverter(
        heading_style="ATX",
        bullets="-",
        code_language_callback=lambda el: detect_code_language(el) or "",
    ).convert_soup(soup)
    markdown = _EMPTY_BRACKET_LINK_RE.sub("", markdown)
    markdown = "\n".join(line.rstrip() for line in markdown.splitlines())
    markdown = re.sub(r"\n{3,}", "\n\n", markdown)
    return markdown.strip()
