from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

logger = logging.getLogger(__name__)


def utc_iso() -> str:
    return (
        datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    )


def relpath_posix(path: Path, base_dir: Path) -> str:
    rel = path.relative_to(base_dir)
    return rel.as_posix()


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


@dataclass(frozen=True)
class PageMetadata:
    title: str | None = None
    description: str | None = None
    keywords: str | None = None
    author: str | None = None
    og_title: str | None = None
    og_type: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "title": self.title,
            "description": self.description,
            "keywords": self.keywords,
            "author": self.author,
            "ogTitle": self.og_title,
            "ogType": self.og_type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "PageMetadata":
        data = data or {}
        return cls(
            title=_opt_str(data.get("title")),
            description=_opt_str(data.get("description")),
            keywords=_opt_str(data.get("keywords")),
            author=_opt_str(data.get("author")),
            og_title=_opt_str(data.get("ogTitle")),
            og_type=_opt_str(data.get("ogType")),
        )


@dataclass(frozen=True)
class PageRecord:
    url: str
    title: str | None
    file: str
    depth: int
    links: tuple[str, ...]
    metadata: PageMetadata
    hash: str
    crawled_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "file": self.file,
            "depth": self.depth,
            "links": list(self.links),
            "metadata": self.metadata.to_dict(),
            "hash": self.hash,
            "crawledAt": self.crawled_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PageRecord":
        return cls(
            url=str(data["url"]),
            title=_opt_str(data.get("title")),
            file=str(data.get("file") or ""),
            depth=int(data.get("depth") or 0),
            links=tuple(str(u) for u in (data.get("links") or [])),
            metadata=PageMetadata.from_dict(data.get("metadata")),
            hash=str(data.get("hash") or ""),
            crawled_at=str(data.get("crawledAt") or ""),
        )


@dataclass(frozen=True)
class SpecRecord:
    url: str
    type: str
    file: str

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "type": self.type, "file": self.file}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SpecRecord":
        return cls(
            url=str(data["url"]),
            type=str(data.get("type") or ""),
            file=str(data.get("file") or ""),
        )


@dataclass
class CrawlIndex:
    """The run manifest persisted as ``index.json``.

    ``total_pages`` is derived from ``pages`` and never stored separately.
    """

    base_url: str
    config: dict[str, Any] = field(default_factory=dict)
    crawled_at: str = field(default_factory=utc_iso)
    pages: list[PageRecord] = field(default_factory=list)
    specs: list[SpecRecord] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return len(self.pages)

    def page_urls(self) -> set[str]:
        return {p.url for p in self.pages}

    def merge_previous(
        self,
        previous: Iterable[PageRecord],
        *,
        unchanged: set[str] | None = None,
    ) -> int:
        """Bring forward prior-run records for pages not re-recorded this run.

        Current-run records always win. When ``unchanged`` is given, only URLs
        fetched this run and found unchanged are carried forward. Safe to call
        more than once.
        """

        present = self.page_urls()
        merged = 0
        for page in previous:
            if page.url in present:
                continue
            if unchanged is not None and page.url not in unchanged:
                continue
            self.pages.append(page)
            present.add(page.url)
            merged += 1
        return merged

    def to_dict(self) -> dict[str, Any]:
        return {
            "crawledAt": self.crawled_at,
            "baseUrl": self.base_url,
            "config": dict(self.config),
            "totalPages": self.total_pages,
            "pages": [p.to_dict() for p in self.pages],
            "specs": [s.to_dict() for s in self.specs],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CrawlIndex":
        pages = data.get("pages")
        if not isinstance(pages, list):
            raise ValueError("index.json: 'pages' must be a list")
        specs = data.get("specs")
        if not isinstance(specs, list):
            specs = []
        config = data.get("config")
        return cls(
            base_url=str(data.get("baseUrl") or ""),
            config=dict(config) if isinstance(config, dict) else {},
            crawled_at=str(data.get("crawledAt") or ""),
            pages=[PageRecord.from_dict(p) for p in pages if isinstance(p, dict)],
            specs=[SpecRecord.from_dict(s) for s in specs if isinstance(s, dict)],
        )

    def write(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
            newline="\n",
        )
        return path


def read_index(path: Path) -> CrawlIndex | None:
    """Load a prior ``index.json``.

    Returns None when the file is missing or unreadable; a malformed file is
    logged as a warning and never raised.
    """

    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("Failed to load %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.warning("Invalid index.json format at %s", path)
        return None
    try:
        return CrawlIndex.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning("Invalid index.json format at %s: %s", path, e)
        return None
