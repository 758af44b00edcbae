from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Sequence

from .config import CrawlConfig
from .constants import CHUNK_PAD, CHUNK_PREFIX, CHUNKS_DIR, FULL_MD
from .manifest import PageRecord

logger = logging.getLogger(__name__)

SECTION_SEPARATOR = "\n\n---\n\n"


def strip_frontmatter(markdown: str) -> str:
    lines = markdown.split("\n")
    if not lines or lines[0].strip() != "---":
        return markdown
    for i in range(1, len(lines)):
        if lines[i].strip() == "---":
            return "\n".join(lines[i + 1 :]).lstrip("\n")
    return markdown


def strip_title(markdown: str) -> str:
    """Drop frontmatter and a leading H1 (plus the blank lines after it)."""

    lines = strip_frontmatter(markdown).split("\n")
    if lines and lines[0].startswith("# "):
        lines.pop(0)
        while lines and not lines[0].strip():
            lines.pop(0)
    return "\n".join(lines)


def build_merged(pages: Sequence[PageRecord], contents: Mapping[str, str]) -> str:
    sections = []
    for page in pages:
        body = strip_title(contents.get(page.file, ""))
        sections.append(f"# {page.title or page.url}\n\n> Source: {page.url}\n\n{body}")
    return SECTION_SEPARATOR.join(sections)


def _is_fence(line: str) -> bool:
    stripped = line.lstrip()
    return stripped.startswith("```") or stripped.startswith("~~~")


def chunk_markdown(text: str) -> list[str]:
    """Split a document at top-level ``# `` headings.

    Headings inside fenced code blocks do not split. Text before the first
    heading stays with the first chunk.
    """

    if not text.strip():
        return []

    chunks: list[list[str]] = [[]]
    in_fence = False
    has_heading = False
    for line in text.split("\n"):
        if _is_fence(line):
            in_fence = not in_fence
        elif not in_fence and line.startswith("# "):
            if has_heading:
                chunks.append([])
            has_heading = True
        chunks[-1].append(line)

    out = ["\n".join(c).strip() for c in chunks]
    return [c for c in out if c]


def write_chunks(chunks: Sequence[str], out_dir: Path) -> list[Path]:
    chunks_dir = out_dir / CHUNKS_DIR
    chunks_dir.mkdir(parents=True, exist_ok=True)
    for stale in chunks_dir.glob(f"{CHUNK_PREFIX}*.md"):
        stale.unlink()

    written: list[Path] = []
    for i, chunk in enumerate(chunks, start=1):
        path = chunks_dir / f"{CHUNK_PREFIX}{i:0{CHUNK_PAD}d}.md"
        path.write_text(chunk, encoding="utf-8", newline="\n")
        written.append(path)
    return written


class PostProcessor:
    """Builds ``full.md`` and chunk files once the crawl is done."""

    def __init__(self, config: CrawlConfig, out_dir: Path) -> None:
        self.config = config
        self.out_dir = out_dir

    def _load_contents(
        self, pages: Sequence[PageRecord], contents: Mapping[str, str]
    ) -> dict[str, str]:
        loaded: dict[str, str] = {}
        for page in pages:
            if not self.config.pages and page.file in contents:
                loaded[page.file] = contents[page.file]
                continue
            path = self.out_dir / page.file
            if path.is_file():
                loaded[page.file] = path.read_text(encoding="utf-8")
            elif page.file in contents:
                loaded[page.file] = contents[page.file]
            else:
                logger.warning("Page content missing for %s (%s)", page.url, page.file)
        return loaded

    def process(
        self, pages: Sequence[PageRecord], contents: Mapping[str, str]
    ) -> None:
        if not pages:
            logger.info("No pages crawled; skipping merge and chunking")
            return
        if not (self.config.merge or self.config.chunks):
            return

        merged = build_merged(pages, self._load_contents(pages, contents))

        if self.config.merge:
            path = self.out_dir / FULL_MD
            path.write_text(merged, encoding="utf-8", newline="\n")
            logger.info("Wrote %s", path)

        if self.config.chunks:
            written = write_chunks(chunk_markdown(merged), self.out_dir)
            logger.info("Wrote %d chunks to %s", len(written), self.out_dir / CHUNKS_DIR)
