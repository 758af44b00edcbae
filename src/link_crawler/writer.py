from __future__ import annotations

import logging
import os
import re
import shutil
import time
from pathlib import Path

from .config import CrawlConfig
from .constants import (
    BACKUP_SUFFIX,
    INDEX_JSON,
    PAGE_PAD,
    PAGE_PREFIX,
    PAGES_DIR,
    SPECS_DIR,
    WORK_DIR_INFIX,
)
from .content import detect_spec_kind, spec_filename
from .manifest import CrawlIndex, PageMetadata, PageRecord, SpecRecord, utc_iso
from .state import compute_hash
from .urls import slugify_title

logger = logging.getLogger(__name__)

_PAGE_NUMBER_RE = re.compile(rf"{re.escape(PAGE_PREFIX)}(\d+)")


def make_run_id() -> str:
    return f"{os.getpid()}-{int(time.time() * 1000)}"


def _quote(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def build_frontmatter(
    *,
    url: str,
    title: str | None,
    metadata: PageMetadata,
    crawled_at: str,
    depth: int,
    hash: str,
) -> str:
    lines = [
        "---",
        f"url: {_quote(url)}",
        f"title: {_quote(metadata.title or title or '')}",
    ]
    if metadata.description:
        lines.append(f"description: {_quote(metadata.description)}")
    if metadata.keywords:
        lines.append(f"keywords: {_quote(metadata.keywords)}")
    lines += [
        f"crawledAt: {crawled_at}",
        f"depth: {depth}",
        f"hash: {hash}",
        "---",
        "",
        "",
    ]
    return "\n".join(lines)


def page_filename(number: int, title: str | None) -> str:
    """``pages/page-NNN[-slug].md``"""

    slug = slugify_title(title)
    stem = f"{PAGE_PREFIX}{number:0{PAGE_PAD}d}"
    if slug:
        stem = f"{stem}-{slug}"
    return f"{PAGES_DIR}/{stem}.md"


def _page_number(file: str) -> int:
    m = _PAGE_NUMBER_RE.search(Path(file).name)
    return int(m.group(1)) if m else 0


class OutputWriter:
    """Writes one crawl run and commits it to ``output_dir``.

    A normal run builds everything in a sibling working directory
    (``<output>.tmp-<run_id>``) and swaps it in on :meth:`finalize`, keeping
    the previous output as ``<output>.bak`` until the swap succeeded. Diff
    runs update ``output_dir`` in place, reusing the prior page files.
    """

    def __init__(
        self,
        config: CrawlConfig,
        run_id: str,
        *,
        previous: CrawlIndex | None = None,
    ) -> None:
        self.config = config
        self.output_dir = Path(config.output_dir)
        self.diff_mode = config.diff
        self.backup_dir = self.output_dir.with_name(self.output_dir.name + BACKUP_SUFFIX)

        if self.diff_mode:
            self._work_dir = self.output_dir
        else:
            self._work_dir = self.output_dir.with_name(
                f"{self.output_dir.name}{WORK_DIR_INFIX}{run_id}"
            )
            if self._work_dir.exists():
                shutil.rmtree(self._work_dir)
        self._work_dir.mkdir(parents=True, exist_ok=True)

        self._index = CrawlIndex(base_url=config.start_url, config=config.echo())

        self._previous = previous if self.diff_mode else None
        self._prior_files: dict[str, str] = {}
        self._page_counter = 0
        if self._previous is not None:
            for page in self._previous.pages:
                if page.file:
                    self._prior_files[page.url] = page.file
                    self._page_counter = max(self._page_counter, _page_number(page.file))

        self._finalized = False

    @property
    def work_dir(self) -> Path:
        return self._work_dir

    @property
    def next_page_number(self) -> int:
        return self._page_counter + 1

    @property
    def result(self) -> CrawlIndex:
        return self._index

    def _allocate_file(self, url: str, title: str | None) -> str:
        prior = self._prior_files.get(url)
        if prior:
            return prior
        self._page_counter += 1
        return page_filename(self._page_counter, title)

    def register_page(
        self,
        url: str,
        *,
        depth: int,
        links: list[str] | tuple[str, ...],
        metadata: PageMetadata,
        title: str | None,
        hash: str,
        file: str | None = None,
        crawled_at: str | None = None,
    ) -> PageRecord:
        """Record a page in the index without writing a page file."""

        record = PageRecord(
            url=url,
            title=title,
            file=file or self._allocate_file(url, title),
            depth=depth,
            links=tuple(links),
            metadata=metadata,
            hash=hash,
            crawled_at=crawled_at or utc_iso(),
        )
        self._index.pages.append(record)
        return record

    def save_page(
        self,
        url: str,
        markdown: str,
        *,
        depth: int,
        links: list[str] | tuple[str, ...],
        metadata: PageMetadata,
        title: str | None,
        hash: str | None = None,
    ) -> PageRecord:
        page_hash = hash or compute_hash(markdown)
        crawled_at = utc_iso()
        file = self._allocate_file(url, title)

        path = self._work_dir / file
        path.parent.mkdir(parents=True, exist_ok=True)
        frontmatter = build_frontmatter(
            url=url,
            title=title,
            metadata=metadata,
            crawled_at=crawled_at,
            depth=depth,
            hash=page_hash,
        )
        path.write_text(frontmatter + markdown, encoding="utf-8", newline="\n")

        return self.register_page(
            url,
            depth=depth,
            links=links,
            metadata=metadata,
            title=title,
            hash=page_hash,
            file=file,
            crawled_at=crawled_at,
        )

    def save_spec(self, url: str, content: str) -> SpecRecord | None:
        kind = detect_spec_kind(url)
        if kind is None:
            return None
        file = f"{SPECS_DIR}/{spec_filename(url)}"
        path = self._work_dir / file
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8", newline="\n")

        record = SpecRecord(url=url, type=kind, file=file)
        self._index.specs = [s for s in self._index.specs if s.url != url]
        self._index.specs.append(record)
        return record

    def save_index(self, unchanged: set[str] | None = None) -> Path:
        if self._previous is not None:
            merged = self._index.merge_previous(
                self._previous.pages, unchanged=unchanged
            )
            if merged:
                logger.debug("Carried forward %d unchanged page records", merged)
        return self._index.write(self._work_dir / INDEX_JSON)

    def finalize(self) -> Path:
        """Promote the working directory to ``output_dir``."""

        if self.diff_mode or self._finalized:
            return self.output_dir

        # An earlier run died between the two renames below.
        if self.backup_dir.exists() and not self.output_dir.exists():
            try:
                os.rename(self.backup_dir, self.output_dir)
                logger.warning("Recovered previous output from %s", self.backup_dir)
            except OSError as e:
                logger.warning("Failed to recover %s: %s", self.backup_dir, e)

        had_previous = self.output_dir.exists()
        if had_previous:
            if self.backup_dir.exists():
                shutil.rmtree(self.backup_dir)
            os.rename(self.output_dir, self.backup_dir)

        try:
            os.rename(self._work_dir, self.output_dir)
        except OSError:
            if had_previous and not self.output_dir.exists():
                try:
                    os.rename(self.backup_dir, self.output_dir)
                except OSError as restore_error:
                    logger.error(
                        "Failed to restore %s: %s", self.backup_dir, restore_error
                    )
            raise

        self._finalized = True
        if had_previous:
            try:
                shutil.rmtree(self.backup_dir)
            except OSError as e:
                logger.warning("Failed to remove backup %s: %s", self.backup_dir, e)

        return self.output_dir

    def cleanup(self) -> None:
        """Discard the working directory; the previous output is untouched."""

        if self.diff_mode or self._finalized:
            return
        try:
            if self._work_dir.exists():
                shutil.rmtree(self._work_dir)
        except OSError as e:
            logger.warning("Failed to remove working directory %s: %s", self._work_dir, e)
