from __future__ import annotations

import asyncio
import enum
import logging
from collections import Counter
from typing import Callable

from .config import CrawlConfig
from .constants import INDEX_JSON
from .content import extract_content, extract_metadata, is_hypertext
from .convert.html_to_md import html_to_markdown
from .errors import CrawlError, DependencyError, FetchError, FetchTimeoutError
from .fetchers import Fetcher, FetchResult, build_fetcher
from .manifest import CrawlIndex, read_index
from .postprocess import PostProcessor
from .robots import RobotsRules
from .state import DiffStore, compute_hash
from .urls import UrlScope, extract_links, normalize_url
from .writer import OutputWriter, build_frontmatter, make_run_id

logger = logging.getLogger(__name__)

FetcherFactory = Callable[[CrawlConfig], Fetcher]


class RunState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Crawler:
    """Depth-first, depth-bounded crawl of one documentation site.

    One URL is fetched at a time. Pages are written through an
    :class:`OutputWriter` as they are visited; the index, the merged
    document and chunks are produced after traversal, and the output is
    committed last.
    """

    def __init__(
        self,
        config: CrawlConfig,
        *,
        fetcher: Fetcher | None = None,
        fetcher_factory: FetcherFactory | None = None,
        run_id: str | None = None,
    ) -> None:
        self.config = config
        self.run_id = run_id or make_run_id()
        self.start_url = normalize_url(config.start_url)
        self.state = RunState.IDLE

        self._fetcher = fetcher
        self._fetcher_factory = fetcher_factory or build_fetcher
        self._fetcher_closed = False

        self.scope = UrlScope(
            base_url=self.start_url,
            same_domain=config.same_domain,
            include=config.include_pattern,
            exclude=config.exclude_pattern,
        )
        self.robots = RobotsRules.allow_all()
        self.diff_store = DiffStore()
        self.writer: OutputWriter | None = None

        self.visited: set[str] = set()
        self.unchanged: set[str] = set()
        self.page_contents: dict[str, str] = {}
        self.stats: Counter[str] = Counter()
        self._page_count = 0
        self._fetched_any = False
        self._stop_requested = False

    @property
    def page_count(self) -> int:
        return self._page_count

    def request_stop(self) -> None:
        """Stop before the next fetch; the current one is allowed to finish."""

        self._stop_requested = True

    def _get_fetcher(self) -> Fetcher:
        if self._fetcher_closed:
            raise CrawlError("Fetcher already closed")
        if self._fetcher is None:
            self._fetcher = self._fetcher_factory(self.config)
        return self._fetcher

    async def cleanup(self) -> None:
        """Close the fetch backend. Safe to call more than once."""

        if self._fetcher_closed:
            return
        self._fetcher_closed = True
        if self._fetcher is None:
            return
        try:
            await self._fetcher.close()
        except Exception as e:  # noqa: BLE001 - closing must not mask the crawl result
            logger.warning("Failed to close fetcher: %s", e)

    async def _fetch(self, url: str) -> FetchResult | None:
        fetcher = self._get_fetcher()
        timeout_s = self.config.timeout_s
        try:
            return await asyncio.wait_for(fetcher.fetch(url), timeout=timeout_s)
        except asyncio.TimeoutError as e:
            raise FetchTimeoutError(f"Timed out after {timeout_s}s: {url}", timeout_s) from e

    async def _load_robots(self) -> None:
        if not self.config.respect_robots:
            return
        robots_url = RobotsRules.robots_url(self.start_url)
        if robots_url is None:
            return
        try:
            result = await self._fetch(robots_url)
        except DependencyError:
            raise
        except Exception as e:  # noqa: BLE001 - unreachable robots.txt allows everything
            logger.debug("robots.txt unavailable (%s): %s", robots_url, e)
            return
        if result is None or not result.html.strip():
            logger.debug("robots.txt not found at %s", robots_url)
            return
        self.robots = RobotsRules(result.html, user_agent=self.config.user_agent)
        logger.debug("Loaded robots.txt from %s", robots_url)

    async def run(self) -> CrawlIndex:
        if self.state is not RunState.IDLE:
            raise CrawlError(f"Crawler cannot run from state {self.state.value}")
        self.state = RunState.RUNNING
        cfg = self.config

        logger.info("Crawling %s", self.start_url)
        logger.info(
            "depth=%d max_pages=%s output=%s same_domain=%s diff=%s "
            "pages=%s merge=%s chunks=%s",
            cfg.max_depth,
            cfg.max_pages if cfg.max_pages is not None else "unlimited",
            cfg.output_dir,
            cfg.same_domain,
            cfg.diff,
            cfg.pages,
            cfg.merge,
            cfg.chunks,
        )

        previous = None
        if cfg.diff:
            previous = read_index(cfg.output_dir / INDEX_JSON)
            self.diff_store = DiffStore.from_index(previous)
            if len(self.diff_store):
                logger.info("Loaded %d existing page hashes", len(self.diff_store))

        self.writer = OutputWriter(cfg, self.run_id, previous=previous)
        try:
            try:
                await self._load_robots()
                await self._traverse()
            finally:
                await self.cleanup()

            index_path = self.writer.save_index(self.unchanged)
            result = self.writer.result
            PostProcessor(cfg, self.writer.work_dir).process(
                result.pages, self.page_contents
            )
            self.writer.finalize()
        except asyncio.CancelledError:
            self.state = RunState.CANCELLED
            logger.warning("Crawl cancelled; partial output left in %s", self.writer.work_dir)
            raise
        except Exception:
            self.state = RunState.FAILED
            self.writer.cleanup()
            raise

        self.state = RunState.COMPLETED
        logger.info(
            "Crawl complete: %d pages, %d specs, %d skipped (unchanged), "
            "%d errors, %d blocked by robots.txt",
            result.total_pages,
            len(result.specs),
            self.stats["skipped"],
            self.stats["errors"],
            self.stats["robots_blocked"],
        )
        logger.info("Index: %s", cfg.output_dir / index_path.name)
        return result

    async def _traverse(self) -> None:
        cfg = self.config
        stack: list[tuple[str, int]] = [(self.start_url, 0)]

        while stack:
            if self._stop_requested:
                logger.info("Stop requested; ending traversal")
                break
            url, depth = stack.pop()
            if url in self.visited:
                continue
            if depth > cfg.max_depth:
                continue
            if cfg.max_pages is not None and self._page_count >= cfg.max_pages:
                logger.info("Reached max pages limit (%d); stopping crawl", cfg.max_pages)
                break
            self.visited.add(url)

            if cfg.respect_robots and not self.robots.is_allowed(url):
                self.stats["robots_blocked"] += 1
                logger.info("Blocked by robots.txt: %s", url)
                continue

            links = await self._visit(url, depth)

            if depth < cfg.max_depth:
                for link in reversed(links):
                    if link not in self.visited:
                        stack.append((link, depth + 1))

    async def _visit(self, url: str, depth: int) -> list[str]:
        if self._fetched_any and self.config.delay_s > 0:
            await asyncio.sleep(self.config.delay_s)
        self._fetched_any = True

        logger.info("%s-> [%d] %s", "  " * depth, depth, url)
        try:
            result = await self._fetch(url)
        except DependencyError:
            raise
        except (FetchError, FetchTimeoutError) as e:
            self.stats["errors"] += 1
            logger.warning("Failed to fetch %s: %s", url, e.message)
            return []
        except Exception as e:  # noqa: BLE001 - one bad page must not end the crawl
            self.stats["errors"] += 1
            logger.warning("Failed to fetch %s: %s", url, e)
            return []

        if result is None:
            self.stats["errors"] += 1
            logger.warning("No content for %s", url)
            return []
        self.stats["fetched"] += 1

        if not is_hypertext(result.content_type):
            spec = self.writer.save_spec(url, result.html)
            if spec is not None:
                self.stats["specs"] += 1
                logger.info("Saved %s spec: %s", spec.type, spec.file)
            else:
                logger.debug("Ignoring %s content at %s", result.content_type, url)
            return []

        return self._process_page(url, depth, result)

    def _process_page(self, url: str, depth: int, result: FetchResult) -> list[str]:
        html = result.html
        metadata = extract_metadata(html)
        extracted = extract_content(html)
        links = extract_links(
            html,
            page_url=result.final_url or url,
            scope=self.scope,
            visited=self.visited,
        )
        markdown = html_to_markdown(extracted.html) if extracted.html else ""
        page_hash = compute_hash(markdown)
        title = metadata.title or extracted.title
        self._page_count += 1

        indent = "  " * depth
        if self.config.diff and not self.diff_store.is_changed(url, page_hash):
            self.stats["skipped"] += 1
            self.unchanged.add(url)
            logger.info("%s  Skipped (unchanged)", indent)
            return links

        if self.config.pages:
            record = self.writer.save_page(
                url,
                markdown,
                depth=depth,
                links=links,
                metadata=metadata,
                title=title,
                hash=page_hash,
            )
            action = "Saved"
        else:
            record = self.writer.register_page(
                url,
                depth=depth,
                links=links,
                metadata=metadata,
                title=title,
                hash=page_hash,
            )
            frontmatter = build_frontmatter(
                url=url,
                title=title,
                metadata=metadata,
                crawled_at=record.crawled_at,
                depth=depth,
                hash=page_hash,
            )
            self.page_contents[record.file] = frontmatter + markdown
            action = "Cached"

        self.stats["saved"] += 1
        logger.info("%s  %s: %s (%d links found)", indent, action, record.file, len(links))
        return links
