from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from . import __version__
from .config import CrawlConfig, parse_config
from .constants import (
    DEFAULT_DELAY_S,
    DEFAULT_MAX_DEPTH,
    DEFAULT_RENDER_WAIT_S,
    DEFAULT_TIMEOUT_S,
    EXIT_CRAWL_ERROR,
    EXIT_DEPENDENCY_ERROR,
    EXIT_GENERAL_ERROR,
    EXIT_INVALID_ARGUMENTS,
    EXIT_SUCCESS,
)
from .crawl import Crawler
from .errors import ConfigError, CrawlError, DependencyError, FetchError, FetchTimeoutError
from .log import setup_logging
from .signals import SignalHandler
from .writer import make_run_id

logger = logging.getLogger(__name__)


def handle_error(exc: BaseException) -> tuple[str, int]:
    """Map an exception to a user-facing message and process exit code."""

    if isinstance(exc, DependencyError):
        return f"Missing dependency: {exc.message}", EXIT_DEPENDENCY_ERROR
    if isinstance(exc, ConfigError):
        return f"Configuration error: {exc.message}", EXIT_INVALID_ARGUMENTS
    if isinstance(exc, FetchError):
        return f"Fetch error at {exc.url}: {exc.message}", EXIT_CRAWL_ERROR
    if isinstance(exc, FetchTimeoutError):
        return f"Request timeout after {exc.timeout_s}s", EXIT_CRAWL_ERROR
    # Subclasses are handled above.
    if isinstance(exc, CrawlError):
        return str(exc), EXIT_CRAWL_ERROR
    return f"Fatal error: {exc}", EXIT_GENERAL_ERROR


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="link-crawler",
        description="Crawl technical documentation sites recursively",
    )
    p.add_argument("url", nargs="?", help="Starting URL to crawl")
    p.add_argument("-d", "--depth", type=int, default=DEFAULT_MAX_DEPTH)
    p.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Maximum number of pages to crawl (0 = unlimited)",
    )
    p.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output directory (default: ./.context/<site-name>/)",
    )
    p.add_argument("--same-domain", dest="same_domain", action="store_true", default=True)
    p.add_argument(
        "--no-same-domain",
        dest="same_domain",
        action="store_false",
        help="Follow cross-domain links",
    )
    p.add_argument("--include", default=None, help="Include URL pattern (regex)")
    p.add_argument("--exclude", default=None, help="Exclude URL pattern (regex)")
    p.add_argument(
        "--delay",
        type=float,
        default=DEFAULT_DELAY_S,
        help="Delay between requests in seconds",
    )
    p.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_S,
        help="Request timeout in seconds",
    )
    p.add_argument(
        "--wait",
        type=float,
        default=DEFAULT_RENDER_WAIT_S,
        help="Wait time for page rendering in seconds",
    )
    p.add_argument("--headed", action="store_true", help="Show browser window")
    p.add_argument(
        "--diff",
        action="store_true",
        help="Incremental crawl (update only changed pages)",
    )
    p.add_argument("--no-pages", action="store_true", help="Skip individual page output")
    p.add_argument("--no-merge", action="store_true", help="Skip merged output file")
    p.add_argument("--chunks", action="store_true", help="Enable chunked output files")
    p.add_argument(
        "--keep-session",
        action="store_true",
        help="Keep the browser profile directory after the crawl",
    )
    p.add_argument("--no-robots", action="store_true", help="Ignore robots.txt")
    p.add_argument(
        "--static",
        action="store_true",
        help="Fetch with plain HTTP instead of a browser (no JavaScript)",
    )
    p.add_argument("-v", "--verbose", action="store_true")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


async def _crawl(config: CrawlConfig, run_id: str) -> int:
    crawler = Crawler(config, run_id=run_id)
    task = asyncio.ensure_future(crawler.run())

    def _shutdown() -> None:
        crawler.request_stop()
        task.cancel()

    handler = SignalHandler(_shutdown, exit_code=EXIT_GENERAL_ERROR)
    handler.install(asyncio.get_running_loop())
    try:
        await task
    except asyncio.CancelledError:
        if not handler.cleanup_in_progress:
            raise
        logger.warning("Crawl interrupted")
        return EXIT_GENERAL_ERROR
    finally:
        handler.uninstall()
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.url:
        parser.print_help(sys.stderr)
        return EXIT_INVALID_ARGUMENTS

    setup_logging(args.verbose)

    try:
        config = parse_config(
            args.url,
            output=args.output,
            depth=args.depth,
            max_pages=args.max_pages,
            same_domain=args.same_domain,
            include=args.include,
            exclude=args.exclude,
            delay=args.delay,
            timeout=args.timeout,
            wait=args.wait,
            headed=args.headed,
            diff=args.diff,
            pages=not args.no_pages,
            merge=not args.no_merge,
            chunks=args.chunks,
            keep_session=args.keep_session,
            respect_robots=not args.no_robots,
            static=args.static,
        )
        return asyncio.run(_crawl(config, make_run_id()))
    except KeyboardInterrupt:
        return EXIT_GENERAL_ERROR
    except Exception as e:  # noqa: BLE001 - top-level error report
        message, exit_code = handle_error(e)
        logger.debug("Unhandled error", exc_info=True)
        print(message, file=sys.stderr)
        return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
