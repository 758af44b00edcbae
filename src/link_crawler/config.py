from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from . import __version__
from .constants import (
    DEFAULT_DELAY_S,
    DEFAULT_MAX_DEPTH,
    DEFAULT_OUTPUT_ROOT,
    DEFAULT_RENDER_WAIT_S,
    DEFAULT_TIMEOUT_S,
    MAX_DELAY_S,
    MAX_DEPTH_LIMIT,
    MAX_FILTER_PATTERN_LEN,
    MAX_RENDER_WAIT_S,
    MAX_TIMEOUT_S,
)
from .errors import ConfigError
from .urls import generate_site_name

logger = logging.getLogger(__name__)

# Quantifier, closing paren, quantifier: (a+)+, (a*)*, (a{1,})+ ...
_NESTED_QUANTIFIER_RE = re.compile(r"(\+|\*|\{[^}]*\})\s*\)(\+|\*|\{)")


@dataclass(frozen=True)
class CrawlConfig:
    start_url: str
    output_dir: Path
    max_depth: int = DEFAULT_MAX_DEPTH
    max_pages: int | None = None
    same_domain: bool = True
    include_pattern: re.Pattern[str] | None = None
    exclude_pattern: re.Pattern[str] | None = None
    delay_s: float = DEFAULT_DELAY_S
    timeout_s: float = DEFAULT_TIMEOUT_S
    render_wait_s: float = DEFAULT_RENDER_WAIT_S
    headed: bool = False
    diff: bool = False
    pages: bool = True
    merge: bool = True
    chunks: bool = False
    keep_session: bool = False
    respect_robots: bool = True
    static: bool = False
    user_agent: str = "*"
    version: str = __version__

    def echo(self) -> dict[str, Any]:
        """Subset of the configuration recorded in ``index.json``."""

        return {
            "maxDepth": self.max_depth,
            "maxPages": self.max_pages,
            "sameDomain": self.same_domain,
            "diff": self.diff,
        }


def parse_pattern(pattern: str | None, name: str) -> re.Pattern[str] | None:
    if not pattern:
        return None
    if len(pattern) > MAX_FILTER_PATTERN_LEN:
        raise ConfigError(
            f"{name} pattern too long (max {MAX_FILTER_PATTERN_LEN} chars)", name
        )
    if _NESTED_QUANTIFIER_RE.search(pattern):
        raise ConfigError(f"{name} pattern may cause catastrophic backtracking", name)
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigError(f"Invalid {name} pattern: {e}", name) from e


def _number(value: Any, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


def validate_start_url(start_url: str) -> str:
    try:
        parsed = urlparse(start_url)
    except ValueError as e:
        raise ConfigError(f"Invalid URL: {start_url}", "start_url") from e
    if parsed.scheme not in {"http", "https"}:
        raise ConfigError(
            f"Unsupported protocol: {parsed.scheme or '(none)'} "
            "(only http/https supported)",
            "start_url",
        )
    if not parsed.netloc:
        raise ConfigError(f"Invalid URL: {start_url}", "start_url")
    return start_url


def parse_config(
    start_url: str,
    *,
    output: str | Path | None = None,
    depth: Any = None,
    max_pages: Any = None,
    same_domain: bool = True,
    include: str | None = None,
    exclude: str | None = None,
    delay: Any = None,
    timeout: Any = None,
    wait: Any = None,
    headed: bool = False,
    diff: bool = False,
    pages: bool = True,
    merge: bool = True,
    chunks: bool = False,
    keep_session: bool = False,
    respect_robots: bool = True,
    static: bool = False,
) -> CrawlConfig:
    """Validate raw option values and build a :class:`CrawlConfig`.

    Numeric options are clamped to their limits; unparseable numbers fall back
    to defaults. Bad URLs and filter patterns raise :class:`ConfigError`.
    """

    validate_start_url(start_url)

    if output:
        output_dir = Path(output)
    else:
        output_dir = Path(DEFAULT_OUTPUT_ROOT) / generate_site_name(start_url)

    max_depth = int(_clamp(_number(depth, DEFAULT_MAX_DEPTH), 0, MAX_DEPTH_LIMIT))

    pages_limit = _number(max_pages, 0)
    max_pages_value = int(pages_limit) if pages_limit >= 1 else None

    config = CrawlConfig(
        start_url=start_url,
        output_dir=output_dir,
        max_depth=max_depth,
        max_pages=max_pages_value,
        same_domain=bool(same_domain),
        include_pattern=parse_pattern(include, "include"),
        exclude_pattern=parse_pattern(exclude, "exclude"),
        delay_s=_clamp(_number(delay, DEFAULT_DELAY_S), 0, MAX_DELAY_S),
        timeout_s=_clamp(_number(timeout, DEFAULT_TIMEOUT_S), 1, MAX_TIMEOUT_S),
        render_wait_s=_clamp(
            _number(wait, DEFAULT_RENDER_WAIT_S), 0, MAX_RENDER_WAIT_S
        ),
        headed=bool(headed),
        diff=bool(diff),
        pages=bool(pages),
        merge=bool(merge),
        chunks=bool(chunks),
        keep_session=bool(keep_session),
        respect_robots=bool(respect_robots),
        static=bool(static),
    )

    if not (config.pages or config.merge or config.chunks):
        logger.warning(
            "All output formats are disabled (--no-pages --no-merge without "
            "--chunks); only index.json will be generated."
        )

    return config
