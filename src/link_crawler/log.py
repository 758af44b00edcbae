"""Logging configuration."""

from __future__ import annotations

import logging
import os
import sys

DEBUG_ENV = "LINK_CRAWLER_DEBUG"


def setup_logging(verbose: bool = False) -> None:
    """Configure application logging."""
    debug = verbose or os.environ.get(DEBUG_ENV) == "1"
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Third-party loggers are noisy at DEBUG.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
