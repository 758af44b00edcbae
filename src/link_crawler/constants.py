from __future__ import annotations

import re
from typing import Final

DEFAULT_MAX_DEPTH: Final = 1
MAX_DEPTH_LIMIT: Final = 10
DEFAULT_OUTPUT_ROOT: Final = "./.context"

# Durations are seconds.
DEFAULT_DELAY_S: Final = 0.5
MAX_DELAY_S: Final = 60.0
DEFAULT_TIMEOUT_S: Final = 30.0
MAX_TIMEOUT_S: Final = 300.0
DEFAULT_RENDER_WAIT_S: Final = 2.0
MAX_RENDER_WAIT_S: Final = 60.0

MAX_FILTER_PATTERN_LEN: Final = 200

PAGE_PREFIX: Final = "page-"
PAGE_PAD: Final = 3
PAGE_SLUG_MAX_LEN: Final = 50
CHUNK_PREFIX: Final = "chunk-"
CHUNK_PAD: Final = 3

INDEX_JSON: Final = "index.json"
FULL_MD: Final = "full.md"
PAGES_DIR: Final = "pages"
SPECS_DIR: Final = "specs"
CHUNKS_DIR: Final = "chunks"

BACKUP_SUFFIX: Final = ".bak"
WORK_DIR_INFIX: Final = ".tmp-"

# Browser profile directory owned by the Playwright backend.
SESSION_DIR: Final = ".link-crawler-session"

SPEC_PATTERNS: Final[dict[str, re.Pattern[str]]] = {
    "openapi": re.compile(r"/(openapi|swagger)\.(ya?ml|json)$", re.IGNORECASE),
    "jsonSchema": re.compile(r"\.schema\.json$|/schema\.json$", re.IGNORECASE),
    "graphql": re.compile(r"/schema\.graphql$", re.IGNORECASE),
}

EXIT_SUCCESS: Final = 0
EXIT_GENERAL_ERROR: Final = 1
EXIT_INVALID_ARGUMENTS: Final = 2
EXIT_DEPENDENCY_ERROR: Final = 3
EXIT_CRAWL_ERROR: Final = 4
