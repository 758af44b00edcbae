from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path

from .manifest import CrawlIndex, read_index

logger = logging.getLogger(__name__)


def compute_hash(text: str) -> str:
    """Full SHA-256 hex digest of ``text`` (64 chars)."""

    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass
class DiffStore:
    """Content fingerprints from the previous run, keyed by URL.

    Loaded once at the start of a diff run and never written back; new
    hashes go into the new index instead.
    """

    hashes: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_index(cls, previous: CrawlIndex | None) -> "DiffStore":
        if previous is None:
            return cls()
        return cls({p.url: p.hash for p in previous.pages if p.hash})

    @classmethod
    def load(cls, index_path: Path) -> "DiffStore":
        store = cls.from_index(read_index(index_path))
        logger.debug("Loaded %d page hashes from %s", len(store), index_path)
        return store

    def __len__(self) -> int:
        return len(self.hashes)

    def get_hash(self, url: str) -> str | None:
        return self.hashes.get(url)

    def is_changed(self, url: str, new_hash: str) -> bool:
        previous = self.hashes.get(url)
        if previous is None:
            return True
        return previous != new_hash
