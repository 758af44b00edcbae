"""link-crawler core library.

This package crawls a documentation site through a fetch backend, converts
each page to Markdown and writes an output bundle (pages, merged document,
chunks, detected API specs and an ``index.json`` manifest).

Output rules:
- The final output directory is only ever replaced as a whole.
- Diff runs extend the existing output in place.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
