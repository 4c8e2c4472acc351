"""
Utilities for building file names for media records.
"""

import re
import time

from pathvalidate import sanitize_filename

SLUG_RE = re.compile(r"[^a-z0-9]+")
MARKDOWN_SUFFIX = ".md"
TRASH_DIR = ".trash"


def now_ms() -> int:
    return int(time.time() * 1000)


def slugify(title: str) -> str:
    """Lowercases a title and collapses every run of other characters to '-'."""
    return SLUG_RE.sub("-", title.lower())


def record_filename(title: str, timestamp_ms: int | None = None) -> str:
    """
    Generates a new, unique-by-time file name for a record.

    Returns:
        A name like "dune-1700000000000.md", safe on every platform.
    """
    stamp = now_ms() if timestamp_ms is None else timestamp_ms
    slug = slugify(title or "untitled")
    return sanitize_filename(f"{slug}-{stamp}{MARKDOWN_SUFFIX}", platform="universal")


def with_suffix_tag(filename: str, tag: str) -> str:
    """Inserts '-tag' before the .md suffix: ("a.md", "123") -> "a-123.md"."""
    stem = filename.removesuffix(MARKDOWN_SUFFIX)
    return f"{stem}-{tag}{MARKDOWN_SUFFIX}"


def trash_path(filename: str) -> str:
    return f"{TRASH_DIR}/{filename}"


def strip_trash_prefix(path: str) -> str:
    return path.removeprefix(f"{TRASH_DIR}/")
