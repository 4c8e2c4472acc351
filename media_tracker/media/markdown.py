"""
Converts media records to and from markdown files with a front matter block.

The front matter is a flat, YAML-like list of `key: value` lines between two
`---` lines. List values are written as `[a, b]`. Quotes are stripped on read,
so values never contain quote characters after a round trip.
"""

import re
from typing import Any

from media_tracker.models.item import DEFAULT_STATUS, MediaItem

FRONT_MATTER_RE = re.compile(r"^---\s*\n(.*?)\n---\s*\n(.*)$", re.DOTALL)
QUOTES_RE = re.compile(r"[\"']")


def default_status(media_type: str) -> str:
    return DEFAULT_STATUS.get(media_type, DEFAULT_STATUS["book"])


def _parse_value(raw: str) -> str | list[str]:
    if raw.startswith("[") and raw.endswith("]"):
        inner = raw[1:-1]
        if not inner.strip():
            return []
        return [QUOTES_RE.sub("", part.strip()) for part in inner.split(",")]
    return QUOTES_RE.sub("", raw)


def parse_markdown(content: str) -> tuple[dict[str, Any], str]:
    """
    Splits a markdown document into its front matter and body.

    Returns:
        A (metadata, body) tuple. Content without front matter yields empty
        metadata and the whole content as body.
    """
    match = FRONT_MATTER_RE.match(content.replace("\r\n", "\n"))
    if not match:
        return {}, content

    metadata: dict[str, Any] = {}
    for line in match.group(1).split("\n"):
        key, sep, value = line.partition(":")
        if not sep:
            continue
        metadata[key.strip()] = _parse_value(value.strip())

    if not metadata.get("status") and metadata.get("type"):
        metadata["status"] = default_status(metadata["type"])

    return metadata, match.group(2).strip()


def _quoted(value: Any) -> str:
    return f'"{value}"'


def _format_rating(rating: float) -> str:
    return str(int(rating)) if rating == int(rating) else str(rating)


def generate_markdown(item: MediaItem) -> str:
    """Renders a record as front matter followed by the review text."""
    lines = [
        "---",
        f"title: {_quoted(item.title)}",
        f"type: {item.type}",
        f"status: {item.status or default_status(item.type)}",
    ]
    if item.author:
        lines.append(f"author: {_quoted(item.author)}")
    if item.director:
        lines.append(f"director: {_quoted(item.director)}")
    if item.actors:
        lines.append(f"actors: [{', '.join(_quoted(a) for a in item.actors)}]")
    if item.isbn:
        lines.append(f"isbn: {_quoted(item.isbn)}")
    if item.year:
        lines.append(f"year: {item.year}")
    if item.rating:
        lines.append(f"rating: {_format_rating(item.rating)}")
    if item.tags:
        lines.append(f"tags: [{', '.join(_quoted(t) for t in item.tags)}]")
    if item.cover_url:
        lines.append(f"coverUrl: {_quoted(item.cover_url)}")
    if item.date_read:
        lines.append(f"dateRead: {_quoted(item.date_read)}")
    if item.date_watched:
        lines.append(f"dateWatched: {_quoted(item.date_watched)}")
    lines.append(f"dateAdded: {_quoted(item.date_added)}")
    lines.append("---")

    return "\n".join(lines) + "\n\n" + (item.review or "")


def item_from_markdown(filename: str, content: str) -> MediaItem:
    """Builds a MediaItem from a markdown file's name and content."""
    metadata, body = parse_markdown(content)
    media_type = metadata.get("type") or "book"
    fields = {
        key: metadata[key]
        for key in (
            "status",
            "author",
            "director",
            "actors",
            "isbn",
            "year",
            "rating",
            "tags",
            "coverUrl",
            "dateRead",
            "dateWatched",
            "dateAdded",
        )
        if key in metadata
    }
    return MediaItem(
        id=filename.removesuffix(".md"),
        filename=filename,
        title=metadata.get("title") or "Untitled",
        type=media_type,
        review=body,
        **fields,
    )
