from media_tracker.media.markdown import (
    generate_markdown,
    item_from_markdown,
    parse_markdown,
)
from media_tracker.models.item import MediaItem

BOOK = """---
title: "Dune"
type: book
author: "Frank Herbert"
year: 1965
rating: 4.5
tags: ["sci-fi", 'classic']
dateAdded: "2024-01-02T10:00:00Z"
---

A desert planet.
"""


def test_parse_front_matter_and_body():
    metadata, body = parse_markdown(BOOK)
    assert metadata["title"] == "Dune"
    assert metadata["author"] == "Frank Herbert"
    assert metadata["tags"] == ["sci-fi", "classic"]
    assert metadata["year"] == "1965"
    assert body == "A desert planet."


def test_parse_defaults_missing_status():
    metadata, _ = parse_markdown(BOOK)
    assert metadata["status"] == "read"

    movie, _ = parse_markdown("---\ntitle: Alien\ntype: movie\n---\n")
    assert movie["status"] == "watched"


def test_parse_without_front_matter():
    assert parse_markdown("just text") == ({}, "just text")


def test_parse_keeps_colons_in_values():
    metadata, _ = parse_markdown('---\ncoverUrl: "https://example.com/a.jpg"\n---\n')
    assert metadata["coverUrl"] == "https://example.com/a.jpg"


def test_generate_includes_only_present_fields():
    item = MediaItem(
        title="Alien",
        type="movie",
        director="Ridley Scott",
        actors=["Sigourney Weaver", "Tom Skerritt"],
        dateAdded="2024-05-01",
        review="Great.",
    )
    text = generate_markdown(item)
    assert text == (
        "---\n"
        'title: "Alien"\n'
        "type: movie\n"
        "status: watched\n"
        'director: "Ridley Scott"\n'
        'actors: ["Sigourney Weaver", "Tom Skerritt"]\n'
        'dateAdded: "2024-05-01"\n'
        "---\n\n"
        "Great."
    )


def test_item_from_markdown():
    item = item_from_markdown("dune-1.md", BOOK)
    assert item.id == "dune-1"
    assert item.filename == "dune-1.md"
    assert item.title == "Dune"
    assert item.creator == "Frank Herbert"
    assert item.rating == 4.5
    assert item.date_added == "2024-01-02T10:00:00Z"
    assert item.review == "A desert planet."


def test_generated_record_reads_back():
    item = MediaItem(
        title="Dune",
        author="Frank Herbert",
        status="to-read",
        rating=4,
        tags=["sci-fi"],
        dateAdded="2024-01-01",
        review="Spice.",
    )
    restored = item_from_markdown("dune.md", generate_markdown(item))
    assert restored.model_dump(exclude={"id", "filename"}) == item.model_dump(
        exclude={"id", "filename"}
    )
