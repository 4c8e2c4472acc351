import re

import pytest

from media_tracker.core.library import MediaLibrary
from media_tracker.exceptions import StorageError
from media_tracker.models.item import MediaItem, UndoInfo


def make_book(title="Dune", author="Frank Herbert", added="2024-01-01", **kwargs):
    return MediaItem(title=title, author=author, dateAdded=added, **kwargs)


@pytest.fixture
def library(local_adapter):
    return MediaLibrary(local_adapter)


async def test_save_generates_filename(library, storage_dir):
    item = make_book(title="Dune: Part One!")
    filename = await library.save_item(item)

    assert re.fullmatch(r"dune-part-one--\d+\.md", filename)
    assert item.filename == filename
    assert (storage_dir / filename).is_file()


async def test_save_reuses_existing_filename(library, storage_dir):
    item = make_book(filename="custom.md")
    await library.save_item(item)
    item.rating = 5
    await library.save_item(item)

    assert sorted(p.name for p in storage_dir.iterdir()) == ["custom.md"]
    assert "rating: 5" in (storage_dir / "custom.md").read_text(encoding="utf-8")


async def test_save_matches_existing_record(library, storage_dir):
    first = await library.save_item(make_book())
    second = await library.save_item(make_book(title=" DUNE ", author="frank herbert"))
    assert first == second

    assert await library._find_matching_file(make_book(author="Someone Else")) is None
    assert await library._find_matching_file(make_book(type="movie")) is None


async def test_load_items_sorted_newest_first(library, local_adapter):
    await library.save_item(make_book(title="Old", added="2023-01-01"))
    await library.save_item(make_book(title="New", added="2024-06-01"))
    await library.save_item(
        MediaItem(title="Alien", type="movie", director="Ridley Scott", dateAdded="2024-01-01")
    )
    await local_adapter.write_file("broken.md", "---\ntype: podcast\n---\n")
    await local_adapter.write_file("readme.txt", "not a record")

    items = await library.load_items()
    assert [i.title for i in items] == ["New", "Alien", "Old"]
    assert items[1].effective_status == "watched"


async def test_delete_and_restore(library, local_adapter):
    item = make_book()
    filename = await library.save_item(item)

    undo = await library.delete_item(item)
    assert undo == UndoInfo(source=filename, destination=f".trash/{filename}")
    assert not await local_adapter.file_exists(filename)
    assert await library.load_items() == []

    restored = await library.restore_item(undo)
    assert restored == filename
    assert [i.title for i in await library.load_items()] == ["Dune"]


async def test_delete_renames_on_trash_collision(library, local_adapter):
    item = make_book(filename="dune.md")
    await library.save_item(item)
    first = await library.delete_item(item)
    await library.save_item(item)
    second = await library.delete_item(item)

    assert first.destination == ".trash/dune.md"
    assert re.fullmatch(r"\.trash/dune-\d+\.md", second.destination)


async def test_restore_renames_when_name_taken(library):
    item = make_book(filename="dune.md")
    await library.save_item(item)
    undo = await library.delete_item(item)
    await library.save_item(make_book(filename="dune.md", title="Another"))

    restored = await library.restore_item(undo)
    assert re.fullmatch(r"dune-restored-\d+\.md", restored)


async def test_delete_requires_filename(library):
    with pytest.raises(StorageError):
        await library.delete_item(make_book())


async def test_library_on_drive(drive_adapter):
    library = MediaLibrary(drive_adapter)
    item = make_book()
    await library.save_item(item)
    assert [i.title for i in await library.load_items()] == ["Dune"]

    undo = await library.delete_item(item)
    assert await library.load_items() == []
    await library.restore_item(undo)
    assert [i.filename for i in await library.load_items()] == [item.filename]
