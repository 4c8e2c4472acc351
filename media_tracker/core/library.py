"""
Persistence of media records as markdown files in any storage backend.

The `MediaLibrary` only talks to the StorageAdapter contract, so the same code
drives a local directory and a Google Drive folder.
"""

import logging

from media_tracker.exceptions import StorageError
from media_tracker.media.markdown import (
    generate_markdown,
    item_from_markdown,
    parse_markdown,
)
from media_tracker.models.item import MediaItem, UndoInfo
from media_tracker.storage.adapter import StorageAdapter
from media_tracker.utils.path import (
    MARKDOWN_SUFFIX,
    now_ms,
    record_filename,
    strip_trash_prefix,
    trash_path,
    with_suffix_tag,
)

log = logging.getLogger(__name__)


def _norm(value: str | None) -> str:
    return str(value or "").strip().lower()


class MediaLibrary:
    """Loads, saves, trashes and restores media records."""

    def __init__(self, adapter: StorageAdapter):
        self.adapter = adapter

    async def load_items(self) -> list[MediaItem]:
        """
        Reads every markdown record in the storage root.

        Files that cannot be read or parsed are logged and skipped. The result
        is ordered newest first by date added.
        """
        names = await self.adapter.list_files(suffix=MARKDOWN_SUFFIX)
        items: list[MediaItem] = []
        for name in names:
            try:
                content = await self.adapter.read_file(name)
                if content is None:
                    continue
                items.append(item_from_markdown(name, content))
            except (StorageError, ValueError) as e:
                log.warning(f"Skipping unreadable record '{name}': {e}")

        log.debug(f"Loaded {len(items)} records.")
        items.sort(key=lambda item: item.date_added, reverse=True)
        return items

    async def _find_matching_file(self, item: MediaItem) -> str | None:
        """Finds a stored record with the same title, type and author/director."""
        names = await self.adapter.list_files(suffix=MARKDOWN_SUFFIX)
        for name in names:
            try:
                content = await self.adapter.read_file(name)
            except StorageError as e:
                log.debug(f"Ignoring '{name}' while matching: {e}")
                continue
            if content is None:
                continue

            metadata, _ = parse_markdown(content)
            stored_type = metadata.get("type") or "book"
            creator_key = "director" if item.type == "movie" else "author"
            if (
                _norm(metadata.get("title")) == _norm(item.title)
                and stored_type == item.type
                and _norm(metadata.get(creator_key)) == _norm(item.creator)
            ):
                return name
        return None

    async def save_item(self, item: MediaItem) -> str:
        """
        Writes a record, reusing its file when it already has one.

        Returns:
            The file name the record was written to; also set on the item.
        """
        filename = item.filename or await self._find_matching_file(item)
        if not filename:
            filename = record_filename(item.title)

        item.filename = filename
        if not item.id:
            item.id = filename.removesuffix(MARKDOWN_SUFFIX)

        exists = await self.adapter.file_exists(filename)
        log.debug(f"{'Updating' if exists else 'Creating'} record file '{filename}'.")
        await self.adapter.write_file(filename, generate_markdown(item))
        return filename

    async def delete_item(self, item: MediaItem) -> UndoInfo:
        """
        Moves a record into the trash folder.

        Returns:
            The information needed by restore_item to undo the move.
        """
        if not item.filename:
            raise StorageError(f"Record '{item.title}' has no file to delete.")

        trash_name = item.filename
        if await self.adapter.file_exists(trash_path(trash_name)):
            trash_name = with_suffix_tag(item.filename, str(now_ms()))

        destination = trash_path(trash_name)
        await self.adapter.move_file(item.filename, destination)
        log.info(f"Moved '{item.filename}' to trash.")
        return UndoInfo(source=item.filename, destination=destination)

    async def restore_item(self, undo: UndoInfo) -> str:
        """
        Moves a trashed record back to the root.

        Returns:
            The restored file name, which differs from the original when that
            name has been taken in the meantime.
        """
        restore_name = undo.source
        if await self.adapter.file_exists(restore_name):
            restore_name = with_suffix_tag(undo.source, f"restored-{now_ms()}")

        trashed = trash_path(strip_trash_prefix(undo.destination))
        await self.adapter.move_file(trashed, restore_name)
        log.info(f"Restored '{restore_name}' from trash.")
        return restore_name
