"""
Local Directory Storage Adapter

Implements StorageAdapter over a directory on the local filesystem. The chosen
directory is remembered in the HandleCache, and every write is gated on the
handle still carrying read-write permission.
"""

import asyncio
import logging
import os
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

import aiofiles

from media_tracker.exceptions import (
    PermissionDeniedError,
    StorageError,
    StorageSelectionCancelled,
)

from .adapter import StorageAdapter, normalize_directory, normalize_path
from .handle_cache import HandleCache
from .handles import DirectoryHandle, Prompter, resolve_maybe_awaitable
from .permissions import verify_handle_permission

log = logging.getLogger(__name__)

DirectoryPicker = Callable[[], Any]


class LocalAdapter(StorageAdapter):
    """Storage adapter for a user-chosen local directory."""

    storage_type = "filesystem"
    display_name = "Local Files"
    description = "Store files locally on your device"

    def __init__(
        self,
        handle_cache: HandleCache | None = None,
        directory_picker: DirectoryPicker | None = None,
        prompter: Prompter | None = None,
    ):
        """
        Initializes the adapter.

        Args:
            handle_cache: Durable store used to remember the selected directory.
            directory_picker: Callable (sync or async) returning the directory the
                user picked, or None if they cancelled.
            prompter: Callable (sync or async) asked to approve access when a
                remembered directory needs its permission re-granted.
        """
        super().__init__()
        self.handle: DirectoryHandle | None = None
        self._handle_cache = handle_cache
        self._directory_picker = directory_picker
        self._prompter = prompter

    async def initialize(self) -> bool:
        return True

    def is_connected(self) -> bool:
        return self.handle is not None

    def get_storage_info(self) -> str | None:
        if not self.handle:
            return None
        return f"Local Directory: {self.handle.name}"

    async def select_storage(self) -> DirectoryHandle:
        """
        Asks the directory picker for a directory and connects to it.

        Raises:
            StorageSelectionCancelled: If the user made no choice.
            StorageError: If the chosen path is not a directory.
        """
        if self._directory_picker is None:
            raise StorageSelectionCancelled("No directory picker is available.")

        picked = await resolve_maybe_awaitable(self._directory_picker())
        if not picked:
            raise StorageSelectionCancelled("Directory selection was cancelled.")

        path = Path(picked).expanduser()
        if not await asyncio.to_thread(path.is_dir):
            raise StorageError(f"'{path}' is not a directory.")

        handle = DirectoryHandle.picked(path, prompter=self._prompter)
        self.handle = handle
        log.info(f"Directory selected: [cyan]{handle.name}[/cyan]")

        if self._handle_cache is not None:
            try:
                await self._handle_cache.store_directory_handle(handle)
                log.debug("Local storage connection persisted.")
            except StorageError as e:
                log.error(f"Failed to persist local storage connection: {e}")

        return handle

    async def restore_connection(self, request_if_needed: bool = False) -> bool:
        """
        Reconnects to the directory remembered in the HandleCache.

        Args:
            request_if_needed: Whether the user may be asked to re-grant access.

        Returns:
            True if a remembered directory is usable and now connected.

        Raises:
            StorageError: If the handle cache itself fails.
        """
        if self._handle_cache is None:
            return False

        handle = await self._handle_cache.get_directory_handle()
        if not isinstance(handle, DirectoryHandle):
            return False

        handle.attach_prompter(self._prompter)
        if not await verify_handle_permission(handle, request_if_needed):
            log.info(
                f"Remembered directory '{handle.name}' needs permission to be granted"
                " again."
            )
            return False

        self.handle = handle
        log.debug(f"Restored connection to '{handle.name}'.")
        return True

    async def disconnect(self) -> None:
        self.handle = None
        if self._handle_cache is not None:
            try:
                await self._handle_cache.clear_directory_handle()
                log.debug("Local storage connection cleared.")
            except StorageError as e:
                log.error(f"Failed to clear persisted local storage connection: {e}")

    def _resolve(self, path: str) -> Path:
        relative = normalize_path(path)
        return self.handle.path.joinpath(*relative.parts)

    async def _ensure_write_permission(self) -> None:
        if not await verify_handle_permission(self.handle, request_if_needed=True):
            raise PermissionDeniedError(
                f"Write access to '{self.handle.name}' has not been granted."
            )

    async def read_file(self, path: str, binary: bool = False) -> str | bytes | None:
        self._require_connection()
        target = self._resolve(path)
        try:
            async with aiofiles.open(target, "rb") as f:
                data = await f.read()
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError):
            return None
        except OSError as e:
            log.error(f"Error reading '{path}': {e}")
            raise StorageError(f"Error reading file '{path}': {e}") from e
        return data if binary else data.decode("utf-8")

    async def write_file(self, path: str, content: str | bytes) -> None:
        self._require_connection()
        target = self._resolve(path)
        await self._ensure_write_permission()

        data = content.encode("utf-8") if isinstance(content, str) else content
        # Write beside the target and swap it in, so readers never see a partial file.
        temp_path = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
        try:
            await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
            async with aiofiles.open(temp_path, "wb") as f:
                await f.write(data)
            await asyncio.to_thread(os.replace, temp_path, target)
        except OSError as e:
            log.error(f"Error writing '{path}': {e}")
            await asyncio.to_thread(temp_path.unlink, missing_ok=True)
            raise StorageError(f"Error writing file '{path}': {e}") from e

    async def list_files(
        self, directory: str = "", suffix: str | None = None
    ) -> list[str]:
        self._require_connection()
        relative = normalize_directory(directory)
        base = self.handle.path if relative is None else self.handle.path.joinpath(*relative.parts)

        def _scan() -> list[str]:
            if not base.is_dir():
                return []
            return sorted(
                entry.name
                for entry in base.iterdir()
                if entry.is_file() and (suffix is None or entry.name.endswith(suffix))
            )

        try:
            return await asyncio.to_thread(_scan)
        except OSError as e:
            log.error(f"Error reading directory '{directory or '.'}': {e}")
            raise StorageError(f"Error reading directory: {e}") from e

    async def file_exists(self, path: str) -> bool:
        self._require_connection()
        return await asyncio.to_thread(self._resolve(path).is_file)

    async def move_file(self, source: str, destination: str) -> None:
        self._require_connection()
        src = self._resolve(source)
        dst = self._resolve(destination)
        await self._ensure_write_permission()

        if not await asyncio.to_thread(src.is_file):
            raise StorageError(f"Cannot move '{source}': file not found.")
        try:
            await asyncio.to_thread(dst.parent.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(os.replace, src, dst)
        except OSError as e:
            log.error(f"Error moving '{source}' to '{destination}': {e}")
            raise StorageError(f"Error moving file '{source}': {e}") from e
