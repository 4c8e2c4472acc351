"""
Storage Adapter Interface

Core abstraction over the places media records and settings can live. Adapters
implement this interface for a local directory and for a remote drive folder so
that the layers above never need to know which one is in use.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import PurePosixPath
from typing import Any

from media_tracker.exceptions import NotConnectedError, StorageError

from .handles import StorageHandle

log = logging.getLogger(__name__)


def normalize_path(path: str) -> PurePosixPath:
    """
    Validates a path relative to the storage root.

    Backslashes are treated as separators. Absolute paths, empty paths and
    '..' segments are rejected.
    """
    raw = str(path).replace("\\", "/").strip()
    if not raw or raw.startswith("/") or (len(raw) > 1 and raw[1] == ":"):
        raise ValueError(f"Expected a path relative to the storage root, got '{path}'")

    parts = [p for p in raw.split("/") if p not in ("", ".")]
    if not parts:
        raise ValueError(f"Path '{path}' does not name a file")
    if ".." in parts:
        raise ValueError(f"Path '{path}' escapes the storage root")
    return PurePosixPath(*parts)


def normalize_directory(directory: str) -> PurePosixPath | None:
    """Like normalize_path, but an empty string or '.' means the storage root."""
    if directory in ("", ".", "/"):
        return None
    return normalize_path(directory)


class StorageAdapter(ABC):
    """Base class for storage adapters."""

    storage_type: str = "base"
    display_name: str = "Storage"
    description: str = ""

    def __init__(self) -> None:
        self.handle: StorageHandle | None = None

    @classmethod
    def is_supported(cls) -> bool:
        """Whether this backend can be used in the current environment."""
        return True

    @abstractmethod
    async def initialize(self) -> bool:
        """Prepares the backend. Returns whether initialization succeeded."""

    @abstractmethod
    async def select_storage(self) -> StorageHandle:
        """Lets the user pick or authorize a storage root and connects to it."""

    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the adapter currently holds a usable connection."""

    @abstractmethod
    def get_storage_info(self) -> str | None:
        """Human-readable description of the connected storage root."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Drops the connection and forgets any persisted selection."""

    @abstractmethod
    async def read_file(self, path: str, binary: bool = False) -> str | bytes | None:
        """Reads a file. Returns None if it does not exist."""

    @abstractmethod
    async def write_file(self, path: str, content: str | bytes) -> None:
        """Writes a file, creating parent folders and replacing existing content."""

    @abstractmethod
    async def list_files(
        self, directory: str = "", suffix: str | None = None
    ) -> list[str]:
        """Lists file names (not folders) directly inside a directory."""

    @abstractmethod
    async def file_exists(self, path: str) -> bool:
        """Checks whether a file exists."""

    @abstractmethod
    async def move_file(self, source: str, destination: str) -> None:
        """Moves or renames a file within the storage root."""

    def _require_connection(self) -> None:
        if not self.is_connected():
            raise NotConnectedError(
                f"{self.display_name} is not connected. Select a storage location first."
            )

    def __repr__(self) -> str:
        state = "connected" if self.is_connected() else "disconnected"
        return f"<{type(self).__name__} {state}>"


class StorageFactory:
    """Creates the adapter best suited to the current environment."""

    @staticmethod
    def _adapter_classes() -> list[type[StorageAdapter]]:
        from .local import LocalAdapter
        from .remote import RemoteDriveAdapter

        return [LocalAdapter, RemoteDriveAdapter]

    @classmethod
    def create_adapter(
        cls,
        preferred_type: str | None = None,
        adapter_options: dict[str, dict[str, Any]] | None = None,
    ) -> StorageAdapter:
        """
        Instantiates an adapter.

        Args:
            preferred_type: 'filesystem' or 'googledrive'. Used when supported.
            adapter_options: Constructor keyword arguments per storage type.

        Raises:
            StorageError: If no adapter is supported.
        """
        classes = cls._adapter_classes()
        options = adapter_options or {}

        if preferred_type:
            for adapter_class in classes:
                if adapter_class.storage_type == preferred_type:
                    if adapter_class.is_supported():
                        return adapter_class(**options.get(adapter_class.storage_type, {}))
                    log.warning(
                        f"Storage type '{preferred_type}' is not supported here, "
                        "falling back to auto-detection."
                    )
                    break
            else:
                log.warning(f"Unknown storage type '{preferred_type}'.")

        for adapter_class in classes:
            if adapter_class.is_supported():
                return adapter_class(**options.get(adapter_class.storage_type, {}))

        raise StorageError("No supported storage adapter available on this platform.")

    @classmethod
    def available_adapters(cls) -> list[dict[str, Any]]:
        """Describes every known adapter and whether it can be used."""
        return [
            {
                "type": adapter_class.storage_type,
                "name": adapter_class.display_name,
                "description": adapter_class.description,
                "supported": adapter_class.is_supported(),
            }
            for adapter_class in cls._adapter_classes()
        ]
