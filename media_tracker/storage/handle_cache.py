"""
Manages the SQLite database that remembers the last-used storage handle, so the
user does not have to pick a directory again on every run.
"""

import asyncio
import logging
import pickle
import sqlite3
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from media_tracker.exceptions import StorageError

from .handles import StorageHandle
from .permissions import verify_handle_permission

log = logging.getLogger(__name__)

DB_NAME = "MediaTrackerFileSystem"
DB_VERSION = 1
STORE_NAME = "directoryHandles"
CURRENT_KEY = "current"

_UNPICKLE_ERRORS = (
    pickle.UnpicklingError,
    AttributeError,
    EOFError,
    ImportError,
    KeyError,
    TypeError,
)


@dataclass
class CachedHandleRecord:
    """The single persisted handle record."""

    id: str
    handle: StorageHandle
    name: str
    timestamp: int  # epoch milliseconds


class HandleCache:
    """
    A single-slot durable store for a storage handle.

    Handles are pickled into the database as-is rather than flattened to text.
    The connection is opened lazily on first use and reused afterwards; every
    write replaces the whole record in one transaction.
    """

    def __init__(self, config_dir_path: Path):
        self.db_path = config_dir_path / f"{DB_NAME}.sqlite"
        self._conn: sqlite3.Connection | None = None
        self._init_lock = asyncio.Lock()
        self._io_lock = asyncio.Lock()

    def _open_sync(self) -> sqlite3.Connection:
        """Opens the database and creates or upgrades the schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
        try:
            conn.execute("PRAGMA journal_mode=WAL;")
            version = conn.execute("PRAGMA user_version;").fetchone()[0]
            if version > DB_VERSION:
                raise StorageError(
                    f"Handle store at '{self.db_path}' has schema version {version}, "
                    f"newer than the supported version {DB_VERSION}."
                )
            if version < DB_VERSION:
                with conn:
                    conn.execute(
                        f"""
                        CREATE TABLE IF NOT EXISTS {STORE_NAME} (
                            id TEXT PRIMARY KEY NOT NULL,
                            handle BLOB,
                            name TEXT,
                            timestamp INTEGER
                        );
                        """
                    )
                    conn.execute(
                        f"CREATE INDEX IF NOT EXISTS idx_{STORE_NAME}_name"
                        f" ON {STORE_NAME}(name);"
                    )
                    conn.execute(f"PRAGMA user_version = {DB_VERSION};")
                log.debug(f"Initialized handle store schema v{DB_VERSION}.")
        except (sqlite3.Error, StorageError):
            conn.close()
            raise
        return conn

    async def init(self) -> sqlite3.Connection:
        """
        Opens the durable store, creating it if needed.

        Repeated calls return the same live connection without reopening it.

        Raises:
            StorageError: If the database cannot be opened.
        """
        if self._conn is not None:
            return self._conn

        async with self._init_lock:
            if self._conn is None:
                try:
                    self._conn = await asyncio.to_thread(self._open_sync)
                except StorageError:
                    raise
                except (sqlite3.Error, OSError) as e:
                    log.error(f"Failed to open handle store at '{self.db_path}': {e}")
                    raise StorageError(f"Failed to open handle store: {e}") from e
        return self._conn

    async def close(self) -> None:
        """Closes the connection. A later call to init() reopens it."""
        async with self._init_lock, self._io_lock:
            if self._conn is not None:
                await asyncio.to_thread(self._conn.close)
                self._conn = None

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        """Runs a synchronous store operation on the shared connection."""
        conn = await self.init()
        async with self._io_lock:
            return await asyncio.to_thread(func, conn, *args)

    def _put_sync(self, conn: sqlite3.Connection, record: CachedHandleRecord) -> None:
        blob = pickle.dumps(record.handle)
        with conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {STORE_NAME} "  # noqa: S608
                "(id, handle, name, timestamp) VALUES (?, ?, ?, ?)",
                (record.id, blob, record.name, record.timestamp),
            )

    def _get_sync(self, conn: sqlite3.Connection) -> CachedHandleRecord | None:
        row = conn.execute(
            f"SELECT id, handle, name, timestamp FROM {STORE_NAME} WHERE id = ?",  # noqa: S608
            (CURRENT_KEY,),
        ).fetchone()
        if row is None or row[1] is None:
            return None
        return CachedHandleRecord(
            id=row[0], handle=pickle.loads(row[1]), name=row[2], timestamp=row[3]  # noqa: S301
        )

    def _delete_sync(self, conn: sqlite3.Connection) -> None:
        with conn:
            conn.execute(
                f"DELETE FROM {STORE_NAME} WHERE id = ?",  # noqa: S608
                (CURRENT_KEY,),
            )

    async def store_directory_handle(self, handle: StorageHandle) -> None:
        """
        Saves the handle as the current record, replacing any previous one.

        Raises:
            StorageError: If the write transaction fails.
        """
        record = CachedHandleRecord(
            id=CURRENT_KEY,
            handle=handle,
            name=handle.name,
            timestamp=int(time.time() * 1000),
        )
        try:
            await self._run(self._put_sync, record)
        except (sqlite3.Error, pickle.PicklingError, TypeError, AttributeError) as e:
            log.error(f"Error storing directory handle: {e}")
            raise StorageError(f"Failed to store directory handle: {e}") from e
        log.debug(f"Directory handle '{handle.name}' stored.")

    async def get_record(self) -> CachedHandleRecord | None:
        """
        Returns the full cached record, or None if nothing is stored.

        Raises:
            StorageError: If the read transaction fails or the record is unreadable.
        """
        try:
            record = await self._run(self._get_sync)
        except sqlite3.Error as e:
            log.error(f"Error retrieving directory handle: {e}")
            raise StorageError(f"Failed to read directory handle: {e}") from e
        except _UNPICKLE_ERRORS as e:
            log.error(f"Stored directory handle is unreadable: {e}")
            raise StorageError(f"Stored directory handle is unreadable: {e}") from e

        if record is None:
            log.debug("No stored directory handle found.")
        else:
            log.debug(f"Retrieved directory handle: {record.name}")
        return record

    async def get_directory_handle(self) -> StorageHandle | None:
        """Returns the stored handle, or None if none exists."""
        record = await self.get_record()
        return record.handle if record else None

    async def clear_directory_handle(self) -> None:
        """
        Deletes the current record. Does nothing if there is none.

        Raises:
            StorageError: If the delete transaction fails.
        """
        try:
            await self._run(self._delete_sync)
        except sqlite3.Error as e:
            log.error(f"Error clearing directory handle: {e}")
            raise StorageError(f"Failed to clear directory handle: {e}") from e
        log.debug("Directory handle cleared.")

    async def verify_handle_permission(
        self, handle: StorageHandle, request_if_needed: bool = True
    ) -> bool:
        """Checks that a stored handle is still usable. See permissions.verify_handle_permission."""
        return await verify_handle_permission(handle, request_if_needed)
