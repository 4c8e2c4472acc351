"""
A file-based JSON cache for the contents of drive files.

Entries are keyed by drive file id and are only valid for the modifiedTime
they were downloaded at, so a file changed elsewhere is fetched again.
"""

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)


class DriveItemCache:
    """
    Caches downloaded drive file contents on disk.

    Each entry records the file id, the app folder it belongs to, the file
    name, its modifiedTime and the decoded text content.
    """

    MAX_CACHE_VALUE_KB = 500

    def __init__(self, config_dir_path: Path):
        self.cache_dir = config_dir_path / "drive_cache"
        self.hits = 0
        self.misses = 0

    def _get_cache_path(self, file_id: str) -> Path:
        hashed_key = hashlib.md5(file_id.encode("utf-8")).hexdigest()  # noqa: S324
        return self.cache_dir / f"{hashed_key}.json"

    def _load(self, path: Path) -> dict[str, Any] | None:
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, OSError) as e:
            log.debug(f"Drive cache entry {path.name} is unreadable: {e}")
            return None

    def get(self, file_id: str, modified_time: str | None) -> str | None:
        """
        Returns the cached content if it was stored for this modifiedTime.

        A stale entry is removed.
        """
        if not modified_time:
            self.misses += 1
            return None

        cache_path = self._get_cache_path(file_id)
        entry = self._load(cache_path)
        if entry is None:
            self.misses += 1
            return None

        if entry.get("file_id") != file_id or entry.get("modified_time") != modified_time:
            log.debug(f"Drive cache entry for '{entry.get('name')}' is stale.")
            cache_path.unlink(missing_ok=True)
            self.misses += 1
            return None

        self.hits += 1
        return entry.get("content")

    def set(
        self,
        file_id: str,
        folder_id: str,
        name: str,
        modified_time: str | None,
        content: str,
    ) -> bool:
        """Stores a downloaded file. Files without a modifiedTime are not cached."""
        if not modified_time:
            return False

        payload = {
            "file_id": file_id,
            "folder_id": folder_id,
            "name": name,
            "modified_time": modified_time,
            "content": content,
        }
        try:
            serialized_payload = json.dumps(payload)
            size_kb = len(serialized_payload) / 1024
            if size_kb > self.MAX_CACHE_VALUE_KB:
                log.debug(f"'{name}' is too large to cache ({size_kb:.1f} KB), skipping.")
                return False

            self.cache_dir.mkdir(parents=True, exist_ok=True)
            with open(self._get_cache_path(file_id), "w", encoding="utf-8") as f:
                f.write(serialized_payload)
            return True
        except (TypeError, OSError) as e:
            log.warning(f"Drive cache write failed for '{name}': {e}")
            return False

    def remove(self, file_id: str) -> None:
        try:
            self._get_cache_path(file_id).unlink(missing_ok=True)
        except OSError as e:
            log.warning(f"Failed to remove drive cache entry {file_id}: {e}")

    def clear_folder(self, folder_id: str) -> int:
        """Removes every entry that belongs to the given app folder."""
        if not self.cache_dir.is_dir():
            return 0

        removed = 0
        for cache_file in self.cache_dir.glob("*.json"):
            entry = self._load(cache_file)
            if entry is not None and entry.get("folder_id") != folder_id:
                continue
            try:
                cache_file.unlink()
                removed += 1
            except OSError as e:
                log.warning(f"Failed to remove drive cache file {cache_file.name}: {e}")
        if removed:
            log.debug(f"Drive cache: removed {removed} entries.")
        return removed
