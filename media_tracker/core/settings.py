"""
Resolves the effective application settings from the three settings sources:
built-in defaults, the local fast store, and the settings document in the
connected storage location (highest precedence).
"""

import logging
from typing import Any

from media_tracker.storage.adapter import StorageAdapter
from media_tracker.storage.config_file import (
    get_default_config,
    load_config_from_file,
    merge_configs,
    save_config_to_file,
    update_config_value,
)
from media_tracker.storage.local_settings import LocalSettingsStore

log = logging.getLogger(__name__)

# Settings mirrored in the local store; any other key lives only in storage.
LOCAL_SETTING_KEYS = frozenset(
    {"themePrimary", "themeHighlight", "cardSize", "halfStarsEnabled", "omdbApiKey"}
)


def _connected(adapter: StorageAdapter | None) -> bool:
    return adapter is not None and adapter.is_connected()


class SettingsService:
    """Keeps the local fast store and the storage settings document in step."""

    def __init__(self, local_store: LocalSettingsStore):
        self.local_store = local_store

    async def load_all_settings(
        self, adapter: StorageAdapter | None
    ) -> dict[str, Any]:
        """
        Loads settings, letting the storage document override the local store.

        Falls back to the local store alone when storage is not connected.
        """
        local_config = self.local_store.load_settings()
        if not _connected(adapter):
            return local_config

        try:
            file_config = await load_config_from_file(adapter)
        except Exception as e:
            log.warning(f"Error loading settings from file, using local store: {e}")
            return local_config
        return merge_configs(local_config, file_config)

    async def effective_settings(self, adapter: StorageAdapter | None) -> dict[str, Any]:
        """Defaults overlaid with everything load_all_settings returns."""
        return merge_configs(get_default_config(), await self.load_all_settings(adapter))

    async def save_all_settings(
        self, adapter: StorageAdapter | None, settings: dict[str, Any]
    ) -> bool:
        """
        Saves settings to the local store and, if connected, to storage.

        Returns:
            Whether the settings document in storage was written.
        """
        store = self.local_store
        if "themePrimary" in settings and "themeHighlight" in settings:
            store.save_theme_colors(settings["themePrimary"], settings["themeHighlight"])
        if "cardSize" in settings:
            store.save_card_size(settings["cardSize"])
        if "halfStarsEnabled" in settings:
            store.save_half_stars_enabled(settings["halfStarsEnabled"])
        if "omdbApiKey" in settings:
            store.save_omdb_api_key(settings["omdbApiKey"])

        if not _connected(adapter):
            return False
        return await save_config_to_file(adapter, settings)

    async def _write_through(
        self, adapter: StorageAdapter | None, values: dict[str, Any]
    ) -> bool:
        if not _connected(adapter):
            return False
        written = True
        for key, value in values.items():
            written = await update_config_value(adapter, key, value) and written
        return written

    async def update_api_key(self, adapter: StorageAdapter | None, api_key: str) -> bool:
        self.local_store.save_omdb_api_key(api_key)
        return await self._write_through(adapter, {"omdbApiKey": api_key})

    async def update_theme(
        self, adapter: StorageAdapter | None, primary: str, highlight: str
    ) -> bool:
        self.local_store.save_theme_colors(primary, highlight)
        return await self._write_through(
            adapter, {"themePrimary": primary, "themeHighlight": highlight}
        )

    async def update_card_size(self, adapter: StorageAdapter | None, size: str) -> bool:
        self.local_store.save_card_size(size)
        return await self._write_through(adapter, {"cardSize": size})

    async def update_half_stars(
        self, adapter: StorageAdapter | None, enabled: bool
    ) -> bool:
        self.local_store.save_half_stars_enabled(enabled)
        return await self._write_through(adapter, {"halfStarsEnabled": enabled})

    async def update_setting(
        self, adapter: StorageAdapter | None, key: str, value: Any
    ) -> bool:
        """Routes a known key to its typed setter; unknown keys go to storage only."""
        if key == "omdbApiKey":
            return await self.update_api_key(adapter, str(value))
        if key == "cardSize":
            return await self.update_card_size(adapter, str(value))
        if key == "halfStarsEnabled":
            return await self.update_half_stars(adapter, bool(value))
        if key in LOCAL_SETTING_KEYS:
            self.local_store.set_item(key, value)
        return await self._write_through(adapter, {key: value})
