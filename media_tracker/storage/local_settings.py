"""
A small JSON key-value store for fast, pre-connection access to settings.

This store is never authoritative: when a storage location is connected, its
settings document wins. Read and write failures are logged and treated as
missing values.
"""

import json
import logging
from pathlib import Path
from typing import Any

from .config_file import (
    DEFAULT_CARD_SIZE,
    DEFAULT_THEME_HIGHLIGHT,
    DEFAULT_THEME_PRIMARY,
)

log = logging.getLogger(__name__)

LOCAL_STORE_FILENAME = "local_storage.json"

CARD_SIZE = "cardSize"
THEME_PRIMARY = "themePrimary"
THEME_HIGHLIGHT = "themeHighlight"
OMDB_API_KEY = "omdbApiKey"
HALF_STARS_ENABLED = "halfStarsEnabled"


class LocalSettingsStore:
    """Persists string-keyed values to a JSON file in the app config directory."""

    def __init__(self, config_dir_path: Path):
        self.path = config_dir_path / LOCAL_STORE_FILENAME

    def _read_all(self) -> dict[str, Any]:
        if not self.path.is_file():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            log.warning(f"Local settings store is unreadable, ignoring it: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict[str, Any]) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            return True
        except (TypeError, OSError) as e:
            log.warning(f"Local settings store write failed: {e}")
            return False

    def get_item(self, key: str, default: Any = None) -> Any:
        return self._read_all().get(key, default)

    def set_item(self, key: str, value: Any) -> bool:
        data = self._read_all()
        data[key] = value
        return self._write_all(data)

    def remove_item(self, key: str) -> bool:
        data = self._read_all()
        if key not in data:
            return True
        del data[key]
        return self._write_all(data)

    def clear(self) -> bool:
        return self._write_all({})

    # Typed accessors for the known settings

    def load_theme_colors(self) -> dict[str, str]:
        data = self._read_all()
        return {
            "primary": data.get(THEME_PRIMARY) or DEFAULT_THEME_PRIMARY,
            "highlight": data.get(THEME_HIGHLIGHT) or DEFAULT_THEME_HIGHLIGHT,
        }

    def save_theme_colors(self, primary: str, highlight: str) -> bool:
        data = self._read_all()
        data[THEME_PRIMARY] = primary
        data[THEME_HIGHLIGHT] = highlight
        return self._write_all(data)

    def load_card_size(self) -> str:
        return self.get_item(CARD_SIZE) or DEFAULT_CARD_SIZE

    def save_card_size(self, size: str) -> bool:
        return self.set_item(CARD_SIZE, size)

    def load_half_stars_enabled(self) -> bool:
        value = self.get_item(HALF_STARS_ENABLED)
        if value is None:
            return True
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return bool(value)

    def save_half_stars_enabled(self, enabled: bool) -> bool:
        return self.set_item(HALF_STARS_ENABLED, bool(enabled))

    def load_omdb_api_key(self) -> str:
        return self.get_item(OMDB_API_KEY) or ""

    def save_omdb_api_key(self, api_key: str) -> bool:
        return self.set_item(OMDB_API_KEY, api_key)

    def load_settings(self) -> dict[str, Any]:
        """Returns every known setting, falling back to defaults."""
        theme = self.load_theme_colors()
        return {
            "themePrimary": theme["primary"],
            "themeHighlight": theme["highlight"],
            "cardSize": self.load_card_size(),
            "halfStarsEnabled": self.load_half_stars_enabled(),
            "omdbApiKey": self.load_omdb_api_key(),
        }
