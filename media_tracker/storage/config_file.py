"""
Reads and writes the portable settings document (.mmt.config) kept at the root
of the connected storage location.

Every function here degrades to a safe default instead of raising: a missing
connection, a missing file, or a malformed document all read as "no settings".
"""

import json
import logging
from typing import Any

from .adapter import StorageAdapter

log = logging.getLogger(__name__)

CONFIG_FILENAME = ".mmt.config"

DEFAULT_THEME_PRIMARY = "#0b1220"
DEFAULT_THEME_HIGHLIGHT = "#7c3aed"
DEFAULT_CARD_SIZE = "medium"


def _is_usable(adapter: StorageAdapter | None) -> bool:
    return adapter is not None and adapter.is_connected()


def parse_config(content: str | bytes) -> dict[str, Any]:
    """Parses config file content, returning {} for anything but a JSON object."""
    try:
        document = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        log.warning(f"Ignoring malformed {CONFIG_FILENAME}: {e}")
        return {}
    if not isinstance(document, dict):
        log.warning(f"Ignoring {CONFIG_FILENAME}: expected a JSON object.")
        return {}
    return document


async def load_config_from_file(adapter: StorageAdapter | None) -> dict[str, Any]:
    """
    Loads the settings document from storage.

    Returns:
        The parsed document, or {} if storage is not connected, the file does
        not exist, or it cannot be parsed.
    """
    if not _is_usable(adapter):
        return {}

    try:
        content = await adapter.read_file(CONFIG_FILENAME)
    except Exception as e:
        log.warning(f"Error loading config from file: {e}")
        return {}

    if not content:
        return {}
    return parse_config(content)


async def save_config_to_file(
    adapter: StorageAdapter | None, config: dict[str, Any]
) -> bool:
    """
    Writes the whole settings document, replacing the previous one.

    Returns:
        True on success, False if storage is not connected or the write failed.
    """
    if not _is_usable(adapter):
        log.warning("Cannot save config: storage not connected.")
        return False

    try:
        content = json.dumps(config, indent=2)
        await adapter.write_file(CONFIG_FILENAME, content)
        return True
    except Exception as e:
        log.error(f"Error saving config to file: {e}")
        return False


async def update_config_value(
    adapter: StorageAdapter | None, key: str, value: Any
) -> bool:
    """
    Sets a single key by reading, modifying and writing back the document.

    Concurrent writers are not coordinated; the last write wins.
    """
    if not _is_usable(adapter):
        return False

    current = await load_config_from_file(adapter)
    return await save_config_to_file(adapter, {**current, key: value})


async def get_config_value(
    adapter: StorageAdapter | None, key: str, default: Any = None
) -> Any:
    """Returns the stored value for key, or default if it is absent."""
    try:
        config = await load_config_from_file(adapter)
    except Exception as e:
        log.error(f"Error getting config value '{key}': {e}")
        return default
    return config[key] if key in config else default


def merge_configs(
    local_config: dict[str, Any], file_config: dict[str, Any]
) -> dict[str, Any]:
    """Shallow merge where every key from the file overrides the local one."""
    return {**local_config, **file_config}


def get_default_config() -> dict[str, Any]:
    """Returns the built-in baseline settings."""
    return {
        "themePrimary": DEFAULT_THEME_PRIMARY,
        "themeHighlight": DEFAULT_THEME_HIGHLIGHT,
        "cardSize": DEFAULT_CARD_SIZE,
        "halfStarsEnabled": True,
        "omdbApiKey": "",
    }
