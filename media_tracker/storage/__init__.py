"""
Storage Layer.

This package handles all data persistence: the storage backends behind the
StorageAdapter contract, the durable handle cache, permission checks, the
portable settings document, and the application's INI config file.
"""

from .adapter import StorageAdapter, StorageFactory
from .config_manager import ConfigManager
from .drive_cache import DriveItemCache
from .handle_cache import HandleCache
from .local import LocalAdapter
from .local_settings import LocalSettingsStore
from .permissions import verify_handle_permission
from .remote import RemoteDriveAdapter

__all__ = [
    "ConfigManager",
    "DriveItemCache",
    "HandleCache",
    "LocalAdapter",
    "LocalSettingsStore",
    "RemoteDriveAdapter",
    "StorageAdapter",
    "StorageFactory",
    "verify_handle_permission",
]
