"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the application, such as configuration and media records.
"""

from .config import AppConfig
from .item import MediaItem, UndoInfo

__all__ = ["AppConfig", "MediaItem", "UndoInfo"]
