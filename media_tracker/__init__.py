"""
media-tracker: storage and settings core for a markdown-based book and movie tracker.
"""

__version__ = "0.4.0"
