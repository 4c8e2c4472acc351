"""
Media Record Layer.

This package converts book and movie records to and from the markdown files
kept in the storage location.
"""

from .markdown import generate_markdown, item_from_markdown, parse_markdown

__all__ = ["generate_markdown", "item_from_markdown", "parse_markdown"]
