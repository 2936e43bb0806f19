"""Blessed UI helper functions."""

from .filesystem import list_directory, open_directory
from .terminal import clear_below, write_at

__all__ = ["clear_below", "list_directory", "open_directory", "write_at"]
