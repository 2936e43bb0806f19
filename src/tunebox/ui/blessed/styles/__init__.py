"""Blessed UI styling and formatting."""

from .formatting import format_time, format_volume

__all__ = ["format_time", "format_volume"]
