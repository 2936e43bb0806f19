"""Formatting helper functions."""

from typing import Optional


def format_time(seconds: Optional[float]) -> str:
    """
    Format seconds as M:SS.

    Args:
        seconds: Time in seconds (None renders as --:--)

    Returns:
        Formatted time string
    """
    if seconds is None:
        return "--:--"
    seconds = max(0.0, seconds)
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{minutes}:{secs:02d}"


def format_volume(volume: int, width: int = 10) -> str:
    """Render volume as a small bar, e.g. ``▮▮▮▮▮▮▮▯▯▯ 70%``."""
    filled = round(width * max(0, min(100, volume)) / 100)
    return "▮" * filled + "▯" * (width - filled) + f" {volume}%"
