"""Library domain - track models and metadata."""

from .metadata import (
    DEFAULT_SUPPORTED_FORMATS,
    collect_tracks,
    is_supported,
    read_track,
    validate_track_path,
)
from .models import Track

__all__ = [
    "DEFAULT_SUPPORTED_FORMATS",
    "Track",
    "collect_tracks",
    "is_supported",
    "read_track",
    "validate_track_path",
]
