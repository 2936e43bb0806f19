"""
Music library domain models.

Contains data structures for representing music tracks.
"""

from pathlib import Path
from typing import NamedTuple, Optional


class Track(NamedTuple):
    """A playable audio file plus optional metadata.

    Tracks are immutable once added to a playlist. Duration is None when
    the file's tags don't report it; the engine fills the gap from the
    decoder at load time.
    """

    path: str  # Absolute path
    title: Optional[str] = None
    artist: Optional[str] = None
    duration: Optional[float] = None  # in seconds

    @property
    def display_name(self) -> str:
        """Human readable name: "Artist - Title", title, or file name."""
        if self.title and self.artist:
            return f"{self.artist} - {self.title}"
        if self.title:
            return self.title
        return Path(self.path).name
