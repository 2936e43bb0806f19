"""
Playlist: ordered tracks with a navigable cursor.

Pure data and navigation logic, no I/O. The daemon core is the only writer.

IMPORTANT: Positions are 0-indexed internally but displayed 1-indexed to
users. Always add 1 when showing a position.
"""

from enum import Enum
from typing import Iterable, Optional

from tunebox.domain.library.models import Track
from tunebox.errors import OutOfRangeError


class NavigationPolicy(str, Enum):
    """What next()/prev() do at the ends of the playlist."""

    STOP = "stop"  # Stay on the boundary and report no more tracks
    WRAP = "wrap"  # Loop around to the other end


class Playlist:
    """Ordered collection of tracks plus a current-index cursor.

    Invariant: ``current_index`` is either None or a valid index into
    ``tracks``.
    """

    def __init__(self, policy: NavigationPolicy = NavigationPolicy.STOP):
        self.policy = policy
        self._tracks: list[Track] = []
        self._current_index: Optional[int] = None

    def __len__(self) -> int:
        return len(self._tracks)

    @property
    def tracks(self) -> list[Track]:
        return list(self._tracks)

    @property
    def current_index(self) -> Optional[int]:
        return self._current_index

    def is_empty(self) -> bool:
        return not self._tracks

    def add(self, track: Track) -> None:
        """Append a track. The cursor is untouched."""
        self._tracks.append(track)

    def extend(self, tracks: Iterable[Track]) -> None:
        for track in tracks:
            self.add(track)

    def index_of(self, path: str) -> Optional[int]:
        for i, track in enumerate(self._tracks):
            if track.path == path:
                return i
        return None

    def remove(self, index: int) -> Track:
        """Delete the track at index and keep the cursor valid.

        Raises:
            OutOfRangeError: If index is not a valid position
        """
        self._check_index(index)
        removed = self._tracks.pop(index)

        if not self._tracks:
            self._current_index = None
        elif self._current_index is not None:
            if index < self._current_index:
                self._current_index -= 1
            elif index == self._current_index:
                # Cursor moves onto the track that slid into the removed slot
                self._current_index = min(self._current_index, len(self._tracks) - 1)

        return removed

    def clear(self) -> None:
        self._tracks.clear()
        self._current_index = None

    def next(self) -> Optional[Track]:
        """Advance the cursor by one.

        Returns:
            The new current track, or None when there is no further track.
            Under STOP the cursor stays on the last index.
        """
        if not self._tracks:
            return None

        if self._current_index is None:
            self._current_index = 0
        elif self._current_index + 1 < len(self._tracks):
            self._current_index += 1
        elif self.policy == NavigationPolicy.WRAP:
            self._current_index = 0
        else:
            return None

        return self._tracks[self._current_index]

    def prev(self) -> Optional[Track]:
        """Move the cursor back by one; mirrors next()."""
        if not self._tracks:
            return None

        if self._current_index is None:
            self._current_index = 0
        elif self._current_index > 0:
            self._current_index -= 1
        elif self.policy == NavigationPolicy.WRAP:
            self._current_index = len(self._tracks) - 1
        else:
            return None

        return self._tracks[self._current_index]

    def jump_to(self, index: int) -> Track:
        """Set the cursor directly.

        Raises:
            OutOfRangeError: If index is not a valid position
        """
        self._check_index(index)
        self._current_index = index
        return self._tracks[index]

    def current(self) -> Optional[Track]:
        if self._current_index is None:
            return None
        return self._tracks[self._current_index]

    def _check_index(self, index: int) -> None:
        if not isinstance(index, int) or isinstance(index, bool):
            raise OutOfRangeError(f"Invalid playlist index: {index!r}")
        if index < 0 or index >= len(self._tracks):
            raise OutOfRangeError(
                f"Index {index + 1} out of range (playlist has {len(self._tracks)} tracks)"
            )
