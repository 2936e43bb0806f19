"""
Playback state and wall-clock position tracking.

Position is never read back from the decoder: some decoders under-report
or stall on position queries. It is derived from the time playback entered
Playing plus whatever was accumulated before the last pause or seek.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, NamedTuple, Optional

from tunebox.domain.library.models import Track

MIN_VOLUME = 0
MAX_VOLUME = 100


class PlaybackStatus(str, Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


def clamp_volume(level: int) -> int:
    """Clamp a volume level to 0-100."""
    return max(MIN_VOLUME, min(MAX_VOLUME, int(level)))


@dataclass
class PlaybackState:
    """Mutable playback state owned by the engine.

    Invariants:
        - PLAYING implies a loaded track and a started_at timestamp
        - STOPPED implies accumulated_elapsed == 0 and no started_at
    """

    status: PlaybackStatus = PlaybackStatus.STOPPED
    track: Optional[Track] = None
    started_at: Optional[float] = None  # clock() reading when Playing began
    accumulated_elapsed: float = 0.0  # seconds carried across pause/seek
    duration: Optional[float] = None
    volume: int = 70

    def elapsed(self, now: float) -> float:
        """Reported position in seconds at clock reading ``now``."""
        if self.status == PlaybackStatus.PLAYING and self.started_at is not None:
            return self.accumulated_elapsed + max(0.0, now - self.started_at)
        return self.accumulated_elapsed


class PlaybackSnapshot(NamedTuple):
    """Immutable, consistent view of the engine at one instant."""

    status: PlaybackStatus
    track: Optional[Track]
    position: float
    duration: Optional[float]
    volume: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.status.value,
            "track": self.track.path if self.track else None,
            "title": self.track.display_name if self.track else None,
            "position": round(self.position, 3),
            "duration": self.duration,
            "volume": self.volume,
        }
