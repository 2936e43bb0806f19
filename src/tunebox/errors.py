"""Exceptions raised across tunebox.

Every recoverable failure carries an ErrorKind so the daemon can turn it
into a structured ``{ok: false, error: {kind, message}}`` response.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Wire names for error kinds."""

    DECODE = "DecodeError"
    EMPTY_PLAYLIST = "EmptyPlaylist"
    INVALID_TRACK = "InvalidTrack"
    OUT_OF_RANGE = "OutOfRange"
    CONNECTION = "ConnectionError"
    DEVICE = "DeviceError"
    PLAYBACK = "PlaybackError"
    INVALID_REQUEST = "InvalidRequest"
    INTERNAL = "Internal"


class TuneboxError(Exception):
    """Base exception for tunebox operations."""

    kind: ErrorKind = ErrorKind.INTERNAL


class DecodeError(TuneboxError):
    """Raised when a file is unreadable or no decoder accepts it."""

    kind = ErrorKind.DECODE


class EmptyPlaylistError(TuneboxError):
    """Raised when play is requested with nothing to play."""

    kind = ErrorKind.EMPTY_PLAYLIST


class InvalidTrackError(TuneboxError):
    """Raised when a path does not exist or has an unsupported extension."""

    kind = ErrorKind.INVALID_TRACK


class OutOfRangeError(TuneboxError):
    """Raised when a playlist index is outside the playlist."""

    kind = ErrorKind.OUT_OF_RANGE


class DeviceError(TuneboxError):
    """Raised when the audio output device cannot be opened."""

    kind = ErrorKind.DEVICE


class PlaybackError(TuneboxError):
    """Raised when a transport command needs a loaded track and has none."""

    kind = ErrorKind.PLAYBACK


class InvalidRequestError(TuneboxError):
    """Raised for malformed requests, unknown commands and bad arguments."""

    kind = ErrorKind.INVALID_REQUEST


class DaemonStartError(TuneboxError):
    """Raised when the daemon cannot be reached after auto-start."""

    kind = ErrorKind.CONNECTION


class ServerBindError(TuneboxError):
    """Raised when the IPC endpoint cannot be bound."""

    kind = ErrorKind.INTERNAL
