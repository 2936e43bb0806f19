"""
Daemon core: the single owner of the playlist and the playback engine.

All commands go through one worker thread that drains a queue, so every
command runs to completion before the next one starts. Connection threads
never touch the playlist or engine directly; they call ``submit()`` and wait
on a private reply queue.
"""

import queue
import threading
import time
from typing import Any, Callable, Dict, Iterable, Optional

from loguru import logger

from tunebox.core.config import DEFAULT_COMMAND_TIMEOUT
from tunebox.domain.library import (
    DEFAULT_SUPPORTED_FORMATS,
    collect_tracks,
    read_track,
    validate_track_path,
)
from tunebox.domain.playback import PlaybackEngine, PlaybackStatus
from tunebox.domain.playlists import Playlist
from tunebox.errors import (
    DecodeError,
    EmptyPlaylistError,
    ErrorKind,
    InvalidRequestError,
    PlaybackError,
    TuneboxError,
)
from tunebox.ipc.protocol import Command, Request, Response

# Undecodable tracks skipped by next/prev before giving up
MAX_SKIP_ATTEMPTS = 5

# Auto-advance is suppressed this long after a manual command
MANUAL_DEBOUNCE = 2.0

# Commands that don't count as user activity for the debounce
READ_ONLY_COMMANDS = {Command.STATUS, Command.PLAYLIST}

_SHUTDOWN = object()


class DaemonCore:
    """Serializes every command against one Playlist and one PlaybackEngine."""

    def __init__(
        self,
        engine: PlaybackEngine,
        playlist: Playlist,
        supported_formats: Iterable[str] = DEFAULT_SUPPORTED_FORMATS,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        autoadvance_interval: float = 0.5,
        debounce: float = MANUAL_DEBOUNCE,
        clock: Callable[[], float] = time.monotonic,
        on_shutdown: Optional[Callable[[], None]] = None,
    ):
        self.engine = engine
        self.playlist = playlist
        self.supported_formats = tuple(supported_formats)
        self.command_timeout = command_timeout
        self.autoadvance_interval = autoadvance_interval
        self.debounce = debounce
        self._clock = clock
        self.on_shutdown = on_shutdown

        self._queue: "queue.Queue" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._last_manual: Optional[float] = None

        self._handlers: Dict[Command, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
            Command.PLAY: self._play,
            Command.PAUSE: self._pause,
            Command.STOP: self._stop,
            Command.NEXT: self._next,
            Command.PREV: self._prev,
            Command.ADD: self._add,
            Command.REMOVE: self._remove,
            Command.JUMP: self._jump,
            Command.SEEK: self._seek,
            Command.VOLUME: self._volume,
            Command.STATUS: self._status,
            Command.PLAYLIST: self._playlist,
            Command.CLEAR: self._clear,
            Command.SHUTDOWN: self._shutdown,
        }

    # ------------------------------------------------------------------
    # Worker lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the worker thread."""
        if self.is_running():
            return
        self._thread = threading.Thread(target=self.run, name="tunebox-core", daemon=True)
        self._thread.start()

    def request_shutdown(self) -> None:
        """Ask the worker to exit once queued commands are drained."""
        self._queue.put(_SHUTDOWN)

    def stop(self) -> None:
        self.request_shutdown()
        self.join(timeout=5.0)

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run(self) -> None:
        """Worker loop: one command at a time, auto-advance while idle."""
        logger.info("Daemon core worker started")
        try:
            while True:
                try:
                    item = self._queue.get(timeout=self.autoadvance_interval)
                except queue.Empty:
                    self.check_autoadvance()
                    continue

                if item is _SHUTDOWN:
                    break

                request, reply = item
                reply.put(self.handle(request))

                if request.command == Command.SHUTDOWN:
                    break
                self.check_autoadvance()
        finally:
            self.engine.close()
            logger.info("Daemon core worker stopped")
            if self.on_shutdown is not None:
                self.on_shutdown()

    def submit(self, request: Request, timeout: Optional[float] = None) -> Response:
        """Queue a request for the worker and wait for its response.

        Safe to call from any thread. Never raises; a timeout becomes an
        Internal error response.
        """
        reply: "queue.Queue[Response]" = queue.Queue(maxsize=1)
        self._queue.put((request, reply))
        try:
            return reply.get(timeout=timeout or self.command_timeout)
        except queue.Empty:
            logger.error(f"Command '{request.command.value}' timed out")
            return Response.failure(ErrorKind.INTERNAL, "Command timed out")

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def handle(self, request: Request) -> Response:
        """Run one request to completion and build its response.

        Only the worker thread (or a single-threaded test) may call this.
        """
        command = request.command
        args = request.args or {}
        if command not in READ_ONLY_COMMANDS:
            self._last_manual = self._clock()
            logger.debug(f"Command: {command.value} {args}")

        handler = self._handlers.get(command)
        if handler is None:
            return Response.failure(ErrorKind.INVALID_REQUEST, f"Unknown command: {command}")

        try:
            return Response.success(handler(args))
        except TuneboxError as e:
            logger.warning(f"{command.value} failed: {e.kind.value}: {e}")
            return Response.failure(e.kind, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error handling '{command.value}'")
            return Response.failure(ErrorKind.INTERNAL, f"Unexpected error: {e}")

    def check_autoadvance(self) -> None:
        """Advance to the next track when the current one has played out."""
        if not self.engine.is_finished():
            return
        if self._last_manual is not None and self._clock() - self._last_manual < self.debounce:
            return

        logger.info("Track finished, auto-advancing")
        try:
            self._navigate(forward=True)
        except TuneboxError as e:
            logger.warning(f"Auto-advance failed: {e}")

    # ------------------------------------------------------------------
    # Command handlers
    # ------------------------------------------------------------------

    def _play(self, args: Dict[str, Any]) -> Dict[str, Any]:
        path = args.get("path")
        if path is not None:
            return self._play_path(_require_str(args, "path"))

        status = self.engine.status
        if status == PlaybackStatus.PAUSED:
            self.engine.play()
        elif status == PlaybackStatus.STOPPED:
            if self.playlist.is_empty():
                raise EmptyPlaylistError("Playlist is empty")
            if self.playlist.current_index is None:
                self.playlist.jump_to(0)
            self.engine.load(self.playlist.current())
        return self._status({})

    def _play_path(self, path: str) -> Dict[str, Any]:
        resolved = str(validate_track_path(path, self.supported_formats))
        index = self.playlist.index_of(resolved)
        if index is None:
            self.playlist.add(read_track(resolved))
            index = len(self.playlist) - 1
        track = self.playlist.jump_to(index)
        self.engine.load(track)
        return self._status({})

    def _pause(self, args: Dict[str, Any]) -> Dict[str, Any]:
        self.engine.pause()
        return self._status({})

    def _stop(self, args: Dict[str, Any]) -> Dict[str, Any]:
        self.engine.stop()
        return self._status({})

    def _next(self, args: Dict[str, Any]) -> Dict[str, Any]:
        return self._navigate(forward=True)

    def _prev(self, args: Dict[str, Any]) -> Dict[str, Any]:
        return self._navigate(forward=False)

    def _navigate(self, forward: bool) -> Dict[str, Any]:
        """Move the cursor and play the new track, skipping undecodable ones.

        At the boundary playback stops and the cursor stays put.
        """
        if self.playlist.is_empty():
            raise EmptyPlaylistError("Playlist is empty")

        last_error: Optional[DecodeError] = None
        for _ in range(MAX_SKIP_ATTEMPTS):
            track = self.playlist.next() if forward else self.playlist.prev()
            if track is None:
                self.engine.stop()
                data = self._status({})
                data["at_boundary"] = True
                return data

            try:
                self.engine.load(track)
            except DecodeError as e:
                logger.warning(f"Skipping undecodable track {track.path}: {e}")
                last_error = e
                continue

            data = self._status({})
            data["at_boundary"] = False
            return data

        raise last_error

    def _add(self, args: Dict[str, Any]) -> Dict[str, Any]:
        path = _require_str(args, "path")
        tracks = collect_tracks(path, self.supported_formats)
        self.playlist.extend(tracks)
        logger.info(f"Added {len(tracks)} track(s) from {path}")
        return {
            "added": [track.path for track in tracks],
            "playlist_length": len(self.playlist),
        }

    def _remove(self, args: Dict[str, Any]) -> Dict[str, Any]:
        index = _require_int(args, "index")
        was_current = index == self.playlist.current_index
        removed = self.playlist.remove(index)
        if was_current and self.engine.current_track == removed:
            self.engine.stop()
        return {"removed": removed.path, "playlist_length": len(self.playlist)}

    def _jump(self, args: Dict[str, Any]) -> Dict[str, Any]:
        track = self.playlist.jump_to(_require_int(args, "index"))
        self.engine.load(track)
        return self._status({})

    def _seek(self, args: Dict[str, Any]) -> Dict[str, Any]:
        position = _require_number(args, "position")
        if self.engine.current_track is None:
            raise PlaybackError("No track loaded")
        self.engine.seek(position)
        return self._status({})

    def _volume(self, args: Dict[str, Any]) -> Dict[str, Any]:
        level = _require_number(args, "level")
        return {"volume": self.engine.set_volume(int(level))}

    def _status(self, args: Dict[str, Any]) -> Dict[str, Any]:
        data = self.engine.snapshot().to_dict()
        data["playlist_length"] = len(self.playlist)
        data["current_index"] = self.playlist.current_index
        return data

    def _playlist(self, args: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "tracks": [track.path for track in self.playlist.tracks],
            "titles": [track.display_name for track in self.playlist.tracks],
            "current_index": self.playlist.current_index,
        }

    def _clear(self, args: Dict[str, Any]) -> Dict[str, Any]:
        self.engine.stop()
        self.playlist.clear()
        logger.info("Playlist cleared")
        return self._status({})

    def _shutdown(self, args: Dict[str, Any]) -> Dict[str, Any]:
        logger.info("Shutdown requested")
        self.engine.stop()
        return {"shutting_down": True}


def _require_str(args: Dict[str, Any], name: str) -> str:
    value = args.get(name)
    if not isinstance(value, str) or not value:
        raise InvalidRequestError(f"'{name}' must be a non-empty string")
    return value


def _require_int(args: Dict[str, Any], name: str) -> int:
    value = args.get(name)
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidRequestError(f"'{name}' must be an integer")
    return value


def _require_number(args: Dict[str, Any], name: str) -> float:
    value = args.get(name)
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise InvalidRequestError(f"'{name}' must be a number")
    return value
