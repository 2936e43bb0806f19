"""
Playback engine: one track at a time through decoder chain and output sink.

Owns play/pause/stop/seek semantics and computes elapsed position from the
wall clock. The audio device is a singleton resource here: any previous
output stream is fully torn down before a new one is opened.
"""

import threading
import time
from typing import Callable, Optional

from loguru import logger

from tunebox.domain.library.models import Track
from tunebox.errors import DeviceError, PlaybackError, TuneboxError

from .decoders import DecoderChain, SampleStream
from .sink import Sink, SoundDeviceSink
from .state import PlaybackSnapshot, PlaybackState, PlaybackStatus, clamp_volume

SinkFactory = Callable[[SampleStream, float], Sink]


def default_sink_factory(stream: SampleStream, gain: float) -> Sink:
    return SoundDeviceSink(stream, gain)


class PlaybackEngine:
    """Transport control over a single decode + output pipeline."""

    def __init__(
        self,
        decoders: Optional[DecoderChain] = None,
        sink_factory: SinkFactory = default_sink_factory,
        volume: int = 70,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.decoders = decoders or DecoderChain.default()
        self._sink_factory = sink_factory
        self._clock = clock
        self._lock = threading.RLock()
        self._state = PlaybackState(volume=clamp_volume(volume))
        self._stream: Optional[SampleStream] = None
        self._sink: Optional[Sink] = None
        self._last_track: Optional[Track] = None

    @property
    def status(self) -> PlaybackStatus:
        return self._state.status

    @property
    def current_track(self) -> Optional[Track]:
        return self._state.track

    @property
    def volume(self) -> int:
        return self._state.volume

    def load(self, track: Track) -> None:
        """Stop whatever is playing, open track and start playing it.

        Raises:
            DecodeError: If no decoder accepts the file (engine left Stopped)
            DeviceError: If the output device can't be opened (engine left Stopped)
        """
        with self._lock:
            self._teardown()
            self._state.track = None

            self._open_pipeline(track.path, start=0.0)

            duration = self._stream.duration or track.duration
            self._state.track = track
            self._state.duration = duration
            self._state.accumulated_elapsed = 0.0
            self._state.started_at = self._clock()
            self._state.status = PlaybackStatus.PLAYING
            self._last_track = track
            logger.info(f"Loaded {track.path} (duration={duration})")

    def play(self) -> None:
        """Resume from Paused, or restart the last track from Stopped.

        Raises:
            PlaybackError: If nothing has ever been loaded
        """
        with self._lock:
            status = self._state.status
            if status == PlaybackStatus.PLAYING:
                return
            if status == PlaybackStatus.PAUSED:
                self._sink.play()
                self._state.started_at = self._clock()
                self._state.status = PlaybackStatus.PLAYING
                logger.debug(f"Resumed at {self._state.accumulated_elapsed:.2f}s")
                return
            if self._last_track is None:
                raise PlaybackError("No track loaded")
            self.load(self._last_track)

    def pause(self) -> None:
        with self._lock:
            if self._state.status != PlaybackStatus.PLAYING:
                return
            now = self._clock()
            self._state.accumulated_elapsed += max(0.0, now - self._state.started_at)
            self._state.started_at = None
            self._state.status = PlaybackStatus.PAUSED
            self._sink.pause()
            logger.debug(f"Paused at {self._state.accumulated_elapsed:.2f}s")

    def stop(self) -> None:
        with self._lock:
            self._teardown()

    def seek(self, position: float) -> float:
        """Reposition the current track, keeping Playing/Paused.

        Returns:
            The clamped position actually seeked to

        Raises:
            PlaybackError: If no track is loaded
        """
        with self._lock:
            track = self._state.track
            status = self._state.status
            if track is None or status == PlaybackStatus.STOPPED:
                raise PlaybackError("Nothing to seek in")

            position = max(0.0, float(position))
            if self._state.duration:
                position = min(position, self._state.duration)

            self._close_pipeline()
            try:
                self._open_pipeline(track.path, start=position, start_output=status == PlaybackStatus.PLAYING)
            except TuneboxError:
                self._reset_to_stopped()
                raise

            self._state.accumulated_elapsed = position
            self._state.started_at = self._clock() if status == PlaybackStatus.PLAYING else None
            logger.debug(f"Seeked to {position:.2f}s")
            return position

    def set_volume(self, level: int) -> int:
        """Clamp level to 0-100 and apply it to the sink."""
        with self._lock:
            self._state.volume = clamp_volume(level)
            if self._sink is not None:
                self._sink.set_gain(self._state.volume / 100.0)
            return self._state.volume

    def elapsed(self) -> float:
        with self._lock:
            return self._state.elapsed(self._clock())

    def is_finished(self) -> bool:
        """True when Playing and the sink has played out the whole stream."""
        with self._lock:
            return (
                self._state.status == PlaybackStatus.PLAYING
                and self._sink is not None
                and self._sink.finished
            )

    def snapshot(self) -> PlaybackSnapshot:
        with self._lock:
            state = self._state
            return PlaybackSnapshot(
                status=state.status,
                track=state.track,
                position=state.elapsed(self._clock()),
                duration=state.duration,
                volume=state.volume,
            )

    def close(self) -> None:
        """Release the device on shutdown."""
        self.stop()

    def _open_pipeline(self, path: str, start: float, start_output: bool = True) -> None:
        stream = self.decoders.open(path, start)
        try:
            sink = self._sink_factory(stream, self._state.volume / 100.0)
        except DeviceError:
            stream.close()
            raise
        if start_output:
            try:
                sink.play()
            except DeviceError:
                sink.close()
                stream.close()
                raise
        self._stream = stream
        self._sink = sink

    def _close_pipeline(self) -> None:
        if self._sink is not None:
            self._sink.close()
            self._sink = None
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def _teardown(self) -> None:
        was_active = self._state.status != PlaybackStatus.STOPPED
        self._close_pipeline()
        self._reset_to_stopped()
        if was_active:
            logger.debug("Playback stopped")

    def _reset_to_stopped(self) -> None:
        self._state.status = PlaybackStatus.STOPPED
        self._state.track = None
        self._state.started_at = None
        self._state.accumulated_elapsed = 0.0
        self._state.duration = None
