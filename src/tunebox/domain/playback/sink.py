"""
Audio output sink: feeds a SampleStream to the output device.

A feeder thread pulls blocks from the decoder into a small queue; the
PortAudio callback drains the queue and applies the volume gain. Only one
sink may hold the device at a time, the engine tears the old one down
before opening a new one.
"""

import queue
import threading
from typing import Optional

import numpy as np
from loguru import logger

from tunebox.errors import DeviceError

from .decoders import SampleStream

BLOCK_FRAMES = 2048
QUEUE_BLOCKS = 16  # ~0.75s of audio at 44.1kHz


class Sink:
    """Base class for output sinks."""

    @property
    def finished(self) -> bool:
        """True once the whole stream has been played out."""
        raise NotImplementedError("Subclasses must implement finished")

    def play(self) -> None:
        """Start or resume output."""
        raise NotImplementedError("Subclasses must implement play()")

    def pause(self) -> None:
        raise NotImplementedError("Subclasses must implement pause()")

    def set_gain(self, gain: float) -> None:
        raise NotImplementedError("Subclasses must implement set_gain()")

    def close(self) -> None:
        """Stop output and release the device."""
        raise NotImplementedError("Subclasses must implement close()")


class SoundDeviceSink(Sink):
    """Sink writing to the default output device through sounddevice."""

    def __init__(self, stream: SampleStream, gain: float = 1.0, device: Optional[str] = None):
        try:
            import sounddevice as sd
        except OSError as e:
            # PortAudio library not installed
            raise DeviceError(f"Audio output unavailable: {e}") from e

        self._sd = sd
        self._source = stream
        self._gain = gain
        self._blocks: queue.Queue = queue.Queue(maxsize=QUEUE_BLOCKS)
        self._pending = np.zeros((0, stream.channels), dtype=np.float32)
        self._eof = False
        self._finished = threading.Event()
        self._stop_feeding = threading.Event()

        try:
            self._stream = sd.OutputStream(
                samplerate=stream.samplerate,
                channels=stream.channels,
                dtype="float32",
                device=device or None,
                callback=self._callback,
            )
        except (sd.PortAudioError, ValueError) as e:
            raise DeviceError(f"Cannot open output device: {e}") from e

        self._feeder = threading.Thread(target=self._feed, daemon=True, name="SinkFeeder")
        self._feeder.start()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def _feed(self) -> None:
        """Decode ahead of the device so the callback never waits on I/O."""
        while not self._stop_feeding.is_set():
            try:
                block = self._source.read(BLOCK_FRAMES)
            except (RuntimeError, OSError, ValueError) as e:
                logger.warning(f"Decoder stopped with error: {e}")
                block = None
            if block is None or len(block) == 0:
                self._put(None)
                return
            self._put(block)

    def _put(self, item) -> None:
        while not self._stop_feeding.is_set():
            try:
                self._blocks.put(item, timeout=0.1)
                return
            except queue.Full:
                continue

    def _callback(self, outdata, frames, _time, status) -> None:
        if status:
            logger.debug(f"Output status: {status}")

        filled = 0
        while filled < frames:
            if len(self._pending) == 0:
                if self._eof:
                    break
                try:
                    block = self._blocks.get_nowait()
                except queue.Empty:
                    break  # Underrun, pad with silence
                if block is None:
                    self._eof = True
                    break
                self._pending = block
            take = min(frames - filled, len(self._pending))
            outdata[filled:filled + take] = self._pending[:take] * self._gain
            self._pending = self._pending[take:]
            filled += take

        if filled < frames:
            outdata[filled:] = 0
        if self._eof and len(self._pending) == 0:
            self._finished.set()
            raise self._sd.CallbackStop

    def play(self) -> None:
        if self._finished.is_set():
            return
        try:
            self._stream.start()
        except self._sd.PortAudioError as e:
            raise DeviceError(f"Cannot start output: {e}") from e

    def pause(self) -> None:
        # stop() waits for pending buffers; the feeder just blocks on a full queue
        if self._stream.active:
            self._stream.stop()

    def set_gain(self, gain: float) -> None:
        self._gain = gain

    def close(self) -> None:
        self._stop_feeding.set()
        try:
            self._stream.abort()
            self._stream.close()
        except self._sd.PortAudioError as e:
            logger.warning(f"Error closing output stream: {e}")
        self._feeder.join(timeout=1.0)
