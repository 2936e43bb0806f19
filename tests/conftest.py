"""Shared fixtures: in-memory audio pipeline and a controllable clock."""

from pathlib import Path

import numpy as np
import pytest

from tunebox.daemon.core import DaemonCore
from tunebox.domain.playback import DecoderChain, PlaybackEngine
from tunebox.domain.playback.decoders import Decoder, SampleStream
from tunebox.domain.playback.sink import Sink
from tunebox.domain.playlists import Playlist
from tunebox.errors import DecodeError, DeviceError


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStream(SampleStream):
    def __init__(self, path: str, start: float = 0.0, duration=180.0):
        self.path = path
        self.start = start
        self.duration = duration
        self.closed = False

    def read(self, frames: int) -> np.ndarray:
        return np.zeros((0, self.channels), dtype=np.float32)

    def close(self) -> None:
        self.closed = True


class FakeDecoder(Decoder):
    """Decoder that rejects files whose name is in ``reject``."""

    def __init__(self, name="fake", extensions=None, reject=(), duration=180.0):
        self.name = name
        self.extensions = extensions
        self.reject = set(reject)
        self.duration = duration
        self.opened: list[FakeStream] = []

    def open(self, path: str, start: float = 0.0) -> SampleStream:
        if Path(path).name in self.reject:
            raise DecodeError(f"{self.name} rejects {path}")
        stream = FakeStream(path, start, self.duration)
        self.opened.append(stream)
        return stream


class FakeSink(Sink):
    def __init__(self, stream: SampleStream, gain: float):
        self.stream = stream
        self.gain = gain
        self.playing = False
        self.closed = False
        self.done = False

    @property
    def finished(self) -> bool:
        return self.done

    def play(self) -> None:
        self.playing = True

    def pause(self) -> None:
        self.playing = False

    def set_gain(self, gain: float) -> None:
        self.gain = gain

    def close(self) -> None:
        self.playing = False
        self.closed = True


class SinkRecorder:
    """Sink factory that remembers every sink it built."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sinks: list[FakeSink] = []

    def __call__(self, stream: SampleStream, gain: float) -> FakeSink:
        if self.fail:
            raise DeviceError("No output device")
        sink = FakeSink(stream, gain)
        self.sinks.append(sink)
        return sink

    @property
    def active(self) -> list[FakeSink]:
        return [s for s in self.sinks if not s.closed]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def decoder() -> FakeDecoder:
    return FakeDecoder()


@pytest.fixture
def sinks() -> SinkRecorder:
    return SinkRecorder()


@pytest.fixture
def engine(decoder, sinks, clock) -> PlaybackEngine:
    return PlaybackEngine(decoders=DecoderChain([decoder]), sink_factory=sinks, clock=clock)


@pytest.fixture
def core(engine, clock) -> DaemonCore:
    return DaemonCore(engine, Playlist(), clock=clock)


@pytest.fixture
def music_dir(tmp_path) -> Path:
    """Directory with a few (fake) audio files and some non-audio noise."""
    for name in ["a.mp3", "b.mp3", "c.flac"]:
        (tmp_path / name).write_bytes(b"\x00" * 64)
    (tmp_path / "cover.jpg").write_bytes(b"\xff\xd8")
    (tmp_path / "notes.txt").write_text("not audio")
    return tmp_path


@pytest.fixture
def make_decoder():
    """Factory for decoders with custom names, extensions or rejections."""
    return FakeDecoder


@pytest.fixture
def make_sinks():
    return SinkRecorder
