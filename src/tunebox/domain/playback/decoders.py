"""
Decoder fallback chain: turn a file into a stream of float32 PCM blocks.

Decoders are tried in priority order. The fast path is libsndfile via
``soundfile`` (in-process, seekable); the general-purpose fallback pipes
the file through ``ffmpeg`` and handles every container ffmpeg knows.
"""

import json
import shutil
import subprocess
from pathlib import Path
from typing import Iterable, Optional, Sequence

import numpy as np
from loguru import logger

from tunebox.errors import DecodeError

# libsndfile >= 1.1 reads mp3; the rest need ffmpeg
SOUNDFILE_FORMATS = (".wav", ".flac", ".ogg", ".aiff", ".aif", ".mp3")

FFMPEG_SAMPLE_RATE = 44100
FFMPEG_CHANNELS = 2

# ffprobe must answer quickly or the file is treated as undecodable
PROBE_TIMEOUT = 5.0


class SampleStream:
    """Base class for decoded sample streams."""

    samplerate: int = FFMPEG_SAMPLE_RATE
    channels: int = FFMPEG_CHANNELS
    duration: Optional[float] = None

    def read(self, frames: int) -> np.ndarray:
        """Return up to ``frames`` frames shaped (n, channels); n == 0 at EOF."""
        raise NotImplementedError("Subclasses must implement read()")

    def close(self) -> None:
        raise NotImplementedError("Subclasses must implement close()")


class Decoder:
    """Base class for decoders in the fallback chain."""

    name = "decoder"
    extensions: Optional[Sequence[str]] = None  # None accepts any extension

    def accepts(self, path: str) -> bool:
        if self.extensions is None:
            return True
        return Path(path).suffix.lower() in self.extensions

    def open(self, path: str, start: float = 0.0) -> SampleStream:
        """Open path for decoding, positioned at ``start`` seconds.

        Raises:
            DecodeError: If this decoder can't handle the file
        """
        raise NotImplementedError("Subclasses must implement open()")


class SoundFileStream(SampleStream):
    """Sample stream backed by an open soundfile.SoundFile."""

    def __init__(self, sound_file):
        self._file = sound_file
        self.samplerate = sound_file.samplerate
        self.channels = sound_file.channels
        frames = sound_file.frames
        self.duration = frames / sound_file.samplerate if frames > 0 else None

    def read(self, frames: int) -> np.ndarray:
        return self._file.read(frames, dtype="float32", always_2d=True)

    def close(self) -> None:
        self._file.close()


class SoundFileDecoder(Decoder):
    """Fast-path decoder using libsndfile."""

    name = "soundfile"
    extensions = SOUNDFILE_FORMATS

    def open(self, path: str, start: float = 0.0) -> SampleStream:
        try:
            import soundfile as sf
        except OSError as e:
            # libsndfile missing on this system
            raise DecodeError(f"soundfile unavailable: {e}") from e

        try:
            sound_file = sf.SoundFile(path)
        except (RuntimeError, OSError) as e:
            raise DecodeError(f"libsndfile cannot open {path}: {e}") from e

        try:
            if start > 0:
                sound_file.seek(min(int(start * sound_file.samplerate), sound_file.frames))
        except (RuntimeError, ValueError) as e:
            sound_file.close()
            raise DecodeError(f"Seek failed in {path}: {e}") from e

        return SoundFileStream(sound_file)


def check_ffmpeg_available() -> bool:
    """Check if ffmpeg and ffprobe are on PATH."""
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


def make_ffmpeg_cmd(path: str, start: float, sample_rate: int, channels: int) -> list[str]:
    return [
        "ffmpeg", "-hide_banner", "-loglevel", "error",
        "-ss", str(max(0.0, start)),
        "-i", path,
        "-vn",
        "-ac", str(channels),
        "-ar", str(sample_rate),
        "-f", "f32le",
        "pipe:1",
    ]


def probe_duration(path: str) -> Optional[float]:
    """Ask ffprobe for the container duration.

    Raises:
        DecodeError: If ffprobe rejects the file or doesn't answer in time
    """
    cmd = [
        "ffprobe", "-v", "error",
        "-select_streams", "a:0",
        "-show_entries", "format=duration:stream=codec_type",
        "-of", "json",
        path,
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=PROBE_TIMEOUT)
    except subprocess.TimeoutExpired as e:
        raise DecodeError(f"ffprobe timed out on {path}") from e
    except OSError as e:
        raise DecodeError(f"Failed to run ffprobe: {e}") from e

    if result.returncode != 0:
        raise DecodeError(f"ffprobe rejected {path}: {result.stderr.strip()}")

    try:
        info = json.loads(result.stdout or "{}")
    except json.JSONDecodeError as e:
        raise DecodeError(f"Unreadable ffprobe output for {path}") from e

    if not info.get("streams"):
        raise DecodeError(f"No audio stream in {path}")

    try:
        return float(info.get("format", {}).get("duration"))
    except (TypeError, ValueError):
        return None


class FFmpegStream(SampleStream):
    """Sample stream reading float32 PCM from an ffmpeg subprocess."""

    def __init__(self, process: subprocess.Popen, duration: Optional[float],
                 samplerate: int = FFMPEG_SAMPLE_RATE, channels: int = FFMPEG_CHANNELS):
        self._process = process
        self.samplerate = samplerate
        self.channels = channels
        self.duration = duration

    def read(self, frames: int) -> np.ndarray:
        stdout = self._process.stdout
        if stdout is None:
            return np.zeros((0, self.channels), dtype=np.float32)

        frame_bytes = self.channels * 4
        data = stdout.read(frames * frame_bytes)
        usable = len(data) - (len(data) % frame_bytes)
        samples = np.frombuffer(data[:usable], dtype=np.float32)
        return samples.reshape((-1, self.channels))

    def close(self) -> None:
        if self._process.poll() is None:
            self._process.terminate()
            try:
                self._process.wait(timeout=1.0)
            except subprocess.TimeoutExpired:
                self._process.kill()
                self._process.wait(timeout=0.5)
        if self._process.stdout:
            self._process.stdout.close()


class FFmpegDecoder(Decoder):
    """General-purpose decoder piping through ffmpeg."""

    name = "ffmpeg"

    def __init__(self, sample_rate: int = FFMPEG_SAMPLE_RATE, channels: int = FFMPEG_CHANNELS):
        self.sample_rate = sample_rate
        self.channels = channels

    def open(self, path: str, start: float = 0.0) -> SampleStream:
        if not check_ffmpeg_available():
            raise DecodeError("ffmpeg/ffprobe not found in PATH")

        duration = probe_duration(path)
        cmd = make_ffmpeg_cmd(path, start, self.sample_rate, self.channels)
        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
            )
        except OSError as e:
            raise DecodeError(f"Failed to start ffmpeg: {e}") from e

        return FFmpegStream(process, duration, self.sample_rate, self.channels)


class DecoderChain:
    """Prioritized list of decoders, tried in order until one accepts a file."""

    def __init__(self, decoders: Iterable[Decoder]):
        self.decoders = list(decoders)

    @classmethod
    def default(cls) -> "DecoderChain":
        return cls([SoundFileDecoder(), FFmpegDecoder()])

    def open(self, path: str, start: float = 0.0) -> SampleStream:
        """Open path with the first decoder that accepts it.

        Raises:
            DecodeError: If the file is unreadable or every decoder rejects it
        """
        file_path = Path(path)
        if not file_path.is_file():
            raise DecodeError(f"File not found: {path}")
        try:
            with open(file_path, "rb"):
                pass
        except OSError as e:
            raise DecodeError(f"Cannot read {path}: {e}") from e

        failures = []
        for decoder in self.decoders:
            if not decoder.accepts(path):
                continue
            try:
                stream = decoder.open(path, start)
            except DecodeError as e:
                logger.debug(f"Decoder {decoder.name} rejected {path}: {e}")
                failures.append(f"{decoder.name}: {e}")
                continue
            logger.info(f"Decoding {file_path.name} with {decoder.name}")
            return stream

        detail = "; ".join(failures) if failures else "no decoder for this format"
        raise DecodeError(f"Cannot decode {file_path.name} ({detail})")
