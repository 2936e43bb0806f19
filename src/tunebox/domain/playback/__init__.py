"""Playback domain - decoding, audio output and transport state.

This domain handles:
- Decoder fallback chain (libsndfile fast path, ffmpeg fallback)
- The single output stream to the audio device
- Playback state (playing, paused, stopped) and wall-clock position
"""

from .decoders import (
    Decoder,
    DecoderChain,
    FFmpegDecoder,
    SampleStream,
    SoundFileDecoder,
    check_ffmpeg_available,
)
from .engine import PlaybackEngine
from .sink import Sink, SoundDeviceSink
from .state import PlaybackSnapshot, PlaybackState, PlaybackStatus, clamp_volume

__all__ = [
    "Decoder",
    "DecoderChain",
    "FFmpegDecoder",
    "PlaybackEngine",
    "PlaybackSnapshot",
    "PlaybackState",
    "PlaybackStatus",
    "SampleStream",
    "Sink",
    "SoundDeviceSink",
    "SoundFileDecoder",
    "check_ffmpeg_available",
    "clamp_volume",
]
