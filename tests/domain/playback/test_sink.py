"""Tests for the sounddevice sink: callback draining, gain and end of stream."""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from tunebox.domain.playback.decoders import SampleStream
from tunebox.domain.playback.sink import SoundDeviceSink
from tunebox.errors import DeviceError


class CallbackStop(Exception):
    pass


class PortAudioError(Exception):
    pass


class ArrayStream(SampleStream):
    """Serves frames from an in-memory array."""

    def __init__(self, samples: np.ndarray):
        self.samples = samples.astype(np.float32)
        self.channels = samples.shape[1]
        self.path = "memory"

    def read(self, frames: int) -> np.ndarray:
        block, self.samples = self.samples[:frames], self.samples[frames:]
        return block

    def close(self) -> None:
        pass


class BrokenStream(ArrayStream):
    def read(self, frames: int) -> np.ndarray:
        raise RuntimeError("corrupt frame")


@pytest.fixture
def fake_sd():
    sd = MagicMock(name="sounddevice")
    sd.CallbackStop = CallbackStop
    sd.PortAudioError = PortAudioError
    with patch.dict("sys.modules", {"sounddevice": sd}):
        yield sd


def constant(frames: int, value: float = 0.5) -> ArrayStream:
    return ArrayStream(np.full((frames, 2), value))


def fed(sink: SoundDeviceSink) -> SoundDeviceSink:
    """Wait until the feeder has queued the whole stream."""
    sink._feeder.join(timeout=2.0)
    assert not sink._feeder.is_alive()
    return sink


class TestCallback:
    def test_gain_is_applied(self, fake_sd):
        sink = fed(SoundDeviceSink(constant(3000), gain=0.5))
        out = np.ones((2048, 2), dtype=np.float32)

        sink._callback(out, 2048, None, None)

        assert np.allclose(out, 0.25)
        assert not sink.finished

    def test_end_of_stream_pads_and_stops(self, fake_sd):
        sink = fed(SoundDeviceSink(constant(3000), gain=0.5))
        sink._callback(np.ones((2048, 2), dtype=np.float32), 2048, None, None)
        out = np.ones((2048, 2), dtype=np.float32)

        with pytest.raises(CallbackStop):
            sink._callback(out, 2048, None, None)

        assert np.allclose(out[:952], 0.25)
        assert np.all(out[952:] == 0)
        assert sink.finished

    def test_set_gain_affects_next_buffer(self, fake_sd):
        sink = fed(SoundDeviceSink(constant(4096, value=1.0), gain=1.0))
        first = np.zeros((1024, 2), dtype=np.float32)
        second = np.zeros((1024, 2), dtype=np.float32)

        sink._callback(first, 1024, None, None)
        sink.set_gain(0.1)
        sink._callback(second, 1024, None, None)

        assert np.allclose(first, 1.0)
        assert np.allclose(second, 0.1)

    def test_decoder_error_ends_playback(self, fake_sd):
        sink = fed(SoundDeviceSink(BrokenStream(np.zeros((10, 2)))))
        out = np.ones((256, 2), dtype=np.float32)

        with pytest.raises(CallbackStop):
            sink._callback(out, 256, None, None)

        assert np.all(out == 0)
        assert sink.finished


class TestDevice:
    def test_stream_matches_source_format(self, fake_sd):
        source = constant(10)
        sink = SoundDeviceSink(source, device="hw:1")
        kwargs = fake_sd.OutputStream.call_args.kwargs
        assert kwargs["samplerate"] == source.samplerate
        assert kwargs["channels"] == 2
        assert kwargs["dtype"] == "float32"
        assert kwargs["device"] == "hw:1"
        sink.close()

    def test_open_failure_is_device_error(self, fake_sd):
        fake_sd.OutputStream.side_effect = PortAudioError("no device")
        with pytest.raises(DeviceError, match="Cannot open output device"):
            SoundDeviceSink(constant(10))

    def test_start_failure_is_device_error(self, fake_sd):
        fake_sd.OutputStream.return_value.start.side_effect = PortAudioError("busy")
        sink = SoundDeviceSink(constant(10))
        with pytest.raises(DeviceError, match="Cannot start output"):
            sink.play()
        sink.close()

    def test_finished_sink_does_not_restart(self, fake_sd):
        sink = fed(SoundDeviceSink(constant(10)))
        with pytest.raises(CallbackStop):
            sink._callback(np.zeros((64, 2), dtype=np.float32), 64, None, None)

        sink.play()

        fake_sd.OutputStream.return_value.start.assert_not_called()

    def test_pause_stops_active_stream(self, fake_sd):
        device = fake_sd.OutputStream.return_value
        device.active = True
        sink = SoundDeviceSink(constant(10))
        sink.pause()
        device.stop.assert_called_once()
        sink.close()

    def test_close_releases_device(self, fake_sd):
        device = fake_sd.OutputStream.return_value
        sink = SoundDeviceSink(constant(100_000))

        sink.close()

        device.abort.assert_called_once()
        device.close.assert_called_once()
        assert not sink._feeder.is_alive()
