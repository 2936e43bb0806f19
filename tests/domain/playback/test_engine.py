"""Tests for the playback engine state machine and wall-clock position."""

import pytest

from tunebox.domain.library.models import Track
from tunebox.domain.playback import DecoderChain, PlaybackEngine, PlaybackStatus
from tunebox.errors import DecodeError, DeviceError, PlaybackError


@pytest.fixture
def track_a(music_dir) -> Track:
    return Track(path=str(music_dir / "a.mp3"), title="A")


@pytest.fixture
def track_b(music_dir) -> Track:
    return Track(path=str(music_dir / "b.mp3"), title="B")


class TestLoad:
    def test_load_starts_playing_from_zero(self, engine, track_a, sinks):
        engine.load(track_a)
        assert engine.status == PlaybackStatus.PLAYING
        assert engine.current_track == track_a
        assert engine.elapsed() == 0.0
        assert engine.snapshot().duration == 180.0
        assert sinks.sinks[0].playing

    def test_duration_falls_back_to_metadata(self, make_decoder, sinks, clock, music_dir):
        engine = PlaybackEngine(DecoderChain([make_decoder(duration=None)]), sinks, clock=clock)
        engine.load(Track(path=str(music_dir / "a.mp3"), duration=42.0))
        assert engine.snapshot().duration == 42.0

    def test_load_while_playing_tears_down_previous_stream(self, engine, track_a, track_b, sinks, decoder):
        engine.load(track_a)
        engine.load(track_b)
        assert len(sinks.active) == 1
        assert sinks.sinks[0].closed
        assert decoder.opened[0].closed
        assert engine.current_track == track_b

    def test_load_resets_position(self, engine, track_a, track_b, clock):
        engine.load(track_a)
        clock.advance(30)
        engine.load(track_b)
        assert engine.elapsed() == 0.0

    def test_decode_failure_leaves_engine_stopped(self, make_decoder, sinks, clock, track_a, track_b):
        engine = PlaybackEngine(DecoderChain([make_decoder(reject={"b.mp3"})]), sinks, clock=clock)
        engine.load(track_a)

        with pytest.raises(DecodeError):
            engine.load(track_b)

        assert engine.status == PlaybackStatus.STOPPED
        assert engine.current_track is None
        assert sinks.active == []

    def test_missing_file_is_decode_error(self, engine):
        with pytest.raises(DecodeError):
            engine.load(Track(path="/nonexistent/track.mp3"))
        assert engine.status == PlaybackStatus.STOPPED

    def test_device_failure_leaves_engine_stopped(self, decoder, make_sinks, clock, track_a):
        engine = PlaybackEngine(DecoderChain([decoder]), make_sinks(fail=True), clock=clock)

        with pytest.raises(DeviceError):
            engine.load(track_a)

        assert engine.status == PlaybackStatus.STOPPED
        assert engine.current_track is None
        assert decoder.opened[0].closed


class TestPosition:
    def test_elapsed_follows_wall_clock(self, engine, track_a, clock):
        engine.load(track_a)
        clock.advance(3.25)
        assert engine.elapsed() == pytest.approx(3.25)

    def test_elapsed_frozen_while_paused(self, engine, track_a, clock):
        engine.load(track_a)
        clock.advance(3)
        engine.pause()
        clock.advance(2)
        assert engine.status == PlaybackStatus.PAUSED
        assert engine.elapsed() == pytest.approx(3)

    def test_pause_then_play_keeps_position(self, engine, track_a, clock):
        engine.load(track_a)
        clock.advance(5)
        engine.pause()
        before = engine.elapsed()
        engine.play()
        assert engine.elapsed() == pytest.approx(before)
        clock.advance(1)
        assert engine.elapsed() == pytest.approx(6)

    def test_elapsed_monotonic_while_playing(self, engine, track_a, clock):
        engine.load(track_a)
        readings = []
        for _ in range(10):
            clock.advance(0.3)
            readings.append(engine.elapsed())
        assert readings == sorted(readings)

    @pytest.mark.parametrize("setup", ["playing", "paused", "stopped"])
    def test_stop_resets_position(self, engine, track_a, clock, setup):
        if setup != "stopped":
            engine.load(track_a)
            clock.advance(10)
        if setup == "paused":
            engine.pause()
        engine.stop()
        assert engine.status == PlaybackStatus.STOPPED
        assert engine.elapsed() == 0.0

    def test_snapshot_is_consistent(self, engine, track_a, clock):
        engine.load(track_a)
        clock.advance(1.5)
        snap = engine.snapshot()
        assert snap.status == PlaybackStatus.PLAYING
        assert snap.position == pytest.approx(1.5)
        assert snap.to_dict()["state"] == "playing"
        assert snap.to_dict()["track"] == track_a.path


class TestTransport:
    def test_play_without_track_raises(self, engine):
        with pytest.raises(PlaybackError):
            engine.play()

    def test_play_after_stop_restarts_last_track(self, engine, track_a, clock, decoder):
        engine.load(track_a)
        clock.advance(20)
        engine.stop()
        engine.play()
        assert engine.status == PlaybackStatus.PLAYING
        assert engine.current_track == track_a
        assert engine.elapsed() == 0.0
        assert len(decoder.opened) == 2

    def test_pause_and_play_are_idempotent(self, engine, track_a, sinks):
        engine.load(track_a)
        engine.play()
        engine.pause()
        engine.pause()
        assert engine.status == PlaybackStatus.PAUSED
        assert len(sinks.sinks) == 1

    def test_pause_when_stopped_is_noop(self, engine):
        engine.pause()
        assert engine.status == PlaybackStatus.STOPPED

    def test_is_finished_reflects_sink(self, engine, track_a, sinks):
        engine.load(track_a)
        assert not engine.is_finished()
        sinks.sinks[0].done = True
        assert engine.is_finished()
        engine.pause()
        assert not engine.is_finished()


class TestVolume:
    @pytest.mark.parametrize("level, expected", [(150, 100), (-10, 0), (55, 55), (0, 0), (100, 100)])
    def test_volume_is_clamped(self, engine, level, expected):
        assert engine.set_volume(level) == expected
        assert engine.volume == expected

    def test_volume_applies_gain_to_sink(self, engine, track_a, sinks):
        engine.load(track_a)
        engine.set_volume(40)
        assert sinks.sinks[0].gain == pytest.approx(0.4)

    def test_new_sink_uses_current_volume(self, engine, track_a, sinks):
        engine.set_volume(25)
        engine.load(track_a)
        assert sinks.sinks[0].gain == pytest.approx(0.25)


class TestSeek:
    def test_seek_while_playing(self, engine, track_a, clock, decoder):
        engine.load(track_a)
        clock.advance(5)
        assert engine.seek(60) == 60
        assert engine.status == PlaybackStatus.PLAYING
        assert engine.elapsed() == pytest.approx(60)
        assert decoder.opened[-1].start == 60
        clock.advance(2)
        assert engine.elapsed() == pytest.approx(62)

    def test_seek_while_paused_stays_paused(self, engine, track_a, clock, sinks):
        engine.load(track_a)
        engine.pause()
        engine.seek(30)
        clock.advance(10)
        assert engine.status == PlaybackStatus.PAUSED
        assert engine.elapsed() == pytest.approx(30)
        assert not sinks.active[0].playing

    def test_seek_is_clamped_to_track(self, engine, track_a):
        engine.load(track_a)
        assert engine.seek(-5) == 0
        assert engine.seek(10_000) == 180.0

    def test_seek_without_track_raises(self, engine):
        with pytest.raises(PlaybackError):
            engine.seek(10)

    def test_seek_keeps_single_output_stream(self, engine, track_a, sinks):
        engine.load(track_a)
        engine.seek(10)
        engine.seek(20)
        assert len(sinks.active) == 1
