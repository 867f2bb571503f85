from __future__ import annotations

import numpy as np
import pytest

from voicebed.backend.audio.buffer import AudioBuffer
from voicebed.backend.errors import PlaybackError, PlaybackIdleError, PlaybackStoppedError
from voicebed.backend.playback.context import AudioContext, AudioContextHolder
from voicebed.backend.playback.frames import ManualFrameDriver
from voicebed.backend.playback.scheduler import PlaybackScheduler


class _Clock:
    def __init__(self) -> None:
        self.now = 10.0

    def __call__(self) -> float:
        return self.now


class _FakeVoice:
    def __init__(self, on_ended, *, stop_error: bool = False) -> None:
        self._on_ended = on_ended
        self._stop_error = stop_error
        self.stopped = False
        self.ended = False
        self.stop_calls = 0

    def position_frames(self) -> int:
        return 2400

    def _end(self) -> None:
        if not self.ended:
            self.ended = True
            self._on_ended()

    def finish(self) -> None:
        self._end()

    def stop(self) -> None:
        self.stop_calls += 1
        if self._stop_error:
            raise PlaybackError("device went away")
        if self.stopped or self.ended:
            raise PlaybackStoppedError("voice already stopped")
        self.stopped = True
        self._end()


class _FakeOutput:
    def __init__(self) -> None:
        self.voices: list[_FakeVoice] = []
        self.stop_error = False
        self.fail = False
        self.end_immediately = False

    def play(self, buffer, on_ended):
        if self.fail:
            raise PlaybackError("no device")
        voice = _FakeVoice(on_ended, stop_error=self.stop_error)
        self.voices.append(voice)
        if self.end_immediately:
            voice.finish()
        return voice

    def close(self) -> None:
        return None


def _buffer(seconds: float) -> AudioBuffer:
    t = np.arange(int(seconds * 24000)) / 24000.0
    return AudioBuffer.from_channels([0.5 * np.sin(2 * np.pi * 1500 * t)], 24000)


def _build():
    clock = _Clock()
    output = _FakeOutput()
    context = AudioContext(24000, output, fft_size=256, clock=clock)
    driver = ManualFrameDriver()
    events = []
    scheduler = PlaybackScheduler(
        AudioContextHolder(lambda: context).get,
        driver,
        event_sink=events.append,
        progress_emit_interval_s=0.0,
    )
    return scheduler, output, context, driver, clock, events


def test_start_enters_playing_and_requests_tick() -> None:
    scheduler, output, context, driver, _clock, events = _build()
    state = scheduler.start(_buffer(1.0))
    assert state.is_playing is True
    assert state.duration == pytest.approx(1.0)
    assert state.current_time == 0.0
    assert len(output.voices) == 1
    assert driver.pending == 1
    assert context.analyser.active is True
    assert events[-1].type == "playback_state"
    assert events[-1].data["is_playing"] is True


def test_tick_publishes_elapsed_time() -> None:
    scheduler, _output, _context, driver, clock, events = _build()
    scheduler.start(_buffer(1.0))
    clock.now += 0.25
    driver.step()
    assert scheduler.state().current_time == pytest.approx(0.25)
    assert driver.pending == 1
    progress = [e for e in events if e.type == "playback_progress"]
    assert progress and progress[-1].data["current_time"] == pytest.approx(0.25)


def test_tick_past_duration_stops_rescheduling_but_end_signal_decides() -> None:
    scheduler, output, context, driver, clock, _events = _build()
    scheduler.start(_buffer(1.0))
    clock.now += 1.5
    driver.step()
    assert driver.pending == 0
    assert scheduler.is_playing is True

    output.voices[0].finish()
    state = scheduler.state()
    assert state.is_playing is False
    assert state.current_time == 0.0
    assert context.analyser.active is False


def test_natural_end_cancels_pending_tick() -> None:
    scheduler, output, _context, driver, _clock, events = _build()
    scheduler.start(_buffer(1.0))
    output.voices[0].finish()
    assert driver.pending == 0
    assert scheduler.is_playing is False
    assert events[-1].data["is_playing"] is False


def test_restart_ignores_end_signal_of_replaced_voice() -> None:
    scheduler, output, _context, driver, clock, _events = _build()
    scheduler.start(_buffer(1.0))
    state = scheduler.start(_buffer(2.0))
    first, second = output.voices
    assert first.stopped is True
    assert state.is_playing is True
    assert state.session_id == 2
    assert state.duration == pytest.approx(2.0)

    clock.now += 0.5
    driver.step()
    assert scheduler.state().current_time == pytest.approx(0.5)

    # a late end signal from the first voice must not end the second session
    first._on_ended()
    assert scheduler.is_playing is True
    assert scheduler.state().session_id == 2
    assert scheduler.state().current_time == pytest.approx(0.5)
    assert driver.pending == 1

    second.finish()
    assert scheduler.is_playing is False


def test_stop_is_idempotent() -> None:
    scheduler, output, _context, driver, _clock, _events = _build()
    assert scheduler.stop().is_playing is False
    scheduler.start(_buffer(1.0))
    assert scheduler.stop().is_playing is False
    assert scheduler.stop().is_playing is False
    assert output.voices[0].stop_calls == 1
    assert driver.pending == 0


def test_stop_swallows_voice_errors() -> None:
    scheduler, output, _context, _driver, _clock, _events = _build()
    output.stop_error = True
    scheduler.start(_buffer(1.0))
    state = scheduler.stop()
    assert state.is_playing is False


def test_spectrum_requires_playback() -> None:
    scheduler, _output, _context, _driver, _clock, _events = _build()
    with pytest.raises(PlaybackIdleError):
        scheduler.spectrum()
    scheduler.start(_buffer(1.0))
    bins = scheduler.spectrum()
    assert bins.dtype == np.uint8
    assert bins.shape == (128,)
    scheduler.stop()
    with pytest.raises(PlaybackIdleError):
        scheduler.spectrum()


def test_failed_start_leaves_scheduler_idle() -> None:
    scheduler, output, _context, driver, _clock, _events = _build()
    output.fail = True
    with pytest.raises(PlaybackError, match="no device"):
        scheduler.start(_buffer(1.0))
    assert scheduler.is_playing is False
    assert driver.pending == 0


def test_voice_that_ends_during_start_leaves_scheduler_idle() -> None:
    scheduler, output, context, driver, _clock, _events = _build()
    output.end_immediately = True
    state = scheduler.start(_buffer(0.01))
    assert state.is_playing is False
    assert driver.pending == 0
    assert context.analyser.active is False
