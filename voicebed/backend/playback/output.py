from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Protocol

import numpy as np

from voicebed.backend.audio.buffer import AudioBuffer
from voicebed.backend.errors import PlaybackError, PlaybackStoppedError

logger = logging.getLogger("voicebed.playback")

EndedCallback = Callable[[], None]


class Voice(Protocol):
    """One sounding buffer. ``on_ended`` fires exactly once, on natural end or stop."""

    def position_frames(self) -> int: ...

    def stop(self) -> None: ...


class AudioOutput(Protocol):
    def play(self, buffer: AudioBuffer, on_ended: EndedCallback) -> Voice: ...

    def close(self) -> None: ...


class _EndOnce:
    def __init__(self, callback: EndedCallback) -> None:
        self._callback = callback
        self._fired = False
        self._lock = threading.Lock()

    @property
    def fired(self) -> bool:
        with self._lock:
            return self._fired

    def __call__(self) -> None:
        with self._lock:
            if self._fired:
                return
            self._fired = True
        try:
            self._callback()
        except Exception:
            logger.exception("playback end callback failed")


class _SoundDeviceVoice:
    def __init__(
        self,
        sd: Any,
        buffer: AudioBuffer,
        on_ended: EndedCallback,
        *,
        device: int | str | None,
        blocksize: int,
    ) -> None:
        self._sd = sd
        self._frames = np.clip(buffer.interleaved(), -1.0, 1.0).astype(np.float32)
        self._pos = 0
        self._pos_lock = threading.Lock()
        self._stop_lock = threading.Lock()
        self._stopped = False
        self._ended = _EndOnce(on_ended)
        self._stream = sd.OutputStream(
            samplerate=buffer.sample_rate,
            channels=buffer.channel_count,
            dtype="float32",
            device=device,
            blocksize=blocksize,
            callback=self._callback,
            finished_callback=self._on_finished,
        )
        self._stream.start()

    def _on_finished(self) -> None:
        self._ended()
        with self._stop_lock:
            stopped = self._stopped
        if not stopped:
            # Closing from inside the PortAudio finished callback can deadlock.
            threading.Thread(
                target=self._close_quietly, name="voicebed-stream-close", daemon=True
            ).start()

    def _close_quietly(self) -> None:
        try:
            self._stream.close()
        except self._sd.PortAudioError as exc:
            logger.debug("output stream close after natural end failed: %s", exc)

    def _callback(self, outdata, frames, time_info, status) -> None:
        if status:
            logger.warning("output stream status: %s", status)
        with self._pos_lock:
            start = self._pos
            chunk = self._frames[start : start + frames]
            self._pos = start + len(chunk)
            done = self._pos >= len(self._frames)
        outdata[: len(chunk)] = chunk
        if len(chunk) < frames:
            outdata[len(chunk) :] = 0.0
        if done:
            raise self._sd.CallbackStop

    def position_frames(self) -> int:
        with self._pos_lock:
            return self._pos

    def stop(self) -> None:
        with self._stop_lock:
            if self._stopped or self._ended.fired:
                self._stopped = True
                raise PlaybackStoppedError("voice already stopped")
            self._stopped = True
        try:
            self._stream.stop()
            self._stream.close()
        except self._sd.PortAudioError as exc:
            raise PlaybackStoppedError(f"output stream stop failed: {exc}") from exc
        finally:
            self._ended()


class SoundDeviceOutput:
    """Plays buffers on a PortAudio device, one ``OutputStream`` per voice."""

    def __init__(self, device: int | str | None = None, *, blocksize: int = 512) -> None:
        self.device = device
        self.blocksize = blocksize

    def play(self, buffer: AudioBuffer, on_ended: EndedCallback) -> Voice:
        import sounddevice as sd

        try:
            return _SoundDeviceVoice(
                sd, buffer, on_ended, device=self.device, blocksize=self.blocksize
            )
        except sd.PortAudioError as exc:
            raise PlaybackError(f"output stream unavailable on device={self.device}: {exc}") from exc

    def close(self) -> None:
        return None


class _NullVoice:
    def __init__(
        self,
        buffer: AudioBuffer,
        on_ended: EndedCallback,
        clock: Callable[[], float],
    ) -> None:
        self._frame_count = buffer.frame_count
        self._sample_rate = buffer.sample_rate
        self._clock = clock
        self._started_at = clock()
        self._stopped_at: float | None = None
        self._finished = False
        self._lock = threading.Lock()
        self._ended = _EndOnce(on_ended)
        self._timer = threading.Timer(buffer.duration_seconds, self._finish)
        self._timer.daemon = True
        self._timer.start()

    def _finish(self) -> None:
        with self._lock:
            if self._stopped_at is None:
                self._stopped_at = self._started_at + self._frame_count / float(self._sample_rate)
                self._finished = True
        self._ended()

    def position_frames(self) -> int:
        with self._lock:
            if self._finished:
                return self._frame_count
            now = self._stopped_at if self._stopped_at is not None else self._clock()
        frames = int((now - self._started_at) * self._sample_rate)
        return max(0, min(self._frame_count, frames))

    def stop(self) -> None:
        with self._lock:
            if self._stopped_at is not None:
                raise PlaybackStoppedError("voice already stopped")
            self._stopped_at = self._clock()
        self._timer.cancel()
        self._ended()


class NullOutput:
    """Device-less output: tracks position against the clock and ends on a timer."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock

    def play(self, buffer: AudioBuffer, on_ended: EndedCallback) -> Voice:
        return _NullVoice(buffer, on_ended, self._clock)

    def close(self) -> None:
        return None
