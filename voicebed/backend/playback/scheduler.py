from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

import numpy as np

from voicebed.backend.audio.buffer import AudioBuffer
from voicebed.backend.errors import PlaybackError, PlaybackIdleError
from voicebed.backend.playback.context import AudioContext
from voicebed.backend.playback.frames import FrameDriver, FrameHandle
from voicebed.backend.playback.output import Voice
from voicebed.backend.types import PlaybackStateResponse, WsEvent

logger = logging.getLogger("voicebed.playback")


@dataclass(slots=True)
class PlaybackSession:
    session_id: int
    buffer: AudioBuffer
    context: AudioContext
    started_at: float
    duration_seconds: float
    current_time_seconds: float = 0.0
    voice: Voice | None = None
    tick: FrameHandle | None = None


class PlaybackScheduler:
    """Keeps at most one buffer sounding and tracks its progress.

    The voice's end signal is authoritative for leaving the playing state; the
    per-frame tick only publishes progress. End signals are bound to the session
    that produced them, so a late signal from a replaced voice is ignored.
    """

    def __init__(
        self,
        context_provider: Callable[[], AudioContext],
        frame_driver: FrameDriver,
        *,
        event_sink: Callable[[WsEvent], None] | None = None,
        progress_emit_interval_s: float = 0.1,
    ) -> None:
        self._context_provider = context_provider
        self._frames = frame_driver
        self.event_sink = event_sink
        self._progress_emit_interval_s = max(0.0, float(progress_emit_interval_s))

        # _control_lock serializes start/stop and is held while a voice is
        # stopped; _lock guards state and is never held across device calls.
        self._control_lock = threading.Lock()
        self._lock = threading.RLock()
        self._session: PlaybackSession | None = None
        self._session_counter = 0
        self._current_time = 0.0
        self._last_progress_emit: float | None = None

    @property
    def is_playing(self) -> bool:
        with self._lock:
            return self._session is not None

    def state(self) -> PlaybackStateResponse:
        with self._lock:
            return self._state_locked()

    def _state_locked(self) -> PlaybackStateResponse:
        session = self._session
        return PlaybackStateResponse(
            is_playing=session is not None,
            current_time=round(self._current_time, 4),
            duration=round(session.duration_seconds, 4) if session is not None else 0.0,
            session_id=session.session_id if session is not None else 0,
        )

    def start(self, buffer: AudioBuffer) -> PlaybackStateResponse:
        """Stop whatever is playing and start ``buffer`` from its first frame."""
        with self._control_lock:
            context = self._context_provider()
            self._stop_voice(self._detach())

            with self._lock:
                self._session_counter += 1
                session = PlaybackSession(
                    session_id=self._session_counter,
                    buffer=buffer,
                    context=context,
                    started_at=context.current_time(),
                    duration_seconds=buffer.duration_seconds,
                )
                self._session = session
                self._current_time = 0.0
                self._last_progress_emit = None

            sid = session.session_id
            try:
                voice = context.play(buffer, lambda: self._on_voice_ended(sid))
            except PlaybackError:
                with self._lock:
                    if self._session is session:
                        self._session = None
                        self._emit("playback_state", self._state_locked().model_dump())
                raise

            with self._lock:
                if self._session is not session:
                    # Buffer already ran out while the voice was being started.
                    context.analyser.disconnect()
                    return self._state_locked()
                session.voice = voice
                session.tick = self._frames.request(lambda: self._tick(sid))
                logger.info(
                    "playback started session=%d duration=%.3fs channels=%d",
                    sid,
                    session.duration_seconds,
                    buffer.channel_count,
                )
                self._emit("playback_state", self._state_locked().model_dump())
                return self._state_locked()

    def stop(self) -> PlaybackStateResponse:
        """Stop the current session; a no-op when idle."""
        with self._control_lock:
            self._stop_voice(self._detach())
        return self.state()

    def close(self) -> None:
        self.stop()

    def spectrum(self) -> np.ndarray:
        with self._lock:
            session = self._session
        if session is None:
            raise PlaybackIdleError("Nothing is playing.")
        return session.context.analyser.byte_frequency_data()

    def _detach(self) -> PlaybackSession | None:
        with self._lock:
            session = self._session
            if session is None:
                return None
            self._session = None
            self._current_time = 0.0
            self._release_locked(session)
            logger.info("playback stopped session=%d", session.session_id)
            self._emit("playback_state", self._state_locked().model_dump())
            return session

    def _release_locked(self, session: PlaybackSession) -> None:
        if session.tick is not None:
            self._frames.cancel(session.tick)
            session.tick = None
        session.context.analyser.disconnect()

    def _stop_voice(self, session: PlaybackSession | None) -> None:
        if session is None or session.voice is None:
            return
        try:
            session.voice.stop()
        except PlaybackError as exc:
            logger.debug("voice for session=%d already stopped: %s", session.session_id, exc)

    def _on_voice_ended(self, session_id: int) -> None:
        with self._lock:
            session = self._session
            if session is None or session.session_id != session_id:
                logger.debug("ignoring end signal from stale session=%d", session_id)
                return
            self._session = None
            self._current_time = 0.0
            self._release_locked(session)
            logger.info("playback finished session=%d", session_id)
            self._emit("playback_state", self._state_locked().model_dump())

    def _tick(self, session_id: int) -> None:
        with self._lock:
            session = self._session
            if session is None or session.session_id != session_id:
                return
            session.tick = None
            now = session.context.current_time()
            elapsed = now - session.started_at
            if elapsed >= session.duration_seconds:
                return
            session.current_time_seconds = elapsed
            self._current_time = elapsed
            session.tick = self._frames.request(lambda: self._tick(session_id))
            last = self._last_progress_emit
            if last is None or (now - last) >= self._progress_emit_interval_s:
                self._last_progress_emit = now
                self._emit(
                    "playback_progress",
                    {
                        "session_id": session_id,
                        "current_time": round(elapsed, 4),
                        "duration": round(session.duration_seconds, 4),
                    },
                )

    def _emit(self, event_type: str, data: dict) -> None:
        if self.event_sink is None:
            return
        try:
            self.event_sink(WsEvent(type=event_type, data=data))
        except Exception:
            logger.exception("failed to publish %s event", event_type)
