from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Literal

from voicebed.backend.audio.buffer import AudioBuffer
from voicebed.backend.config import AppConfig
from voicebed.backend.errors import PlaybackError
from voicebed.backend.playback.analysis import AnalysisTap
from voicebed.backend.playback.output import AudioOutput, EndedCallback, NullOutput, SoundDeviceOutput, Voice

logger = logging.getLogger("voicebed.playback")

ContextState = Literal["suspended", "running", "closed"]


class AudioContext:
    """Long-lived playback graph: output backend, analysis tap, clock and rate.

    Starts suspended; every use resumes it. Closing is terminal.
    """

    def __init__(
        self,
        sample_rate: int,
        output: AudioOutput,
        *,
        fft_size: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if int(sample_rate) <= 0:
            raise ValueError(f"Invalid sample rate: {sample_rate}")
        self.sample_rate = int(sample_rate)
        self.output = output
        self.analyser = AnalysisTap(fft_size)
        self._clock = clock
        self._lock = threading.Lock()
        self._state: ContextState = "suspended"

    @property
    def state(self) -> ContextState:
        with self._lock:
            return self._state

    def current_time(self) -> float:
        return self._clock()

    def resume(self) -> None:
        with self._lock:
            if self._state == "closed":
                raise PlaybackError("Audio context is closed")
            if self._state == "suspended":
                logger.info("audio context resumed (sample_rate=%d)", self.sample_rate)
            self._state = "running"

    def suspend(self) -> None:
        with self._lock:
            if self._state == "running":
                self._state = "suspended"

    def play(self, buffer: AudioBuffer, on_ended: EndedCallback) -> Voice:
        """Start ``buffer`` at frame 0 and route it through the analysis tap."""
        if self.state != "running":
            raise PlaybackError(f"Audio context is {self.state}; resume it before playing")
        if buffer.sample_rate != self.sample_rate:
            logger.warning(
                "playing buffer at %d Hz on a %d Hz context", buffer.sample_rate, self.sample_rate
            )
        voice = self.output.play(buffer, on_ended)
        self.analyser.connect(buffer, voice.position_frames)
        return voice

    def close(self) -> None:
        with self._lock:
            if self._state == "closed":
                return
            self._state = "closed"
        self.analyser.disconnect()
        self.output.close()
        logger.info("audio context closed")


def build_output(config: AppConfig) -> AudioOutput:
    if config.fake_mode:
        return NullOutput()
    device: int | str | None = config.output_device or None
    if isinstance(device, str) and device.isdigit():
        device = int(device)
    return SoundDeviceOutput(device)


class AudioContextHolder:
    """Creates the process-wide :class:`AudioContext` on first use."""

    def __init__(self, factory: Callable[[], AudioContext]) -> None:
        self._factory = factory
        self._lock = threading.Lock()
        self._context: AudioContext | None = None

    @classmethod
    def from_config(cls, config: AppConfig) -> "AudioContextHolder":
        return cls(
            lambda: AudioContext(
                config.sample_rate, build_output(config), fft_size=config.fft_size
            )
        )

    @property
    def initialized(self) -> bool:
        with self._lock:
            return self._context is not None

    def peek(self) -> AudioContext | None:
        with self._lock:
            return self._context

    def get(self) -> AudioContext:
        with self._lock:
            if self._context is None:
                self._context = self._factory()
            context = self._context
        if context.state == "suspended":
            context.resume()
        return context

    def close(self) -> None:
        with self._lock:
            context = self._context
        if context is not None:
            context.close()
