from __future__ import annotations

import threading
from typing import Callable

import numpy as np
from scipy.signal import get_window

from voicebed.backend.audio.buffer import AudioBuffer
from voicebed.backend.errors import PlaybackIdleError


class AnalysisTap:
    """Pull-based frequency magnitude reader on the currently routed signal.

    The tap is connected to the buffer being played and a callable reporting
    the voice's current frame position; each query analyses the ``fft_size``
    frames that most recently left the output.
    """

    def __init__(
        self,
        fft_size: int = 256,
        *,
        smoothing: float = 0.8,
        min_db: float = -100.0,
        max_db: float = -30.0,
    ) -> None:
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")
        if not (0.0 <= smoothing < 1.0):
            raise ValueError("smoothing must be in [0.0, 1.0)")
        if min_db >= max_db:
            raise ValueError("min_db must be below max_db")
        self.fft_size = int(fft_size)
        self.smoothing = float(smoothing)
        self.min_db = float(min_db)
        self.max_db = float(max_db)
        self._window = get_window("blackman", self.fft_size)
        self._lock = threading.Lock()
        self._mono: np.ndarray | None = None
        self._position: Callable[[], int] | None = None
        self._smoothed = np.zeros(self.bin_count, dtype=np.float64)

    @property
    def bin_count(self) -> int:
        return self.fft_size // 2

    @property
    def active(self) -> bool:
        with self._lock:
            return self._mono is not None

    def connect(self, buffer: AudioBuffer, position: Callable[[], int]) -> None:
        with self._lock:
            self._mono = buffer.mono()
            self._position = position
            self._smoothed = np.zeros(self.bin_count, dtype=np.float64)

    def disconnect(self) -> None:
        with self._lock:
            self._mono = None
            self._position = None
            self._smoothed = np.zeros(self.bin_count, dtype=np.float64)

    def time_domain_window(self) -> np.ndarray:
        with self._lock:
            return self._window_locked()

    def _window_locked(self) -> np.ndarray:
        if self._mono is None or self._position is None:
            raise PlaybackIdleError("Analysis tap has no signal; nothing is playing.")
        end = int(np.clip(self._position(), 0, self._mono.size))
        start = max(0, end - self.fft_size)
        frame = np.zeros(self.fft_size, dtype=np.float64)
        chunk = self._mono[start:end]
        if chunk.size:
            frame[self.fft_size - chunk.size :] = chunk
        return frame

    def byte_frequency_data(self) -> np.ndarray:
        """Smoothed magnitudes mapped from [min_db, max_db] onto 0..255."""
        with self._lock:
            frame = self._window_locked()
            spectrum = np.fft.rfft(frame * self._window)[: self.bin_count]
            magnitude = np.abs(spectrum) / float(self.fft_size)
            self._smoothed = self.smoothing * self._smoothed + (1.0 - self.smoothing) * magnitude
            smoothed = self._smoothed.copy()
        with np.errstate(divide="ignore"):
            db = 20.0 * np.log10(smoothed)
        scaled = (255.0 / (self.max_db - self.min_db)) * (db - self.min_db)
        return np.clip(np.floor(scaled), 0, 255).astype(np.uint8)
