from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np


@dataclass(frozen=True)
class AudioBuffer:
    """Planar float32 audio, shaped ``(channel_count, frame_count)``.

    The sample array is made read-only on construction so a buffer can be
    handed between components without defensive copies. Samples may exceed
    [-1, 1] after mixing; clamping is left to the WAV encoder.
    """

    samples: np.ndarray
    sample_rate: int

    def __post_init__(self) -> None:
        arr = np.asarray(self.samples, dtype=np.float32)
        if arr.ndim != 2:
            raise ValueError(f"AudioBuffer samples must be 2-D, got shape {arr.shape}")
        if arr.shape[0] < 1:
            raise ValueError("AudioBuffer needs at least one channel")
        if int(self.sample_rate) <= 0:
            raise ValueError(f"Invalid sample rate: {self.sample_rate}")
        if arr is self.samples or arr.base is not None:
            arr = arr.copy()
        arr.setflags(write=False)
        object.__setattr__(self, "samples", arr)
        object.__setattr__(self, "sample_rate", int(self.sample_rate))

    @classmethod
    def from_channels(
        cls, channels: Sequence[Sequence[float] | np.ndarray], sample_rate: int
    ) -> "AudioBuffer":
        rows = [np.asarray(ch, dtype=np.float32).reshape(-1) for ch in channels]
        if not rows:
            raise ValueError("AudioBuffer needs at least one channel")
        lengths = {row.size for row in rows}
        if len(lengths) != 1:
            raise ValueError(f"Channels have different lengths: {sorted(lengths)}")
        return cls(np.stack(rows), sample_rate)

    @classmethod
    def silence(cls, channel_count: int, frame_count: int, sample_rate: int) -> "AudioBuffer":
        return cls(np.zeros((channel_count, max(0, frame_count)), dtype=np.float32), sample_rate)

    @property
    def channel_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def frame_count(self) -> int:
        return int(self.samples.shape[1])

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / float(self.sample_rate)

    def channel(self, index: int) -> np.ndarray:
        return self.samples[index]

    def mono(self) -> np.ndarray:
        if self.channel_count == 1:
            return self.samples[0]
        return self.samples.mean(axis=0).astype(np.float32)

    def interleaved(self) -> np.ndarray:
        """Frame-major view ``(frame_count, channel_count)`` for output devices."""
        return np.ascontiguousarray(self.samples.T)
