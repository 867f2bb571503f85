from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Literal, Sequence, get_args

import numpy as np
from scipy.signal import butter, lfilter, sosfilt

from voicebed.backend.audio.buffer import AudioBuffer

logger = logging.getLogger("voicebed.audio")

BackgroundKind = Literal["calm", "inspirational", "lofi"]
RampKind = Literal["set", "linear"]

BACKGROUND_KINDS: tuple[str, ...] = get_args(BackgroundKind)

TONAL_ROOTS_HZ: dict[str, float] = {
    "calm": 130.81,
    "inspirational": 174.61,
}
_MAJOR_THIRD_RATIO = 1.25
_PERFECT_FIFTH_RATIO = 1.5
_ROOT_DETUNE_CENTS = -8.0
_THIRD_DETUNE_CENTS = 8.0

_NOISE_LEAK = 0.02
_NOISE_BOOST = 3.5
_NOISE_CUTOFF_HZ = 400.0

ENVELOPE_FADE_IN_S = 0.5
ENVELOPE_FADE_OUT_S = 1.5
ENVELOPE_CEILING = 0.2


@dataclass(frozen=True)
class Breakpoint:
    time: float
    gain: float
    ramp: RampKind = "linear"


class Envelope:
    """Piecewise gain curve.

    A ``linear`` breakpoint ramps from the previous breakpoint's gain; a ``set``
    breakpoint holds the previous gain and jumps at its own time. The gain of
    the last breakpoint is held after it.
    """

    def __init__(self, breakpoints: Sequence[Breakpoint]) -> None:
        points = list(breakpoints)
        if not points:
            raise ValueError("Envelope needs at least one breakpoint")
        if abs(points[0].gain) > 1e-12:
            raise ValueError("Envelope must start at gain 0")
        for prev, cur in zip(points, points[1:]):
            if not cur.time > prev.time:
                raise ValueError(
                    f"Envelope breakpoint times must strictly increase ({prev.time} -> {cur.time})"
                )
        self.breakpoints: tuple[Breakpoint, ...] = tuple(points)

    @classmethod
    def fade(
        cls,
        duration: float,
        *,
        fade_in: float = ENVELOPE_FADE_IN_S,
        fade_out: float = ENVELOPE_FADE_OUT_S,
        ceiling: float = ENVELOPE_CEILING,
    ) -> "Envelope":
        if duration <= 0:
            raise ValueError(f"Envelope duration must be positive, got {duration}")
        points = [Breakpoint(0.0, 0.0, "set")]
        if duration >= fade_in + fade_out:
            points.append(Breakpoint(fade_in, ceiling, "linear"))
            sustain_end = duration - fade_out
            if sustain_end > fade_in:
                points.append(Breakpoint(sustain_end, ceiling, "set"))
        else:
            # Ramps overlap: keep both slopes and peak where they cross.
            peak_time = duration * fade_in / (fade_in + fade_out)
            points.append(Breakpoint(peak_time, ceiling * peak_time / fade_in, "linear"))
        points.append(Breakpoint(duration, 0.0, "linear"))
        return cls(points)

    def render(self, frame_count: int, sample_rate: int) -> np.ndarray:
        t = np.arange(max(0, frame_count), dtype=np.float64) / float(sample_rate)
        gain = np.full(t.shape, self.breakpoints[0].gain, dtype=np.float64)
        for prev, cur in zip(self.breakpoints, self.breakpoints[1:]):
            seg = (t >= prev.time) & (t < cur.time)
            if cur.ramp == "linear":
                frac = (t[seg] - prev.time) / (cur.time - prev.time)
                gain[seg] = prev.gain + (cur.gain - prev.gain) * frac
            else:
                gain[seg] = prev.gain
        last = self.breakpoints[-1]
        gain[t >= last.time] = last.gain
        return gain.astype(np.float32)


def _detuned(freq_hz: float, cents: float) -> float:
    return freq_hz * math.pow(2.0, cents / 1200.0)


def _sine(freq_hz: float, t: np.ndarray) -> np.ndarray:
    return np.sin(2.0 * np.pi * freq_hz * t)


def _band_limited_triangle(freq_hz: float, t: np.ndarray, sample_rate: int) -> np.ndarray:
    nyquist = sample_rate / 2.0
    out = np.zeros_like(t)
    k = 1
    while k * freq_hz < nyquist:
        sign = -1.0 if (k // 2) % 2 else 1.0
        out += sign * np.sin(2.0 * np.pi * k * freq_hz * t) / float(k * k)
        k += 2
    return out * (8.0 / (np.pi**2))


def _render_tonal(kind: str, frame_count: int, sample_rate: int) -> np.ndarray:
    root = TONAL_ROOTS_HZ[kind]
    t = np.arange(frame_count, dtype=np.float64) / float(sample_rate)
    pad = _sine(_detuned(root, _ROOT_DETUNE_CENTS), t)
    pad += _sine(_detuned(root * _MAJOR_THIRD_RATIO, _THIRD_DETUNE_CENTS), t)
    pad += _band_limited_triangle(root * _PERFECT_FIFTH_RATIO, t, sample_rate)
    return pad


def _render_noise(frame_count: int, sample_rate: int, rng: np.random.Generator) -> np.ndarray:
    white = rng.uniform(-1.0, 1.0, size=frame_count)
    # state = (state + k * white) / (1 + k)
    leak = 1.0 + _NOISE_LEAK
    warm = lfilter([_NOISE_LEAK / leak], [1.0, -1.0 / leak], white)
    warm *= _NOISE_BOOST
    cutoff = min(_NOISE_CUTOFF_HZ, 0.45 * sample_rate)
    sos = butter(2, cutoff, btype="lowpass", fs=sample_rate, output="sos")
    return sosfilt(sos, warm)


def render_background(
    kind: str,
    duration_seconds: float,
    sample_rate: int,
    *,
    rng: np.random.Generator | None = None,
) -> AudioBuffer:
    """Render a stereo ambient bed of exactly ``round(duration * rate)`` frames."""
    if kind not in BACKGROUND_KINDS:
        raise ValueError(f"Unsupported background kind: {kind}")
    if duration_seconds <= 0:
        raise ValueError(f"Background duration must be positive, got {duration_seconds}")
    if sample_rate <= 0:
        raise ValueError(f"Invalid sample rate: {sample_rate}")

    frame_count = int(round(duration_seconds * sample_rate))
    if kind == "lofi":
        mono = _render_noise(frame_count, sample_rate, rng or np.random.default_rng())
    else:
        mono = _render_tonal(kind, frame_count, sample_rate)

    envelope = Envelope.fade(duration_seconds)
    shaped = (mono * envelope.render(frame_count, sample_rate)).astype(np.float32)
    logger.debug(
        "rendered %s bed: frames=%d sr=%d peak=%.4f",
        kind,
        frame_count,
        sample_rate,
        float(np.max(np.abs(shaped))) if shaped.size else 0.0,
    )
    return AudioBuffer(np.stack([shaped, shaped]), sample_rate)
