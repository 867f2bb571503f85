from __future__ import annotations

import logging

import numpy as np

from voicebed.backend.audio.buffer import AudioBuffer

logger = logging.getLogger("voicebed.audio")

DEFAULT_OVERLAY_GAIN = 0.4


def _overlay_channel(overlay: AudioBuffer, index: int) -> np.ndarray:
    if index < overlay.channel_count:
        return overlay.channel(index)
    return overlay.channel(0)


def mix(base: AudioBuffer, overlay: AudioBuffer, overlay_gain: float = DEFAULT_OVERLAY_GAIN) -> AudioBuffer:
    """Add ``overlay`` under ``base``, looping or truncating it to base's length.

    The result keeps base's channel count, length and sample rate. Nothing is
    clamped here; the WAV encoder clamps on export.
    """
    if overlay.sample_rate != base.sample_rate:
        logger.warning(
            "mixing overlay at %d Hz into base at %d Hz without resampling",
            overlay.sample_rate,
            base.sample_rate,
        )
    if overlay.frame_count == 0 or base.frame_count == 0:
        return AudioBuffer(base.samples, base.sample_rate)

    positions = np.arange(base.frame_count) % overlay.frame_count
    gain = np.float32(overlay_gain)
    out = np.empty_like(base.samples)
    for ch in range(base.channel_count):
        out[ch] = base.channel(ch) + gain * _overlay_channel(overlay, ch)[positions]
    return AudioBuffer(out, base.sample_rate)
