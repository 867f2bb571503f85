from __future__ import annotations

import base64
import binascii
import re

import numpy as np

from voicebed.backend.audio.buffer import AudioBuffer
from voicebed.backend.errors import DecodeError

_PCM16_SCALE = 32768.0
_WHITESPACE = re.compile(r"\s+")


def decode_base64(text: str) -> bytes:
    if not isinstance(text, str):
        raise DecodeError("Audio payload must be a base64 string.")
    compact = _WHITESPACE.sub("", text)
    try:
        return base64.b64decode(compact.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise DecodeError(f"Audio payload is not valid base64: {exc}") from exc


def decode_pcm16(data: bytes, sample_rate: int, channel_count: int = 1) -> AudioBuffer:
    """Decode interleaved little-endian int16 PCM into a planar float buffer.

    Each sample maps to ``s / 32768``, so the positive rail tops out at
    32767/32768 rather than 1.0.
    """
    if channel_count < 1:
        raise DecodeError(f"Invalid channel count: {channel_count}")
    stride = 2 * channel_count
    if len(data) % stride != 0:
        raise DecodeError(
            f"PCM payload length {len(data)} is not a multiple of the frame size ({stride} bytes)."
        )
    pcm = np.frombuffer(data, dtype="<i2")
    frames = pcm.reshape(-1, channel_count)
    samples = (frames.T.astype(np.float32) / _PCM16_SCALE).astype(np.float32)
    return AudioBuffer(samples, sample_rate)


def encode_pcm16(buffer: AudioBuffer) -> bytes:
    """Inverse of :func:`decode_pcm16`, used to fabricate payloads in fake mode."""
    clipped = np.clip(buffer.interleaved(), -1.0, 1.0 - 1.0 / _PCM16_SCALE)
    return np.round(clipped * _PCM16_SCALE).astype("<i2").tobytes()
