from __future__ import annotations

import struct

import numpy as np

from voicebed.backend.audio.buffer import AudioBuffer

WAV_MIME_TYPE = "audio/wav"
WAV_HEADER_BYTES = 44
_BITS_PER_SAMPLE = 16
_BYTES_PER_SAMPLE = _BITS_PER_SAMPLE // 8
_FORMAT_PCM = 1


def quantize_pcm16(samples: np.ndarray) -> np.ndarray:
    """Clamp to [-1, 1], scale negatives by 32768 and the rest by 32767, truncate."""
    clipped = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    scaled = np.where(clipped < 0.0, clipped * 32768.0, clipped * 32767.0)
    return np.trunc(scaled).astype(np.int16)


def wav_header(channel_count: int, sample_rate: int, frame_count: int) -> bytes:
    block_align = channel_count * _BYTES_PER_SAMPLE
    data_size = frame_count * block_align
    return struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        WAV_HEADER_BYTES + data_size - 8,
        b"WAVE",
        b"fmt ",
        16,
        _FORMAT_PCM,
        channel_count,
        sample_rate,
        sample_rate * block_align,
        block_align,
        _BITS_PER_SAMPLE,
        b"data",
        data_size,
    )


def encode_wav(buffer: AudioBuffer) -> bytes:
    """Serialize ``buffer`` as a canonical 16-bit PCM RIFF/WAVE file."""
    header = wav_header(buffer.channel_count, buffer.sample_rate, buffer.frame_count)
    payload = quantize_pcm16(buffer.interleaved()).astype("<i2").tobytes()
    return header + payload
