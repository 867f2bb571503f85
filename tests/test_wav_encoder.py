from __future__ import annotations

import io
import struct

import numpy as np
import pytest

from voicebed.backend.audio.buffer import AudioBuffer
from voicebed.backend.audio.wav_encoder import WAV_HEADER_BYTES, encode_wav, quantize_pcm16


def test_header_fields_for_stereo_buffer() -> None:
    buf = AudioBuffer.silence(2, 10, 24000)
    data = encode_wav(buf)
    assert len(data) == WAV_HEADER_BYTES + 10 * 2 * 2
    fields = struct.unpack("<4sI4s4sIHHIIHH4sI", data[:WAV_HEADER_BYTES])
    assert fields == (
        b"RIFF",
        36 + 40,
        b"WAVE",
        b"fmt ",
        16,
        1,
        2,
        24000,
        24000 * 4,
        4,
        16,
        b"data",
        40,
    )


def test_quantization_is_asymmetric_and_truncates() -> None:
    q = quantize_pcm16(np.array([0.0, 1.0, -1.0, 0.5, -0.5, 2.0, -3.0]))
    assert q.tolist() == [0, 32767, -32768, 16383, -16384, 32767, -32768]


def test_payload_is_interleaved_little_endian() -> None:
    buf = AudioBuffer.from_channels([[0.5, 0.0], [-0.5, 1.0]], 24000)
    payload = encode_wav(buf)[WAV_HEADER_BYTES:]
    assert np.frombuffer(payload, dtype="<i2").tolist() == [16383, -16384, 0, 32767]


def test_zero_frame_buffer_is_header_only() -> None:
    data = encode_wav(AudioBuffer.silence(1, 0, 24000))
    assert len(data) == WAV_HEADER_BYTES
    assert struct.unpack("<I", data[40:44])[0] == 0


def test_output_is_readable_by_soundfile() -> None:
    sf = pytest.importorskip("soundfile")
    buf = AudioBuffer.from_channels([np.linspace(-0.5, 0.5, 480)], 24000)
    wav, sr = sf.read(io.BytesIO(encode_wav(buf)), dtype="float32")
    assert sr == 24000
    assert wav.shape == (480,)
    np.testing.assert_allclose(wav, buf.channel(0), atol=1e-4)


def test_four_frame_mono_buffer_is_52_bytes() -> None:
    data = encode_wav(AudioBuffer.from_channels([[0.0, 0.5, -1.0, 1.0]], 24000))
    assert len(data) == 52
    channels, sample_rate = struct.unpack("<HI", data[22:28])
    assert (channels, sample_rate) == (1, 24000)
    assert struct.unpack("<H", data[34:36])[0] == 16
    assert np.frombuffer(data[44:], dtype="<i2").tolist() == [0, 16383, -32768, 32767]
