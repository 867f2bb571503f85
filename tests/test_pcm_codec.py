from __future__ import annotations

import numpy as np
import pytest

from voicebed.backend.audio.pcm_codec import decode_base64, decode_pcm16, encode_pcm16
from voicebed.backend.errors import DecodeError


def test_decode_pcm16_uses_asymmetric_scale() -> None:
    buf = decode_pcm16(b"\x00\x80\xff\x7f\x00\x00", 24000)
    assert buf.channel_count == 1
    assert buf.frame_count == 3
    np.testing.assert_allclose(buf.channel(0), [-1.0, 32767 / 32768, 0.0])


def test_decode_pcm16_deinterleaves_frames() -> None:
    raw = np.array([1, 2, 3, 4, 5, 6], dtype="<i2").tobytes()
    buf = decode_pcm16(raw, 24000, channel_count=2)
    assert buf.frame_count == 3
    np.testing.assert_allclose(buf.channel(0), np.array([1, 3, 5]) / 32768.0)
    np.testing.assert_allclose(buf.channel(1), np.array([2, 4, 6]) / 32768.0)


def test_decode_pcm16_rejects_partial_frames() -> None:
    with pytest.raises(DecodeError, match="not a multiple"):
        decode_pcm16(b"\x00\x00\x00", 24000)
    with pytest.raises(DecodeError, match="not a multiple"):
        decode_pcm16(b"\x00" * 6, 24000, channel_count=2)


def test_decode_pcm16_rejects_bad_channel_count() -> None:
    with pytest.raises(DecodeError, match="channel count"):
        decode_pcm16(b"\x00\x00", 24000, channel_count=0)


def test_decode_pcm16_empty_payload_is_zero_frames() -> None:
    buf = decode_pcm16(b"", 24000)
    assert buf.channel_count == 1
    assert buf.frame_count == 0
    assert buf.duration_seconds == 0.0


def test_decoded_buffer_is_read_only() -> None:
    buf = decode_pcm16(b"\x00\x40", 24000)
    with pytest.raises(ValueError):
        buf.samples[0, 0] = 1.0


def test_decode_base64_tolerates_whitespace() -> None:
    assert decode_base64("AAEC\nAw==\n") == b"\x00\x01\x02\x03"


def test_decode_base64_rejects_invalid_alphabet() -> None:
    with pytest.raises(DecodeError, match="base64"):
        decode_base64("AA*C")


def test_encode_pcm16_inverts_decode() -> None:
    raw = np.array([-32768, -1, 0, 1, 32767], dtype="<i2").tobytes()
    assert encode_pcm16(decode_pcm16(raw, 24000)) == raw
