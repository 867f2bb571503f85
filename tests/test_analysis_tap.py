from __future__ import annotations

import numpy as np
import pytest

from voicebed.backend.audio.buffer import AudioBuffer
from voicebed.backend.errors import PlaybackIdleError
from voicebed.backend.playback.analysis import AnalysisTap


def _tone(freq_hz: float, frames: int = 24000, sr: int = 24000, amplitude: float = 0.5) -> AudioBuffer:
    t = np.arange(frames) / float(sr)
    return AudioBuffer.from_channels([amplitude * np.sin(2 * np.pi * freq_hz * t)], sr)


def test_idle_tap_raises() -> None:
    tap = AnalysisTap(256)
    assert tap.active is False
    with pytest.raises(PlaybackIdleError):
        tap.byte_frequency_data()


def test_fft_size_must_be_power_of_two() -> None:
    with pytest.raises(ValueError, match="power of two"):
        AnalysisTap(300)


def test_bin_count_is_half_fft_size() -> None:
    tap = AnalysisTap(256)
    tap.connect(_tone(1500.0), lambda: 12000)
    data = tap.byte_frequency_data()
    assert tap.bin_count == 128
    assert data.dtype == np.uint8
    assert data.shape == (128,)


def test_tone_peaks_in_its_bin() -> None:
    # 1500 Hz at 24 kHz with N=256 lands exactly on bin 16; -60 dB stays below max_db
    tap = AnalysisTap(256)
    tap.connect(_tone(1500.0, amplitude=0.005), lambda: 12000)
    for _ in range(10):
        data = tap.byte_frequency_data()
    assert int(np.argmax(data)) == 16
    assert 120 < int(data[16]) < 255
    assert int(data[15]) < int(data[16]) > int(data[17])
    assert int(data[100]) < int(data[16])


def test_loud_tone_saturates_around_its_bin() -> None:
    tap = AnalysisTap(256)
    tap.connect(_tone(1500.0), lambda: 12000)
    for _ in range(10):
        data = tap.byte_frequency_data()
    assert data[15:18].tolist() == [255, 255, 255]
    assert int(data[14]) < 255 and int(data[18]) < 255


def test_window_is_periodic_blackman() -> None:
    n = np.arange(256)
    expected = 0.42 - 0.5 * np.cos(2 * np.pi * n / 256) + 0.08 * np.cos(4 * np.pi * n / 256)
    tap = AnalysisTap(256)
    np.testing.assert_allclose(tap._window, expected, atol=1e-12)


def test_silence_maps_to_zero() -> None:
    tap = AnalysisTap(256)
    tap.connect(AudioBuffer.silence(2, 4800, 24000), lambda: 2400)
    assert not tap.byte_frequency_data().any()


def test_window_before_first_frame_is_empty() -> None:
    tap = AnalysisTap(256)
    tap.connect(_tone(1500.0), lambda: 0)
    assert not tap.time_domain_window().any()
    assert not tap.byte_frequency_data().any()


def test_disconnect_returns_to_idle() -> None:
    tap = AnalysisTap(256)
    tap.connect(_tone(440.0), lambda: 5000)
    assert tap.active is True
    tap.disconnect()
    assert tap.active is False
    with pytest.raises(PlaybackIdleError):
        tap.time_domain_window()
