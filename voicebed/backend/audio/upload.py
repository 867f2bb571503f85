from __future__ import annotations

import io
import logging
import math
import os
import tempfile
from pathlib import Path

import numpy as np

from voicebed.backend.audio.buffer import AudioBuffer
from voicebed.backend.errors import DecodeError

logger = logging.getLogger("voicebed.audio")

_UNSUPPORTED_MESSAGE = "Failed to load audio file. Please try a valid MP3 or WAV."


def _read_with_soundfile(data: bytes) -> tuple[np.ndarray, int]:
    import soundfile as sf

    wav, sr = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
    # soundfile returns shape [frames, channels]
    return np.ascontiguousarray(wav.T), int(sr)


def _read_with_librosa(data: bytes, suffix: str) -> tuple[np.ndarray, int]:
    import librosa

    # audioread backends need a real path
    fd, tmp_name = tempfile.mkstemp(suffix=suffix or ".bin")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        wav, sr = librosa.load(tmp_name, sr=None, mono=False)
    finally:
        Path(tmp_name).unlink(missing_ok=True)
    wav = np.asarray(wav, dtype=np.float32)
    if wav.ndim == 1:
        wav = wav.reshape(1, -1)
    return wav, int(sr)


def _resample(planar: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    from scipy.signal import resample_poly

    g = math.gcd(source_rate, target_rate)
    up, down = target_rate // g, source_rate // g
    return resample_poly(planar, up, down, axis=1).astype(np.float32)


def resample_buffer(buffer: AudioBuffer, target_sample_rate: int) -> AudioBuffer:
    if buffer.sample_rate == target_sample_rate:
        return buffer
    return AudioBuffer(_resample(buffer.samples, buffer.sample_rate, target_sample_rate), target_sample_rate)


def decode_audio_file(
    data: bytes,
    target_sample_rate: int,
    *,
    filename: str = "",
    max_bytes: int | None = None,
) -> AudioBuffer:
    """Decode an uploaded compressed/containerized audio file at the context rate."""
    if not data:
        raise DecodeError("Uploaded audio file is empty.")
    if max_bytes is not None and len(data) > max_bytes:
        raise DecodeError(f"Audio file too large: {len(data)} bytes. Max: {max_bytes}.")

    try:
        planar, sr = _read_with_soundfile(data)
    except Exception as sf_exc:
        logger.info("soundfile could not decode upload %r (%s); trying librosa", filename, sf_exc)
        try:
            planar, sr = _read_with_librosa(data, Path(filename).suffix.lower())
        except Exception as exc:
            raise DecodeError(_UNSUPPORTED_MESSAGE) from exc

    if sr <= 0:
        raise DecodeError("Invalid sample rate in uploaded audio.")
    if planar.shape[0] < 1 or planar.shape[1] == 0:
        raise DecodeError("Uploaded audio contains no samples.")
    planar = np.nan_to_num(planar, nan=0.0, posinf=0.0, neginf=0.0)
    if sr != target_sample_rate:
        logger.info("resampling upload %r from %d Hz to %d Hz", filename, sr, target_sample_rate)
        planar = _resample(planar, sr, target_sample_rate)
    return AudioBuffer(planar, target_sample_rate)
