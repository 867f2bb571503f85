from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _power_of_two(value: int, default: int) -> int:
    if value < 32 or value & (value - 1):
        return default
    return value


@dataclass(slots=True)
class AppConfig:
    data_dir: Path
    logs_dir: Path

    fake_mode: bool
    sample_rate: int
    fft_size: int
    overlay_gain: float
    tick_hz: float
    progress_emit_interval_s: float
    output_device: str

    gemini_api_base: str
    gemini_api_key: str
    gemini_model: str
    gemini_timeout_s: float

    max_upload_bytes: int
    default_voice: str
    default_language: str

    @classmethod
    def from_env(cls) -> "AppConfig":
        root = Path(os.getenv("VB_DATA_DIR", "data")).resolve()
        return cls(
            data_dir=root,
            logs_dir=root / "logs",
            fake_mode=_as_bool(os.getenv("VB_FAKE_MODE"), default=False),
            sample_rate=max(1, int(os.getenv("VB_SAMPLE_RATE", "24000"))),
            fft_size=_power_of_two(int(os.getenv("VB_FFT_SIZE", "256")), 256),
            overlay_gain=float(os.getenv("VB_OVERLAY_GAIN", "0.4")),
            tick_hz=max(1.0, float(os.getenv("VB_TICK_HZ", "60"))),
            progress_emit_interval_s=max(
                0.0, float(os.getenv("VB_PROGRESS_EMIT_INTERVAL_S", "0.1"))
            ),
            output_device=os.getenv("VB_OUTPUT_DEVICE", "").strip(),
            gemini_api_base=os.getenv(
                "VB_GEMINI_API_BASE",
                "https://generativelanguage.googleapis.com/v1beta",
            ),
            gemini_api_key=os.getenv(
                "VB_GEMINI_API_KEY",
                os.getenv("GEMINI_API_KEY", os.getenv("API_KEY", "")),
            ),
            gemini_model=os.getenv("VB_GEMINI_MODEL", "gemini-2.5-flash-preview-tts"),
            gemini_timeout_s=float(os.getenv("VB_GEMINI_TIMEOUT_S", "60")),
            max_upload_bytes=int(float(os.getenv("VB_MAX_UPLOAD_MB", "25")) * 1024 * 1024),
            default_voice=os.getenv("VB_DEFAULT_VOICE", "Kore"),
            default_language=os.getenv("VB_DEFAULT_LANGUAGE", "en-US"),
        )

    def ensure_paths(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)
