from __future__ import annotations

import importlib.util
import json
import platform
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from voicebed.backend.config import AppConfig  # noqa: E402

AUDIO_MODULES = ("numpy", "scipy", "soundfile", "librosa", "sounddevice", "fastapi", "uvicorn")


def has_module(name: str) -> bool:
    try:
        return importlib.util.find_spec(name) is not None
    except (ImportError, ValueError):
        return False


def decoder_report() -> dict:
    try:
        import soundfile as sf
    except (ImportError, OSError) as exc:
        return {"error": str(exc)}
    return {
        "libsndfile": str(sf.__libsndfile_version__),
        "formats": sorted(sf.available_formats()),
    }


def output_report(cfg: AppConfig) -> dict:
    if cfg.fake_mode:
        return {"backend": "null", "detail": "VB_FAKE_MODE is set; no device is opened"}
    try:
        import sounddevice as sd

        outputs = [
            {"id": idx, "name": dev["name"], "channels": int(dev["max_output_channels"])}
            for idx, dev in enumerate(sd.query_devices())
            if int(dev["max_output_channels"]) > 0
        ]
        default_out = sd.default.device[1]
    except Exception as exc:
        return {"backend": "sounddevice", "error": str(exc)}
    return {
        "backend": "sounddevice",
        "configured_device": cfg.output_device or None,
        "default_output_id": default_out,
        "outputs": outputs,
    }


def main() -> None:
    cfg = AppConfig.from_env()
    report = {
        "os": platform.platform(),
        "python": platform.python_version(),
        "modules": {name: has_module(name) for name in AUDIO_MODULES},
        "data_dir": str(cfg.data_dir),
        "sample_rate": cfg.sample_rate,
        "fft_size": cfg.fft_size,
        "gemini_model": cfg.gemini_model,
        "gemini_api_key_present": bool(str(cfg.gemini_api_key or "").strip()),
        "decoder": decoder_report(),
        "output": output_report(cfg),
    }
    print(json.dumps(report, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
