from __future__ import annotations

import base64
import json
import logging
import math
import urllib.error
import urllib.request
from typing import Any

import numpy as np

from voicebed.backend.audio.buffer import AudioBuffer
from voicebed.backend.audio.pcm_codec import encode_pcm16
from voicebed.backend.config import AppConfig
from voicebed.backend.errors import ConfigurationError, GenerationError

logger = logging.getLogger("voicebed.tts")

TTS_SAMPLE_RATE = 24000


class GeminiTTSClient:
    """Text-to-speech over the Gemini ``generateContent`` REST endpoint.

    Returns base64 16-bit mono PCM at 24 kHz, or ``None`` when the response
    carries no inline audio.
    """

    def __init__(self, config: AppConfig) -> None:
        self.config = config

    def available(self) -> bool:
        return self.config.fake_mode or bool(str(self.config.gemini_api_key or "").strip())

    def _endpoint(self) -> str:
        base = str(self.config.gemini_api_base or "").strip().rstrip("/")
        if not base:
            base = "https://generativelanguage.googleapis.com/v1beta"
        return f"{base}/models/{self.config.gemini_model}:generateContent"

    def _fake_pcm_b64(self, text: str) -> str:
        sr = TTS_SAMPLE_RATE
        duration = max(0.35, min(3.0, 0.03 * max(len(text), 1)))
        t = np.arange(int(sr * duration), dtype=np.float64) / sr
        f = 180.0 + (len(text) % 80)
        wav = (0.18 * np.sin(2.0 * math.pi * f * t)).astype(np.float32)
        pcm = encode_pcm16(AudioBuffer(wav.reshape(1, -1), sr))
        return base64.b64encode(pcm).decode("ascii")

    def generate(self, text: str, voice_id: str, language_code: str) -> str | None:
        if self.config.fake_mode:
            logger.info("fake TTS for voice=%s language=%s chars=%d", voice_id, language_code, len(text))
            return self._fake_pcm_b64(text)

        api_key = str(self.config.gemini_api_key or "").strip()
        if not api_key:
            raise ConfigurationError("API key is missing. Set VB_GEMINI_API_KEY (or GEMINI_API_KEY).")

        payload = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice_id}},
                    "languageCode": language_code,
                },
            },
        }
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        req = urllib.request.Request(
            self._endpoint(),
            data=body,
            method="POST",
            headers={
                "x-goog-api-key": api_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )
        timeout = max(2.0, float(self.config.gemini_timeout_s))
        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                raw = resp.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace") if exc.fp else str(exc)
            raise GenerationError(f"Gemini HTTP {exc.code}: {detail}") from exc
        except Exception as exc:
            raise GenerationError(f"Gemini request failed: {exc}") from exc

        try:
            data = json.loads(raw)
        except Exception as exc:
            raise GenerationError(f"Gemini returned invalid JSON: {exc}") from exc
        return self._extract_audio(data)

    def _extract_audio(self, data: Any) -> str | None:
        if not isinstance(data, dict):
            return None
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            logger.warning("Gemini response has no candidates")
            return None
        content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
            return None
        inline = parts[0].get("inlineData") or parts[0].get("inline_data")
        if not isinstance(inline, dict):
            return None
        audio = inline.get("data")
        return audio if isinstance(audio, str) and audio else None
