from __future__ import annotations

import logging
import threading
import time

from voicebed.backend.audio.buffer import AudioBuffer
from voicebed.backend.audio.mixer import mix
from voicebed.backend.audio.pcm_codec import decode_base64, decode_pcm16
from voicebed.backend.audio.synth import render_background
from voicebed.backend.audio.upload import decode_audio_file, resample_buffer
from voicebed.backend.audio.wav_encoder import encode_wav
from voicebed.backend.config import AppConfig
from voicebed.backend.errors import ClientInputError, ConfigurationError, GenerationError, PlaybackIdleError
from voicebed.backend.playback.scheduler import PlaybackScheduler
from voicebed.backend.services import catalog
from voicebed.backend.services.tts_client import TTS_SAMPLE_RATE, GeminiTTSClient
from voicebed.backend.types import (
    CatalogResponse,
    GenerateRequest,
    GenerateResponse,
    PlaybackStateResponse,
    SpectrumResponse,
    UploadResponse,
)

logger = logging.getLogger("voicebed.speech")

_MISSING_UPLOAD_NOTICE = "Please upload a custom audio file first."


def _intensity_instruction(intensity: int) -> str:
    if intensity > 80:
        return " (Intensity: Very High, Emphatic)"
    if intensity > 60:
        return " (Intensity: High)"
    if intensity < 20:
        return " (Intensity: Very Subtle)"
    if intensity < 40:
        return " (Intensity: Mild)"
    return ""


def build_prompt(text: str, style_id: str, intensity: int) -> str:
    """Prefix ``text`` with the style instruction, e.g. ``Say happily (Intensity: High): "hi"``."""
    style = catalog.find_style(style_id)
    if style is None:
        raise ClientInputError(f"Unknown style: {style_id}")
    prefix = style.prompt_prefix
    if not prefix:
        return text
    instruction = _intensity_instruction(int(intensity))
    if prefix.endswith(": "):
        return f'{prefix[:-2]}{instruction}: "{text}"'
    return f'{prefix}{instruction} "{text}"'


def resolve_voice(voice: str, custom_voice_id: str | None) -> str:
    if voice == catalog.CUSTOM_VOICE_ID:
        custom = str(custom_voice_id or "").strip()
        if not custom:
            raise ConfigurationError("Please enter a valid Custom Voice ID.")
        return custom
    return voice


class SpeechService:
    def __init__(
        self,
        config: AppConfig,
        tts: GeminiTTSClient,
        scheduler: PlaybackScheduler,
    ) -> None:
        self.config = config
        self.tts = tts
        self.scheduler = scheduler
        self._lock = threading.Lock()
        self._result: AudioBuffer | None = None
        self._background: AudioBuffer | None = None

    @property
    def result(self) -> AudioBuffer | None:
        with self._lock:
            return self._result

    @property
    def background(self) -> AudioBuffer | None:
        with self._lock:
            return self._background

    def get_catalog(self) -> CatalogResponse:
        return CatalogResponse(
            voices=list(catalog.VOICES),
            languages=list(catalog.LANGUAGES),
            styles=list(catalog.STYLES),
            backgrounds=list(catalog.BACKGROUND_TRACKS),
            default_voice=self.config.default_voice,
            default_language=self.config.default_language,
            overlay_gain=self.config.overlay_gain,
        )

    def _bed_for(self, track_id: str, speech: AudioBuffer) -> tuple[AudioBuffer | None, str | None]:
        track = catalog.find_background(track_id)
        if track is None:
            raise ClientInputError(f"Unknown background track: {track_id}")
        if track.id == catalog.NO_BACKGROUND_ID:
            return None, None
        if track.type == "file":
            with self._lock:
                uploaded = self._background
            if uploaded is None:
                logger.warning("custom background selected without an upload; continuing without bed")
                return None, _MISSING_UPLOAD_NOTICE
            if uploaded.sample_rate != speech.sample_rate:
                # uploads are held at the context rate; speech arrives at the TTS rate
                logger.info("resampling background from %d Hz to %d Hz", uploaded.sample_rate, speech.sample_rate)
                uploaded = resample_buffer(uploaded, speech.sample_rate)
            return uploaded, None
        if track.synth_type is None or speech.frame_count == 0:
            return None, None
        return render_background(track.synth_type, speech.duration_seconds, speech.sample_rate), None

    def generate(self, req: GenerateRequest) -> GenerateResponse:
        text = req.text.strip()
        if not text:
            raise ClientInputError("Please enter some text first.")
        voice = resolve_voice(req.voice, req.custom_voice_id)
        prompt = build_prompt(req.text, req.style, req.intensity)
        if catalog.find_background(req.background) is None:
            raise ClientInputError(f"Unknown background track: {req.background}")
        if not catalog.is_known_language(req.language):
            logger.warning("language %s is not in the catalog; passing it through", req.language)

        self.scheduler.stop()
        t0 = time.perf_counter()
        audio_b64 = self.tts.generate(prompt, voice, req.language)
        if not audio_b64:
            raise GenerationError("No audio data received from API.")
        speech = decode_pcm16(decode_base64(audio_b64), TTS_SAMPLE_RATE, 1)
        tts_ms = (time.perf_counter() - t0) * 1000.0

        bed, notice = self._bed_for(req.background, speech)
        final = speech if bed is None else mix(speech, bed, self.config.overlay_gain)

        with self._lock:
            self._result = final
        logger.info(
            "generated speech voice=%s language=%s style=%s background=%s duration=%.2fs tts_ms=%.1f",
            voice,
            req.language,
            req.style,
            req.background,
            final.duration_seconds,
            tts_ms,
        )
        return GenerateResponse(
            voice=voice,
            language=req.language,
            prompt=prompt,
            background=req.background if bed is not None else catalog.NO_BACKGROUND_ID,
            sample_rate=final.sample_rate,
            channel_count=final.channel_count,
            frame_count=final.frame_count,
            duration=round(final.duration_seconds, 4),
            notice=notice,
        )

    def upload_background(self, data: bytes, filename: str) -> UploadResponse:
        buffer = decode_audio_file(
            data,
            self.config.sample_rate,
            filename=filename,
            max_bytes=self.config.max_upload_bytes,
        )
        with self._lock:
            self._background = buffer
        logger.info(
            "loaded background %r: channels=%d frames=%d", filename, buffer.channel_count, buffer.frame_count
        )
        return UploadResponse(
            filename=filename,
            sample_rate=buffer.sample_rate,
            channel_count=buffer.channel_count,
            frame_count=buffer.frame_count,
            duration=round(buffer.duration_seconds, 4),
        )

    def export_wav(self) -> tuple[bytes, str]:
        result = self.result
        if result is None:
            raise ClientInputError("Nothing to export; generate speech first.")
        return encode_wav(result), f"speech-{int(time.time() * 1000)}.wav"

    def play(self) -> PlaybackStateResponse:
        result = self.result
        if result is None:
            raise ClientInputError("Nothing to play; generate speech first.")
        return self.scheduler.start(result)

    def stop(self) -> PlaybackStateResponse:
        return self.scheduler.stop()

    def state(self) -> PlaybackStateResponse:
        return self.scheduler.state()

    def spectrum(self) -> SpectrumResponse:
        fft_size = self.config.fft_size
        try:
            bins = self.scheduler.spectrum()
        except PlaybackIdleError:
            return SpectrumResponse(active=False, fft_size=fft_size, bins=[0] * (fft_size // 2))
        return SpectrumResponse(active=True, fft_size=fft_size, bins=[int(v) for v in bins])
