from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


def utc_now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


class HealthResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())
    status: Literal["ok", "degraded"]
    fake_mode: bool
    sample_rate: int
    context_state: Literal["uninitialized", "suspended", "running", "closed"]
    api_key_present: bool
    output_backend: str
    tts_model: str
    detail: str


class VoiceOption(BaseModel):
    id: str
    name: str
    gender: Literal["Male", "Female", "Any"]
    description: str = ""


class LanguageOption(BaseModel):
    code: str
    name: str
    flag: str = ""


class StyleOption(BaseModel):
    id: str
    label: str
    prompt_prefix: str = ""
    category: str = "General"


class BackgroundTrackOption(BaseModel):
    id: str
    name: str
    type: Literal["synth", "file"]
    synth_type: Literal["calm", "inspirational", "lofi"] | None = None


class CatalogResponse(BaseModel):
    voices: list[VoiceOption]
    languages: list[LanguageOption]
    styles: list[StyleOption]
    backgrounds: list[BackgroundTrackOption]
    default_voice: str
    default_language: str
    overlay_gain: float


class GenerateRequest(BaseModel):
    text: str = Field(max_length=5000)
    voice: str = "Kore"
    custom_voice_id: str | None = Field(default=None, max_length=128)
    language: str = "en-US"
    style: str = "none"
    intensity: int = Field(default=50, ge=0, le=100)
    background: str = "none"


class GenerateResponse(BaseModel):
    voice: str
    language: str
    prompt: str
    background: str
    sample_rate: int
    channel_count: int
    frame_count: int
    duration: float
    notice: str | None = None
    created_at: str = Field(default_factory=utc_now_iso)


class UploadResponse(BaseModel):
    filename: str
    sample_rate: int
    channel_count: int
    frame_count: int
    duration: float


class PlaybackStateResponse(BaseModel):
    is_playing: bool
    current_time: float = 0.0
    duration: float = 0.0
    session_id: int = 0


class SpectrumResponse(BaseModel):
    active: bool
    fft_size: int
    bins: list[int]


class WsEvent(BaseModel):
    type: str
    ts: str = Field(default_factory=utc_now_iso)
    data: dict[str, Any]
