from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging
from typing import Literal

from fastapi import FastAPI, File, HTTPException, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from voicebed.backend.audio.wav_encoder import WAV_MIME_TYPE
from voicebed.backend.config import AppConfig
from voicebed.backend.errors import ClientInputError, GenerationError, PlaybackError
from voicebed.backend.playback.context import AudioContextHolder
from voicebed.backend.playback.frames import AsyncioFrameDriver
from voicebed.backend.playback.scheduler import PlaybackScheduler
from voicebed.backend.services.speech_service import SpeechService
from voicebed.backend.services.tts_client import GeminiTTSClient
from voicebed.backend.types import (
    CatalogResponse,
    GenerateRequest,
    GenerateResponse,
    HealthResponse,
    PlaybackStateResponse,
    SpectrumResponse,
    UploadResponse,
    WsEvent,
)
from voicebed.backend.ws_manager import WebSocketManager

logger = logging.getLogger("voicebed")
logging.basicConfig(level=logging.INFO)

config = AppConfig.from_env()
config.ensure_paths()
tts_client = GeminiTTSClient(config)
context_holder = AudioContextHolder.from_config(config)
ws_manager = WebSocketManager()

_loop: asyncio.AbstractEventLoop | None = None
_service: SpeechService | None = None


def _event_sink(event: WsEvent) -> None:
    if _loop is None:
        return
    try:
        _loop.call_soon_threadsafe(asyncio.create_task, ws_manager.publish(event))
    except RuntimeError as exc:
        logger.debug("dropping %s event after loop shutdown: %s", event.type, exc)


def _get_service() -> SpeechService:
    if _service is None:
        raise RuntimeError("Speech service is not initialized")
    return _service


@asynccontextmanager
async def lifespan(_: FastAPI):
    global _loop
    global _service
    _loop = asyncio.get_running_loop()
    scheduler = PlaybackScheduler(
        context_holder.get,
        AsyncioFrameDriver(_loop, config.tick_hz),
        event_sink=_event_sink,
        progress_emit_interval_s=config.progress_emit_interval_s,
    )
    _service = SpeechService(config, tts_client, scheduler)
    logger.info(
        "voicebed ready (fake_mode=%s sample_rate=%d model=%s)",
        config.fake_mode,
        config.sample_rate,
        config.gemini_model,
    )
    yield
    try:
        scheduler.close()
    except Exception:
        logger.exception("failed to stop playback on shutdown")
    context_holder.close()
    _service = None
    _loop = None


app = FastAPI(title="Voicebed", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/v1/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    context = context_holder.peek()
    context_state = context.state if context is not None else "uninitialized"
    api_key_present = bool(str(config.gemini_api_key or "").strip())
    status: Literal["ok", "degraded"]
    if context_state == "closed":
        status = "degraded"
        detail = "audio context is closed"
    elif not tts_client.available():
        status = "degraded"
        detail = "speech generation API key is missing"
    else:
        status = "ok"
        detail = "ready; the audio context is created on first playback"
    return HealthResponse(
        status=status,
        fake_mode=config.fake_mode,
        sample_rate=config.sample_rate,
        context_state=context_state,
        api_key_present=api_key_present,
        output_backend="null" if config.fake_mode else "sounddevice",
        tts_model=config.gemini_model,
        detail=detail,
    )


@app.get("/api/v1/catalog", response_model=CatalogResponse)
async def get_catalog() -> CatalogResponse:
    return _get_service().get_catalog()


@app.post("/api/v1/speech/generate", response_model=GenerateResponse)
async def generate_speech(req: GenerateRequest):
    try:
        return await run_in_threadpool(_get_service().generate, req)
    except ClientInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except GenerationError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("speech generation failed")
        raise HTTPException(status_code=500, detail=f"Failed to generate speech: {exc}") from exc


@app.get("/api/v1/speech/export")
async def export_speech():
    try:
        payload, filename = await run_in_threadpool(_get_service().export_wav)
    except ClientInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Failed to export speech: {exc}") from exc
    return Response(
        content=payload,
        media_type=WAV_MIME_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/v1/background/upload", response_model=UploadResponse)
async def upload_background(audio_file: UploadFile = File(...)):
    try:
        payload = await audio_file.read()
        return await run_in_threadpool(
            _get_service().upload_background,
            payload,
            audio_file.filename or "background",
        )
    except ClientInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Failed to load background: {exc}") from exc


@app.post("/api/v1/playback/play", response_model=PlaybackStateResponse)
async def playback_play():
    try:
        return await run_in_threadpool(_get_service().play)
    except ClientInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except PlaybackError as exc:
        raise HTTPException(status_code=500, detail=f"Playback failed: {exc}") from exc
    except Exception as exc:
        logger.exception("playback start failed")
        raise HTTPException(status_code=500, detail=f"Failed to start playback: {exc}") from exc


@app.post("/api/v1/playback/stop", response_model=PlaybackStateResponse)
async def playback_stop():
    return await run_in_threadpool(_get_service().stop)


@app.get("/api/v1/playback/state", response_model=PlaybackStateResponse)
async def playback_state():
    return _get_service().state()


@app.get("/api/v1/playback/spectrum", response_model=SpectrumResponse)
async def playback_spectrum():
    try:
        return _get_service().spectrum()
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Failed to read spectrum: {exc}") from exc


@app.websocket("/ws/playback")
async def ws_playback(websocket: WebSocket):
    greeting = WsEvent(type="playback_state", data=_get_service().state().model_dump())
    try:
        await ws_manager.connect(websocket, greeting)
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await ws_manager.disconnect(websocket)
    except Exception as exc:
        logger.debug("playback listener failed: %s", exc)
        await ws_manager.disconnect(websocket)
