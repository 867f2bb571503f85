from __future__ import annotations

import importlib
import io

import numpy as np
import pytest


def _load_main(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.setenv("VB_FAKE_MODE", "1")
    monkeypatch.setenv("VB_DATA_DIR", str(tmp_path / "data"))
    module = importlib.import_module("voicebed.backend.main")
    return importlib.reload(module)


def test_generate_export_and_playback_flow(monkeypatch, tmp_path):
    testclient_mod = pytest.importorskip("fastapi.testclient")
    TestClient = testclient_mod.TestClient
    module = _load_main(monkeypatch, tmp_path)

    with TestClient(module.app) as client:
        gen = client.post(
            "/api/v1/speech/generate",
            json={"text": "hello world", "voice": "Zephyr", "style": "happy", "intensity": 75, "background": "lofi"},
        )
        assert gen.status_code == 200
        payload = gen.json()
        assert payload["voice"] == "Zephyr"
        assert payload["prompt"] == 'Say happily (Intensity: High): "hello world"'
        assert payload["background"] == "lofi"
        assert payload["sample_rate"] == 24000

        exported = client.get("/api/v1/speech/export")
        assert exported.status_code == 200
        assert exported.headers["content-type"] == "audio/wav"
        assert "attachment" in exported.headers["content-disposition"]
        assert exported.content[:4] == b"RIFF"
        assert len(exported.content) == 44 + payload["frame_count"] * payload["channel_count"] * 2

        play = client.post("/api/v1/playback/play")
        assert play.status_code == 200
        assert play.json()["is_playing"] is True

        spectrum = client.get("/api/v1/playback/spectrum")
        assert spectrum.status_code == 200
        assert len(spectrum.json()["bins"]) == 128

        stop = client.post("/api/v1/playback/stop")
        assert stop.status_code == 200
        assert stop.json()["is_playing"] is False

        state = client.get("/api/v1/playback/state")
        assert state.json() == {"is_playing": False, "current_time": 0.0, "duration": 0.0, "session_id": 0}


def test_client_errors_map_to_400(monkeypatch, tmp_path):
    testclient_mod = pytest.importorskip("fastapi.testclient")
    TestClient = testclient_mod.TestClient
    module = _load_main(monkeypatch, tmp_path)

    with TestClient(module.app) as client:
        assert client.get("/api/v1/speech/export").status_code == 400
        assert client.post("/api/v1/playback/play").status_code == 400

        blank = client.post("/api/v1/speech/generate", json={"text": "  "})
        assert blank.status_code == 400

        custom = client.post("/api/v1/speech/generate", json={"text": "hi", "voice": "custom"})
        assert custom.status_code == 400
        assert "Custom Voice ID" in custom.json()["detail"]

        unknown_bg = client.post("/api/v1/speech/generate", json={"text": "hi", "background": "jazz"})
        assert unknown_bg.status_code == 400

        bad_intensity = client.post("/api/v1/speech/generate", json={"text": "hi", "intensity": 101})
        assert bad_intensity.status_code == 422


def test_generation_failure_maps_to_502(monkeypatch, tmp_path):
    testclient_mod = pytest.importorskip("fastapi.testclient")
    TestClient = testclient_mod.TestClient
    module = _load_main(monkeypatch, tmp_path)
    monkeypatch.setattr(module.tts_client, "generate", lambda *_args: None)

    with TestClient(module.app) as client:
        resp = client.post("/api/v1/speech/generate", json={"text": "hello"})
        assert resp.status_code == 502
        assert resp.json()["detail"] == "No audio data received from API."


def test_background_upload(monkeypatch, tmp_path):
    testclient_mod = pytest.importorskip("fastapi.testclient")
    sf = pytest.importorskip("soundfile")
    TestClient = testclient_mod.TestClient
    module = _load_main(monkeypatch, tmp_path)

    buf = io.BytesIO()
    sf.write(buf, np.zeros((44100, 2), dtype=np.float32), 44100, format="WAV")

    with TestClient(module.app) as client:
        ok = client.post(
            "/api/v1/background/upload",
            files={"audio_file": ("bed.wav", buf.getvalue(), "audio/wav")},
        )
        assert ok.status_code == 200
        payload = ok.json()
        assert payload["sample_rate"] == 24000
        assert payload["channel_count"] == 2
        assert payload["frame_count"] == 24000

        bad = client.post(
            "/api/v1/background/upload",
            files={"audio_file": ("bed.mp3", b"garbage" * 10, "audio/mpeg")},
        )
        assert bad.status_code == 400
        assert "Failed to load audio file" in bad.json()["detail"]

        gen = client.post("/api/v1/speech/generate", json={"text": "hello", "background": "custom"})
        assert gen.status_code == 200
        assert gen.json()["background"] == "custom"


def test_playback_websocket_sends_initial_state(monkeypatch, tmp_path):
    testclient_mod = pytest.importorskip("fastapi.testclient")
    TestClient = testclient_mod.TestClient
    module = _load_main(monkeypatch, tmp_path)

    with TestClient(module.app) as client:
        with client.websocket_connect("/ws/playback") as ws:
            event = ws.receive_json()
            assert event["type"] == "playback_state"
            assert event["data"]["is_playing"] is False
