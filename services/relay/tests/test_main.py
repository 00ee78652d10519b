"""
Tests for the VoxRelay FastAPI application.

Exercises the HTTP analysis routes, health and metrics endpoints, the
startup credential check, and the relay WebSocket in both client modes.
"""

from __future__ import annotations

import base64
import time
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from vr_common.config import ClientMode, Settings, TranscriptionMode
from vr_common.errors import AdapterFailure, ConfigurationError
from vr_common.models import TranscriptEvent, VideoAnalysis

from relay.main import build_upstream_factory, create_app
from relay.upstreams.deepgram import DeepgramUpstream


def _settings(**overrides) -> Settings:
    values = {
        "deepgram_api_key": "dg-test",
        "openai_api_key": "sk-test",
        "log_json": False,
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(**values)


def _close_and_settle(ws, mode: str, timeout: float = 2.0) -> None:
    """Close *ws* from the client side and wait for the session to end."""
    ws.close(1000)
    deadline = time.monotonic() + timeout
    while REGISTRY.get_sample_value("relay_sessions_active", {"mode": mode}):
        if time.monotonic() > deadline:
            raise AssertionError("session still active after client close")
        time.sleep(0.01)


@pytest.fixture()
def client() -> TestClient:
    app = create_app(_settings(transcription_mode=TranscriptionMode.BATCH))
    with TestClient(app) as test_client:
        yield test_client


class TestStartup:
    """Tests for application startup."""

    def test_missing_credentials_refuse_start(self) -> None:
        """Missing keys stop the app from starting."""
        app = create_app(_settings(deepgram_api_key="", openai_api_key=""))
        with pytest.raises(ConfigurationError, match="VR_DEEPGRAM_API_KEY"):
            with TestClient(app):
                pass

    def test_proxy_mode_needs_only_deepgram(self) -> None:
        """Proxy mode starts without an OpenAI key."""
        app = create_app(_settings(openai_api_key=""), mode=ClientMode.PROXY)
        with TestClient(app) as test_client:
            assert test_client.get("/health").status_code == 200
            assert app.state.vision is None


class TestHealthAndMetrics:
    """Tests for health, metrics and CORS."""

    def test_health(self, client: TestClient) -> None:
        """GET /health reports ok."""
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_metrics(self, client: TestClient) -> None:
        """The metrics endpoint exposes relay metrics."""
        resp = client.get("/metrics/")
        assert resp.status_code == 200
        assert "relay_sessions_active" in resp.text

    def test_cors_allows_any_origin(self, client: TestClient) -> None:
        """Any origin is allowed."""
        resp = client.get("/health", headers={"Origin": "http://example.com"})
        assert resp.headers["access-control-allow-origin"] == "*"


class TestAnalyzeRoute:
    """Tests for POST /analyze."""

    def test_missing_text(self, client: TestClient) -> None:
        """Missing text is a 400."""
        resp = client.post("/analyze", json={})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Text is required"}

    def test_success(self, client: TestClient) -> None:
        """The provider response is returned as-is."""
        analyzer = MagicMock()
        analyzer.analyze = AsyncMock(return_value={"results": {"sentiments": {}}})
        client.app.state.text_analyzer = analyzer

        resp = client.post("/analyze", json={"text": "great call"})

        assert resp.status_code == 200
        assert resp.json() == {"results": {"sentiments": {}}}
        analyzer.analyze.assert_awaited_once_with("great call")

    def test_failure(self, client: TestClient) -> None:
        """Adapter failures become a 500."""
        analyzer = MagicMock()
        analyzer.analyze = AsyncMock(
            side_effect=AdapterFailure("text_intelligence", "Text analysis failed"),
        )
        client.app.state.text_analyzer = analyzer

        resp = client.post("/analyze", json={"text": "x"})

        assert resp.status_code == 500
        assert resp.json() == {"error": "Text analysis failed"}


class TestVisionRoute:
    """Tests for POST /vision-analysis."""

    def test_missing_image(self, client: TestClient) -> None:
        """A missing image is a 400."""
        resp = client.post("/vision-analysis", json={})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Image data is required"}

    def test_success(self, client: TestClient) -> None:
        """The analysis is returned as JSON."""
        vision = MagicMock()
        vision.analyze_frame = AsyncMock(return_value=VideoAnalysis(description="a desk"))
        client.app.state.vision = vision

        resp = client.post("/vision-analysis", json={"base64Image": "/9j/"})

        assert resp.status_code == 200
        assert resp.json()["description"] == "a desk"

    def test_failure(self, client: TestClient) -> None:
        """Adapter failures become a 500."""
        vision = MagicMock()
        vision.analyze_frame = AsyncMock(side_effect=AdapterFailure("vision", "nope"))
        client.app.state.vision = vision

        resp = client.post("/vision-analysis", json={"base64Image": "/9j/"})

        assert resp.status_code == 500
        assert resp.json() == {"error": "Vision analysis failed"}


class TestTranscribeRoute:
    """Tests for POST /transcribe."""

    def test_missing_audio(self, client: TestClient) -> None:
        """Missing audio is a 400."""
        resp = client.post("/transcribe", json={})
        assert resp.status_code == 400

    def test_invalid_base64(self, client: TestClient) -> None:
        """Invalid base64 is a 400."""
        resp = client.post("/transcribe", json={"audioData": "@@not-base64@@"})
        assert resp.status_code == 400

    def test_too_small(self, client: TestClient) -> None:
        """Undersized audio is a 400."""
        audio = base64.b64encode(b"\x00" * 999).decode()
        resp = client.post("/transcribe", json={"audioData": audio})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Audio data too small for transcription"}

    def test_success(self, client: TestClient) -> None:
        """A transcript is returned with its timestamp."""
        transcriber = MagicMock()
        transcriber.transcribe = AsyncMock(
            return_value=TranscriptEvent(text="hello", is_final=True, confidence=0.9),
        )
        client.app.state.transcriber = transcriber
        audio = base64.b64encode(b"\x00" * 2000).decode()

        resp = client.post("/transcribe", json={"audioData": audio, "mimeType": "audio/wav"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["text"] == "hello"
        assert body["confidence"] == 0.9
        assert body["isFinal"] is True
        assert isinstance(body["timestamp"], int)
        transcriber.transcribe.assert_awaited_once_with(b"\x00" * 2000, "audio/wav")


class TestRelaySocket:
    """Tests for the relay WebSocket endpoint."""

    def test_multiplexed_video_frame(self, client: TestClient) -> None:
        """A video frame round-trips through the socket."""
        vision = MagicMock()
        vision.analyze_frame = AsyncMock(
            return_value=VideoAnalysis(description="calm", mood="calm"),
        )
        client.app.state.vision = vision

        with client.websocket_connect("/") as ws:
            ws.send_json({"type": "video-frame", "data": "/9j/", "id": "42"})
            envelope = ws.receive_json()
            _close_and_settle(ws, "multiplexed")

        assert envelope["type"] == "video-analysis"
        assert envelope["data"]["mood"] == "calm"
        assert envelope["requestId"] == "42"

    def test_multiplexed_malformed_message(self, client: TestClient) -> None:
        """A malformed message yields an error envelope."""
        with client.websocket_connect("/") as ws:
            ws.send_text("{oops")
            envelope = ws.receive_json()
            _close_and_settle(ws, "multiplexed")

        assert envelope["type"] == "error"
        assert envelope["data"] == "Message processing failed"

    def test_proxy_relays_transcripts(self, fake_upstream_cls) -> None:
        """Proxy mode relays upstream transcripts."""
        app = create_app(_settings(), mode=ClientMode.PROXY)
        with TestClient(app) as test_client:
            app.state.upstream_factory = lambda: fake_upstream_cls(echo=True)
            with test_client.websocket_connect("/") as ws:
                ws.send_bytes(b"\x00" * 10)
                envelope = ws.receive_json()
                _close_and_settle(ws, "proxy")

        assert envelope["type"] == "transcription"
        assert envelope["transcript"] == "heard 10 bytes"
        assert envelope["isFinal"] is True


class TestUpstreamProvider:
    """Tests for streaming provider selection."""

    def test_default_provider_builds_fresh_deepgram_upstreams(self) -> None:
        """Each pair gets its own configured Deepgram upstream."""
        factory = build_upstream_factory(_settings(deepgram_model="nova-3"))
        first, second = factory(), factory()
        assert isinstance(first, DeepgramUpstream)
        assert first is not second
        assert first.name == "deepgram"
        assert "model=nova-3" in first.url

    def test_unknown_provider_refuses_start(self) -> None:
        """An unknown provider stops the app from starting."""
        app = create_app(_settings(upstream_provider="whisper-live"))
        with pytest.raises(ConfigurationError, match="whisper-live"):
            with TestClient(app):
                pass
