"""
Tests for VoxRelay shared models.

Validates envelope serialization and transcript event constraints.
"""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from vr_common.models import (
    AudioMessage,
    EnvelopeType,
    OutboundEnvelope,
    TranscriptEvent,
    VideoAnalysis,
)


class TestOutboundEnvelope:
    """Tests for the outbound envelope model."""

    def test_transcription_fields_are_flat(self) -> None:
        """Transcript fields sit at the top level."""
        envelope = OutboundEnvelope(
            type=EnvelopeType.TRANSCRIPTION,
            timestamp=1700000000000,
            transcript="hello",
            isFinal=True,
            confidence=0.9,
        )
        assert json.loads(envelope.to_json()) == {
            "type": "transcription",
            "timestamp": 1700000000000,
            "transcript": "hello",
            "isFinal": True,
            "confidence": 0.9,
        }

    def test_none_fields_are_omitted(self) -> None:
        """None fields are left off the wire."""
        envelope = OutboundEnvelope(
            type=EnvelopeType.ERROR,
            data="boom",
            timestamp=1,
            code=None,
            requestId=None,
        )
        assert json.loads(envelope.to_json()) == {"type": "error", "data": "boom", "timestamp": 1}

    def test_error_code_is_kept(self) -> None:
        """Error codes are serialized."""
        envelope = OutboundEnvelope(type=EnvelopeType.ERROR, data="x", timestamp=1, code=400)
        assert json.loads(envelope.to_json())["code"] == 400

    def test_video_analysis_payload(self) -> None:
        """Video analysis payloads use camelCase keys."""
        analysis = VideoAnalysis(description="a desk")
        envelope = OutboundEnvelope(
            type=EnvelopeType.VIDEO_ANALYSIS,
            data=analysis.model_dump(),
            timestamp=5,
        )
        data = json.loads(envelope.to_json())
        assert data["type"] == "video-analysis"
        assert data["data"]["scene"] == "indoor space"
        assert data["data"]["mood"] == "neutral"

    def test_negative_timestamp_rejected(self) -> None:
        """Negative timestamps are rejected."""
        with pytest.raises(ValidationError):
            OutboundEnvelope(type=EnvelopeType.ERROR, timestamp=-1)


class TestTranscriptEvent:
    """Tests for the transcript event model."""

    def test_has_text(self) -> None:
        """Blank text has no text."""
        assert TranscriptEvent(text=" hi ").has_text is True
        assert TranscriptEvent(text="   ").has_text is False

    def test_confidence_bounds(self) -> None:
        """Confidence must lie in [0, 1]."""
        with pytest.raises(ValidationError):
            TranscriptEvent(text="x", confidence=1.5)

    def test_frozen(self) -> None:
        """Events are immutable."""
        event = TranscriptEvent(text="x")
        with pytest.raises(ValidationError):
            event.text = "y"  # type: ignore[misc]


class TestAudioMessage:
    """Tests for the inbound audio message model."""

    def test_mime_type_alias(self) -> None:
        """mimeType is accepted as an alias."""
        msg = AudioMessage.model_validate(
            {"type": "audio", "data": "AAAA", "mimeType": "audio/wav", "id": "r1"},
        )
        assert msg.mime_type == "audio/wav"
        assert msg.id == "r1"
