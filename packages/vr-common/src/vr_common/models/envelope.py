"""
Outbound envelope models for VoxRelay.

Every message the relay sends to a client is a JSON text frame shaped
as an OutboundEnvelope.  Transcription envelopes flatten the transcript
fields onto the envelope instead of nesting them under ``data``.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EnvelopeType(str, Enum):
    """Outbound message types."""

    TRANSCRIPTION = "transcription"
    VIDEO_ANALYSIS = "video-analysis"
    ERROR = "error"


class OutboundEnvelope(BaseModel):
    """A message sent to the client.

    Extra keyword fields are kept and serialized alongside ``type`` and
    ``timestamp`` (``transcript``/``isFinal``/``confidence`` for
    transcriptions, ``code`` for errors, ``requestId`` for correlation).

    Attributes:
        type: Envelope type.
        data: Payload for ``video-analysis`` and ``error`` envelopes.
        timestamp: Epoch milliseconds, non-decreasing per session.
    """

    model_config = ConfigDict(extra="allow")

    type: EnvelopeType = Field(..., description="Envelope type.")
    data: Any = Field(default=None, description="Envelope payload.")
    timestamp: int = Field(..., ge=0, description="Epoch milliseconds.")

    def to_json(self) -> str:
        """Serialize to the JSON text frame sent over the wire."""
        return json.dumps(self.model_dump(mode="json", exclude_none=True))
