"""
Inbound client message models for VoxRelay.

Multiplexed-mode clients send JSON text frames tagged by ``type``.
Each tag maps to exactly one model; tags outside the vocabulary are
represented by UnknownMessage so they can be logged and ignored.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _ClientMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = Field(default=None, description="Optional correlation id.")


class AudioMessage(_ClientMessage):
    """Base64 audio chunk.

    Attributes:
        type: ``audio`` or ``audio-chunk``.
        data: Base64-encoded audio bytes.
        mime_type: Container/codec hint (``mimeType`` on the wire).
    """

    type: Literal["audio", "audio-chunk"]
    data: str = Field(..., min_length=1, description="Base64-encoded audio.")
    mime_type: str | None = Field(default=None, alias="mimeType")


class VideoFrameMessage(_ClientMessage):
    """Base64 JPEG frame for vision analysis."""

    type: Literal["video-frame"]
    data: str = Field(..., min_length=1, description="Base64-encoded JPEG.")


class UnknownMessage(BaseModel):
    """A well-formed JSON object whose tag is not recognized."""

    type: str | None = None


ClientMessage = AudioMessage | VideoFrameMessage | UnknownMessage
