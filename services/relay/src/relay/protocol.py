"""
Client wire protocol for multiplexed-mode sessions.

Pure functions that turn inbound text frames into typed client
messages and decode their base64 payloads.  No I/O, no state.
"""

from __future__ import annotations

import base64
import binascii
import json

from pydantic import BaseModel, ValidationError

from vr_common.errors import MalformedInboundMessage
from vr_common.models import AudioMessage, ClientMessage, UnknownMessage, VideoFrameMessage

AUDIO_TAGS = frozenset({"audio", "audio-chunk"})
VIDEO_TAGS = frozenset({"video-frame"})

_MESSAGE_MODELS: dict[str, type[BaseModel]] = {
    **{tag: AudioMessage for tag in AUDIO_TAGS},
    **{tag: VideoFrameMessage for tag in VIDEO_TAGS},
}


def parse_client_message(raw: str | bytes) -> ClientMessage:
    """Parse one multiplexed-mode text frame.

    Examples:
        >>> parse_client_message('{"type": "video-frame", "data": "AAAA"}')
        VideoFrameMessage(id=None, type='video-frame', data='AAAA')

        >>> parse_client_message('{"type": "ping"}')
        UnknownMessage(type='ping')

    Raises:
        MalformedInboundMessage: If the frame is not a JSON object, or a
            known tag is missing required fields.
    """
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise MalformedInboundMessage("Client frame is not valid JSON") from exc

    if not isinstance(payload, dict):
        raise MalformedInboundMessage("Client frame must be a JSON object")

    tag = payload.get("type")
    model = _MESSAGE_MODELS.get(tag) if isinstance(tag, str) else None
    if model is None:
        return UnknownMessage(type=tag if isinstance(tag, str) else None)

    try:
        return model.model_validate(payload)  # type: ignore[return-value]
    except ValidationError as exc:
        raise MalformedInboundMessage(f"Invalid '{tag}' message: {exc.error_count()} error(s)") from exc


def decode_base64(data: str) -> bytes:
    """Decode a base64 payload.

    Raises:
        MalformedInboundMessage: If *data* is not valid base64.
    """
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedInboundMessage("Payload is not valid base64") from exc
