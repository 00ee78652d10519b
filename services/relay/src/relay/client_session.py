"""
Client-facing session for VoxRelay.

Owns one accepted WebSocket from a caller.  Classifies inbound frames,
demultiplexes multiplexed-mode messages by ``type`` and dispatches them
to an InboundHandler, and serializes Outbound Envelopes back to the
client.  Sending after the client has gone away is a silent no-op.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from typing import Any, Protocol

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from vr_common.config import ClientMode
from vr_common.errors import MalformedInboundMessage
from vr_common.models import (
    AudioMessage,
    EnvelopeType,
    OutboundEnvelope,
    TranscriptEvent,
    VideoAnalysis,
    VideoFrameMessage,
)

from relay.protocol import decode_base64, parse_client_message

logger = structlog.get_logger()

MESSAGE_PROCESSING_FAILED = "Message processing failed"


class InboundHandler(Protocol):
    """Receiver for classified client traffic (implemented by the coordinator)."""

    async def on_audio(
        self,
        audio: bytes,
        *,
        mime_type: str | None = None,
        request_id: str | None = None,
    ) -> None: ...

    async def on_video_frame(self, payload: str, *, request_id: str | None = None) -> None: ...

    async def on_passthrough(self, frame: str) -> None: ...


class ClientSession:
    """One inbound client connection.

    Args:
        websocket: The Starlette/FastAPI WebSocket (not yet accepted).
        mode: ``proxy`` forwards every frame untouched; ``multiplexed``
            parses text frames as tagged JSON messages.
        session_id: Identifier bound into log lines.
    """

    def __init__(self, websocket: WebSocket, *, mode: ClientMode, session_id: str) -> None:
        self._ws = websocket
        self._mode = mode
        self._closed = False
        self._last_timestamp = 0
        self._log = logger.bind(session_id=session_id, mode=mode.value)

    @property
    def mode(self) -> ClientMode:
        return self._mode

    @property
    def is_open(self) -> bool:
        """``True`` until either side has closed the connection."""
        return (
            not self._closed
            and self._ws.client_state is WebSocketState.CONNECTED
            and self._ws.application_state is WebSocketState.CONNECTED
        )

    async def accept(self) -> None:
        await self._ws.accept()

    async def frames(self) -> AsyncIterator[bytes | str]:
        """Yield inbound text or binary frames until the client disconnects."""
        while not self._closed:
            try:
                message = await self._ws.receive()
            except (WebSocketDisconnect, RuntimeError):
                break
            if message["type"] == "websocket.disconnect":
                self._log.info("client_disconnected", code=message.get("code"))
                break

            if message.get("bytes") is not None:
                yield message["bytes"]
            elif message.get("text") is not None:
                yield message["text"]
        self._closed = True

    async def dispatch(self, frame: bytes | str, handler: InboundHandler) -> None:
        """Route one inbound frame to exactly one *handler* callback."""
        if isinstance(frame, bytes):
            await handler.on_audio(frame)
            return

        if self._mode is ClientMode.PROXY:
            await handler.on_passthrough(frame)
            return

        try:
            message = parse_client_message(frame)
            if isinstance(message, AudioMessage):
                audio = decode_base64(message.data)
                await handler.on_audio(audio, mime_type=message.mime_type, request_id=message.id)
            elif isinstance(message, VideoFrameMessage):
                await handler.on_video_frame(message.data, request_id=message.id)
            else:
                self._log.info("client_message_unknown_type", type=message.type)
        except MalformedInboundMessage as exc:
            self._log.warning("client_message_malformed", error=str(exc))
            await self.send_error(MESSAGE_PROCESSING_FAILED)

    # ── outbound ──

    async def send_envelope(
        self, envelope_type: EnvelopeType, data: Any = None, **fields: Any,
    ) -> bool:
        """Send one Outbound Envelope; returns ``False`` if the client is gone."""
        envelope = OutboundEnvelope(
            type=envelope_type,
            data=data,
            timestamp=self._next_timestamp(),
            **fields,
        )
        return await self._send_text(envelope.to_json())

    async def send_transcript(
        self, event: TranscriptEvent, *, request_id: str | None = None,
    ) -> bool:
        return await self.send_envelope(
            EnvelopeType.TRANSCRIPTION,
            transcript=event.text,
            isFinal=event.is_final,
            confidence=event.confidence,
            requestId=request_id,
        )

    async def send_video_analysis(
        self, analysis: VideoAnalysis, *, request_id: str | None = None,
    ) -> bool:
        return await self.send_envelope(
            EnvelopeType.VIDEO_ANALYSIS,
            analysis.model_dump(mode="json"),
            requestId=request_id,
        )

    async def send_error(
        self,
        message: str,
        *,
        code: int | None = None,
        request_id: str | None = None,
    ) -> bool:
        return await self.send_envelope(
            EnvelopeType.ERROR, message, code=code, requestId=request_id,
        )

    async def send_raw(self, frame: bytes | str) -> bool:
        """Forward a provider frame to the client unchanged."""
        if isinstance(frame, bytes):
            return await self._send(self._ws.send_bytes, frame)
        return await self._send_text(frame)

    async def close(self, code: int = 1000) -> None:
        """Close the client connection.  Safe to call more than once."""
        already_closed = self._closed
        self._closed = True
        if already_closed and self._ws.application_state is not WebSocketState.CONNECTED:
            return
        if (
            self._ws.application_state is WebSocketState.CONNECTED
            and self._ws.client_state is WebSocketState.CONNECTED
        ):
            try:
                await self._ws.close(code=code)
            except (WebSocketDisconnect, RuntimeError):
                self._log.debug("client_close_ignored", exc_info=True)
            else:
                self._log.info("client_closed", code=code)

    # ── internal helpers ──

    def _next_timestamp(self) -> int:
        """Epoch milliseconds, never lower than the previous envelope's."""
        now = int(time.time() * 1000)
        self._last_timestamp = max(now, self._last_timestamp)
        return self._last_timestamp

    async def _send_text(self, text: str) -> bool:
        return await self._send(self._ws.send_text, text)

    async def _send(self, sender: Any, payload: Any) -> bool:
        if not self.is_open:
            self._log.debug("client_send_skipped_closed")
            return False
        try:
            await sender(payload)
        except (WebSocketDisconnect, RuntimeError):
            self._closed = True
            self._log.debug("client_send_failed_closed", exc_info=True)
            return False
        return True
