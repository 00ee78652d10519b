"""
Deepgram live transcription upstream for VoxRelay.

Opens one WebSocket to the Deepgram ``/v1/listen`` endpoint per session
pair, forwards client audio frames verbatim, sends ``KeepAlive`` control
frames on request, and normalizes Deepgram result payloads into
TranscriptEvent objects.
"""

from __future__ import annotations

import asyncio
import json
import math
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import structlog
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from vr_common.errors import MalformedUpstreamPayload, ProviderUnavailable
from vr_common.models import TranscriptEvent

from relay.upstream_base import ConnectionState, UpstreamEngine

logger = structlog.get_logger()

DEEPGRAM_LISTEN_URL = "wss://api.deepgram.com/v1/listen"
KEEPALIVE_FRAME = json.dumps({"type": "KeepAlive"})
CLOSE_TIMEOUT_S = 5.0


@dataclass(frozen=True)
class UpstreamConfig:
    """Fixed per-pair streaming configuration.

    Attributes:
        model: Provider model identifier.
        language: BCP-47 language code.
        smart_format: Provider-side punctuation and formatting.
        interim_results: Emit partial (non-final) results.
        encoding: Raw audio encoding; omitted for containerized audio.
        sample_rate: Sample rate for raw audio.
        channels: Channel count for raw audio.
    """

    model: str = "nova-2"
    language: str = "en"
    smart_format: bool = True
    interim_results: bool = True
    encoding: str | None = None
    sample_rate: int | None = None
    channels: int | None = None

    def query(self) -> dict[str, str]:
        """Return the listen query parameters for this configuration."""
        params: dict[str, Any] = {
            "model": self.model,
            "language": self.language,
            "smart_format": self.smart_format,
            "interim_results": self.interim_results,
            "encoding": self.encoding,
            "sample_rate": self.sample_rate,
            "channels": self.channels,
        }
        return {
            key: str(value).lower() if isinstance(value, bool) else str(value)
            for key, value in params.items()
            if value is not None
        }


class DeepgramUpstream(UpstreamEngine):
    """Deepgram streaming connection for one session pair.

    Args:
        api_key: Deepgram API key.
        config: Fixed streaming configuration.
        url: Listen endpoint (without query string).
        connect_timeout: Handshake bound in seconds; ``None`` waits forever.
    """

    def __init__(
        self,
        api_key: str,
        *,
        config: UpstreamConfig | None = None,
        url: str = DEEPGRAM_LISTEN_URL,
        connect_timeout: float | None = None,
    ) -> None:
        self._api_key = api_key
        self._config = config or UpstreamConfig()
        self._url = url
        self._connect_timeout = connect_timeout
        self._ws: ClientConnection | None = None
        self._state = ConnectionState.IDLE

    # ── UpstreamEngine interface ──

    @property
    def name(self) -> str:  # noqa: D401
        """Provider identifier."""
        return "deepgram"

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def url(self) -> str:
        """Full listen URL including the configuration query string."""
        query = urlencode(self._config.query())
        return f"{self._url}?{query}" if query else self._url

    async def connect(self) -> None:
        """Open the live WebSocket connection to Deepgram."""
        if self._state is not ConnectionState.IDLE:
            raise RuntimeError(f"Deepgram upstream already used (state={self._state.value})")

        self._state = ConnectionState.CONNECTING
        try:
            self._ws = await connect(
                self.url,
                additional_headers={"Authorization": f"Token {self._api_key}"},
                open_timeout=self._connect_timeout,
                close_timeout=CLOSE_TIMEOUT_S,
                max_size=None,
            )
        except (OSError, TimeoutError, WebSocketException) as exc:
            self._state = ConnectionState.CLOSED
            logger.error("deepgram_connect_failed", error=str(exc))
            raise ProviderUnavailable(f"Deepgram connection failed: {exc}") from exc
        except asyncio.CancelledError:
            # Pair shut down mid-handshake.
            self._state = ConnectionState.CLOSED
            raise

        if self._state is not ConnectionState.CONNECTING:
            # close() ran while the handshake was in flight.
            await self._ws.close()
            self._state = ConnectionState.CLOSED
            raise ProviderUnavailable("Deepgram connection closed during handshake")

        self._state = ConnectionState.OPEN
        logger.info("deepgram_connected", model=self._config.model, language=self._config.language)

    async def send(self, frame: bytes | str) -> bool:
        """Forward *frame* to Deepgram unchanged."""
        if self._state is not ConnectionState.OPEN or self._ws is None:
            return False
        try:
            await self._ws.send(frame)
        except ConnectionClosed:
            self._state = ConnectionState.CLOSED
            return False
        return True

    async def send_keepalive(self) -> bool:
        """Send ``{"type": "KeepAlive"}``."""
        return await self.send(KEEPALIVE_FRAME)

    async def receive(self) -> bytes | str | None:
        """Return the next Deepgram frame, or ``None`` once closed."""
        if self._ws is None or self._state is ConnectionState.CLOSED:
            return None
        try:
            return await self._ws.recv()
        except ConnectionClosed as exc:
            self._state = ConnectionState.CLOSED
            logger.info("deepgram_connection_closed", code=exc.rcvd.code if exc.rcvd else None)
            return None

    def normalize(self, raw: bytes | str) -> TranscriptEvent | None:
        """Extract the first alternative's transcript from a result payload."""
        return parse_deepgram_result(raw)

    async def close(self) -> None:
        """Close the Deepgram WebSocket connection."""
        if self._state in (ConnectionState.CLOSING, ConnectionState.CLOSED) or self._ws is None:
            self._state = ConnectionState.CLOSED
            return

        self._state = ConnectionState.CLOSING
        try:
            await self._ws.close()
        except (OSError, WebSocketException):
            logger.debug("deepgram_close_error", exc_info=True)
        finally:
            self._state = ConnectionState.CLOSED
        logger.info("deepgram_disconnected")


def parse_deepgram_result(raw: bytes | str) -> TranscriptEvent | None:
    """Normalize one Deepgram frame.

    Frames without a ``channel`` (``Metadata``, ``SpeechStarted``,
    ``UtteranceEnd``) and results whose transcript is blank yield ``None``.

    Raises:
        MalformedUpstreamPayload: If *raw* is not JSON.
        TypeError: If the JSON does not have the expected structure.
    """
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise MalformedUpstreamPayload("Deepgram frame is not JSON") from exc

    if not isinstance(payload, dict):
        return None
    channel = payload.get("channel")
    if not channel:
        return None
    if not isinstance(channel, dict):
        raise TypeError(f"Unexpected Deepgram channel: {type(channel).__name__}")

    alternatives = channel.get("alternatives") or []
    if not alternatives:
        return None
    first = alternatives[0]
    if not isinstance(first, dict):
        raise TypeError(f"Unexpected Deepgram alternative: {type(first).__name__}")

    transcript = first.get("transcript") or ""
    if not isinstance(transcript, str) or not transcript.strip():
        return None

    return TranscriptEvent(
        text=transcript,
        is_final=bool(payload.get("is_final", False)),
        confidence=_confidence(first.get("confidence")),
    )


def _confidence(value: Any) -> float | None:
    """Clamp a provider confidence into [0, 1]; ``None`` if not a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.debug("deepgram_confidence_ignored", value=repr(value))
        return None
    if math.isnan(number):
        return None
    return min(max(number, 0.0), 1.0)
