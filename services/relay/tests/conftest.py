"""Shared fixtures for relay service tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import pytest
from starlette.websockets import WebSocketState

from vr_common.errors import ProviderUnavailable
from vr_common.models import TranscriptEvent

from relay.upstream_base import ConnectionState, UpstreamEngine
from relay.upstreams.deepgram import parse_deepgram_result


class FakeWebSocket:
    """In-memory stand-in for a Starlette ``WebSocket``."""

    def __init__(self) -> None:
        self.client_state = WebSocketState.CONNECTING
        self.application_state = WebSocketState.CONNECTING
        self.inbound: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self.sent: list[bytes | str] = []
        self.close_codes: list[int] = []

    async def accept(self) -> None:
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def receive(self) -> dict[str, Any]:
        return await self.inbound.get()

    async def send_text(self, data: str) -> None:
        self.sent.append(data)

    async def send_bytes(self, data: bytes) -> None:
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.application_state = WebSocketState.DISCONNECTED
        self.close_codes.append(code)
        self.inbound.put_nowait({"type": "websocket.disconnect", "code": code})

    # ── test helpers ──

    def push_text(self, text: str) -> None:
        self.inbound.put_nowait({"type": "websocket.receive", "text": text})

    def push_json(self, payload: dict[str, Any]) -> None:
        self.push_text(json.dumps(payload))

    def push_bytes(self, data: bytes) -> None:
        self.inbound.put_nowait({"type": "websocket.receive", "bytes": data})

    def disconnect(self, code: int = 1000) -> None:
        self.client_state = WebSocketState.DISCONNECTED
        self.inbound.put_nowait({"type": "websocket.disconnect", "code": code})

    def envelopes(self) -> list[dict[str, Any]]:
        out = []
        for item in self.sent:
            if isinstance(item, str):
                try:
                    out.append(json.loads(item))
                except ValueError:
                    continue
        return out


class FakeUpstream(UpstreamEngine):
    """Scriptable upstream: gate the handshake, push provider frames.

    Args:
        fail: Raise ProviderUnavailable from ``connect()``.
        opened: Complete the handshake immediately.
        echo: Answer every audio frame with a final Deepgram result.
    """

    def __init__(self, *, fail: bool = False, opened: bool = True, echo: bool = False) -> None:
        self._state = ConnectionState.IDLE
        self._fail = fail
        self._echo = echo
        self.gate = asyncio.Event()
        if opened:
            self.gate.set()
        self.inbox: asyncio.Queue[bytes | str | None] = asyncio.Queue()
        self.sent: list[bytes | str] = []
        self.keepalives = 0
        self.close_calls = 0

    @property
    def name(self) -> str:
        return "fake"

    @property
    def state(self) -> ConnectionState:
        return self._state

    async def connect(self) -> None:
        self._state = ConnectionState.CONNECTING
        await self.gate.wait()
        if self._fail:
            self._state = ConnectionState.CLOSED
            raise ProviderUnavailable("fake provider down")
        self._state = ConnectionState.OPEN

    async def send(self, frame: bytes | str) -> bool:
        if self._state is not ConnectionState.OPEN:
            return False
        self.sent.append(frame)
        if self._echo:
            self.push(deepgram_result(f"heard {len(frame)} bytes", is_final=True))
        return True

    async def send_keepalive(self) -> bool:
        if self._state is not ConnectionState.OPEN:
            return False
        self.keepalives += 1
        return True

    async def receive(self) -> bytes | str | None:
        if self._state is ConnectionState.CLOSED and self.inbox.empty():
            return None
        item = await self.inbox.get()
        if item is None:
            self._state = ConnectionState.CLOSED
        return item

    def normalize(self, raw: bytes | str) -> TranscriptEvent | None:
        return parse_deepgram_result(raw)

    async def close(self) -> None:
        self.close_calls += 1
        if self._state is not ConnectionState.CLOSED:
            self._state = ConnectionState.CLOSED
            self.inbox.put_nowait(None)

    # ── test helpers ──

    def push(self, raw: bytes | str) -> None:
        self.inbox.put_nowait(raw)

    def hang_up(self) -> None:
        self.inbox.put_nowait(None)


def deepgram_result(
    transcript: str,
    *,
    is_final: bool = False,
    confidence: float | None = 0.98,
) -> str:
    """Serialize a Deepgram live ``Results`` frame."""
    alternative: dict[str, Any] = {"transcript": transcript}
    if confidence is not None:
        alternative["confidence"] = confidence
    return json.dumps(
        {
            "type": "Results",
            "is_final": is_final,
            "channel": {"alternatives": [alternative]},
        }
    )


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll *predicate* on the running loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture()
def fake_ws() -> FakeWebSocket:
    return FakeWebSocket()


@pytest.fixture()
def fake_upstream_cls() -> type[FakeUpstream]:
    return FakeUpstream


@pytest.fixture()
def dg_result() -> Callable[..., str]:
    return deepgram_result


@pytest.fixture()
def until() -> Callable[..., Any]:
    return wait_until

