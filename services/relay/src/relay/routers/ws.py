"""
WebSocket relay endpoint for VoxRelay.

Each accepted connection becomes one session pair driven by a
SessionCoordinator in the app's configured client mode.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, WebSocket

from relay.client_session import ClientSession
from relay.coordinator import RelayOptions, SessionCoordinator

router = APIRouter(tags=["websocket"])


@router.websocket("/")
async def relay_socket(ws: WebSocket) -> None:
    state = ws.app.state
    options: RelayOptions = state.relay_options
    session_id = uuid.uuid4().hex[:12]

    client = ClientSession(ws, mode=options.mode, session_id=session_id)
    coordinator = SessionCoordinator(
        client,
        options=options,
        upstream_factory=state.upstream_factory,
        vision=getattr(state, "vision", None),
        transcriber=getattr(state, "transcriber", None),
        session_id=session_id,
    )
    await coordinator.run()
