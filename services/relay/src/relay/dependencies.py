"""
FastAPI dependency injection providers for VoxRelay.

Adapters and settings are built once per process during startup and
stored on ``app.state``; these providers hand them to route handlers.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from analysis import BatchTranscriber, TextAnalyzer, VisionAnalyzer


def _state(request: Request, name: str) -> object:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail=f"{name} is not configured")
    return value


async def get_vision(request: Request) -> VisionAnalyzer:
    return _state(request, "vision")  # type: ignore[return-value]


async def get_transcriber(request: Request) -> BatchTranscriber:
    return _state(request, "transcriber")  # type: ignore[return-value]


async def get_text_analyzer(request: Request) -> TextAnalyzer:
    return _state(request, "text_analyzer")  # type: ignore[return-value]
