"""
Health check API router for VoxRelay.

Liveness endpoint; reports ``ok`` while the process is serving.
"""

from __future__ import annotations

from fastapi import APIRouter

from relay.schemas.analysis_schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok")
