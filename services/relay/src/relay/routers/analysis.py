"""
Analysis API router for VoxRelay.

Request/response access to the analysis adapters: text intelligence,
single-frame vision analysis and one-shot audio transcription.
"""

from __future__ import annotations

import time
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException

from analysis import BatchTranscriber, TextAnalyzer, VisionAnalyzer
from vr_common.errors import AdapterFailure, AudioTooSmall, MalformedInboundMessage
from vr_common.metrics import ADAPTER_FAILURES

from relay.dependencies import get_text_analyzer, get_transcriber, get_vision
from relay.protocol import decode_base64
from relay.schemas.analysis_schemas import (
    AnalyzeRequest,
    TranscribeRequest,
    TranscribeResponse,
    VisionAnalysisRequest,
)

logger = structlog.get_logger()

router = APIRouter(tags=["analysis"])


@router.post("/analyze")
async def analyze_text(
    body: AnalyzeRequest,
    analyzer: TextAnalyzer = Depends(get_text_analyzer),
) -> dict[str, Any]:
    if not body.text:
        raise HTTPException(status_code=400, detail="Text is required")
    try:
        return await analyzer.analyze(body.text)
    except AdapterFailure as exc:
        ADAPTER_FAILURES.labels(adapter=exc.adapter).inc()
        raise HTTPException(status_code=500, detail="Text analysis failed") from exc


@router.post("/vision-analysis")
async def vision_analysis(
    body: VisionAnalysisRequest,
    vision: VisionAnalyzer = Depends(get_vision),
) -> dict[str, Any]:
    if not body.base64_image:
        raise HTTPException(status_code=400, detail="Image data is required")
    logger.info("vision_analysis_requested", chars=len(body.base64_image))
    try:
        result = await vision.analyze_frame(body.base64_image)
    except AdapterFailure as exc:
        ADAPTER_FAILURES.labels(adapter=exc.adapter).inc()
        raise HTTPException(status_code=500, detail="Vision analysis failed") from exc
    return result.model_dump(mode="json")


@router.post("/transcribe", response_model=TranscribeResponse)
async def transcribe(
    body: TranscribeRequest,
    transcriber: BatchTranscriber = Depends(get_transcriber),
) -> TranscribeResponse:
    if not body.audio_data:
        raise HTTPException(status_code=400, detail="Audio data is required")
    try:
        audio = decode_base64(body.audio_data)
        event = await transcriber.transcribe(audio, body.mime_type or "audio/webm")
    except AudioTooSmall as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    except MalformedInboundMessage as exc:
        raise HTTPException(status_code=400, detail="Audio data is not valid base64") from exc

    return TranscribeResponse(
        text=event.text,
        confidence=event.confidence,
        is_final=event.is_final,
        timestamp=int(time.time() * 1000),
    )
