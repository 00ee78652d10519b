"""
Pydantic schemas for the analysis HTTP routes.

Request fields are optional so that a missing value is reported as a
400 by the route rather than a 422 validation error.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AnalyzeRequest(BaseModel):
    text: str | None = None


class VisionAnalysisRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    base64_image: str | None = Field(default=None, alias="base64Image")


class TranscribeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    audio_data: str | None = Field(default=None, alias="audioData")
    mime_type: str | None = Field(default=None, alias="mimeType")


class TranscribeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    confidence: float | None = None
    is_final: bool = Field(alias="isFinal")
    timestamp: int


class HealthResponse(BaseModel):
    status: str
