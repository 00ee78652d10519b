"""
Transcript data models for VoxRelay.

Defines the normalized TranscriptEvent produced from provider-specific
streaming payloads and from batch transcription results.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class TranscriptEvent(BaseModel):
    """A normalized speech-to-text result.

    Attributes:
        text: Transcribed text, unmodified from the provider.
        is_final: Whether the provider marked this result as final.
        confidence: Provider confidence (0.0–1.0) when reported.
    """

    model_config = {"frozen": True}

    text: str = Field(..., description="Transcribed text.")
    is_final: bool = Field(default=False, description="Whether this is a final result.")
    confidence: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Provider confidence when reported.",
    )

    @property
    def has_text(self) -> bool:
        """``True`` when the text is non-empty after trimming."""
        return bool(self.text.strip())
