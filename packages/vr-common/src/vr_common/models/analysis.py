"""
Analysis result models for VoxRelay.

VideoAnalysis carries the free-text frame description from the vision
provider together with the keyword-derived objects, scene, mood and
emotion scores.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class VideoAnalysis(BaseModel):
    """Result of analyzing one video frame.

    Attributes:
        description: Free-text description returned by the provider.
        objects: Known objects mentioned in the description.
        scene: Scene label (e.g. ``office/workspace``).
        mood: Mood label (e.g. ``calm``).
        emotions: Emotion name to intensity (0.0–1.0).
    """

    description: str = Field(..., description="Provider description.")
    objects: list[str] = Field(default_factory=list, description="Detected objects.")
    scene: str = Field(default="indoor space", description="Scene label.")
    mood: str = Field(default="neutral", description="Mood label.")
    emotions: dict[str, float] = Field(
        default_factory=dict,
        description="Emotion intensity scores.",
    )
