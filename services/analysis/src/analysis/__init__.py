"""
VoxRelay Analysis Adapters.

Stateless request/response adapters consumed by the relay core: video
frame analysis, one-shot audio transcription, text intelligence, and
the keyword-based scene/mood extraction used to enrich frame analyses.
"""

from analysis.scene import (
    describe,
    extract_emotions,
    extract_mood,
    extract_objects,
    extract_scene,
)
from analysis.text_intelligence import TextAnalyzer
from analysis.transcription import BatchTranscriber, extension_for, is_failed_transcription
from analysis.vision import VisionAnalyzer

__all__ = [
    "BatchTranscriber",
    "TextAnalyzer",
    "VisionAnalyzer",
    "describe",
    "extension_for",
    "extract_emotions",
    "extract_mood",
    "extract_objects",
    "extract_scene",
    "is_failed_transcription",
]
