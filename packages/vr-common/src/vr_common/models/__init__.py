"""
Shared Pydantic data models for VoxRelay.

This package contains the cross-service models: transcript events,
outbound envelopes, inbound client messages and analysis results.
"""

from vr_common.models.analysis import VideoAnalysis
from vr_common.models.envelope import EnvelopeType, OutboundEnvelope
from vr_common.models.inbound import (
    AudioMessage,
    ClientMessage,
    UnknownMessage,
    VideoFrameMessage,
)
from vr_common.models.transcript import TranscriptEvent

__all__ = [
    "AudioMessage",
    "ClientMessage",
    "EnvelopeType",
    "OutboundEnvelope",
    "TranscriptEvent",
    "UnknownMessage",
    "VideoAnalysis",
    "VideoFrameMessage",
]
