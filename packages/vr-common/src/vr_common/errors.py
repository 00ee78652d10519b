"""
Error taxonomy for VoxRelay.

Only ``ConfigurationError`` is fatal, and only at startup.  Every other
error is scoped to one session pair: the coordinator turns it into an
``error`` envelope for the client and carries on (or closes that pair
through its normal shutdown path).
"""

from __future__ import annotations


class VoxRelayError(Exception):
    """Base class for all VoxRelay errors."""


class ConfigurationError(VoxRelayError):
    """A required setting or credential is missing; the process must not start."""


class ProviderUnavailable(VoxRelayError):
    """The upstream provider connection could not reach the open state."""


class MalformedInboundMessage(VoxRelayError):
    """A client frame could not be parsed or validated."""

    status_code: int = 422


class AudioTooSmall(MalformedInboundMessage):
    """An audio buffer is below the minimum size for batch transcription.

    Args:
        size: Actual buffer size in bytes.
        minimum: Smallest accepted size in bytes.
    """

    status_code = 400

    def __init__(self, size: int, minimum: int) -> None:
        super().__init__("Audio data too small for transcription")
        self.size = size
        self.minimum = minimum


class MalformedUpstreamPayload(VoxRelayError):
    """A provider frame was not valid JSON."""


class AdapterFailure(VoxRelayError):
    """An analysis or transcription adapter call failed or timed out.

    Args:
        adapter: Short adapter name used in logs and metrics.
        message: Client-safe failure description.
    """

    def __init__(self, adapter: str, message: str) -> None:
        super().__init__(message)
        self.adapter = adapter
