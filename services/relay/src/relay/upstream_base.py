"""
Abstract base class for upstream transcription providers in VoxRelay.

Defines the UpstreamEngine interface: an explicit connection state
machine with ``connect``/``send``/``receive``/``close`` that the session
coordinator awaits directly, plus provider-specific normalization of
raw provider frames into TranscriptEvent objects.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum

from vr_common.models import TranscriptEvent


class ConnectionState(str, Enum):
    """Lifecycle of one upstream connection."""

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class UpstreamEngine(ABC):
    """Abstract base class that every upstream provider must implement.

    Subclasses own exactly one outbound streaming connection.  A
    connection moves ``IDLE -> CONNECTING -> OPEN -> CLOSING -> CLOSED``
    (or ``CONNECTING -> CLOSED`` when the handshake fails) and never
    reopens.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the provider identifier string (e.g. ``'deepgram'``)."""
        ...  # pragma: no cover

    @property
    @abstractmethod
    def state(self) -> ConnectionState:
        """Current connection state."""
        ...  # pragma: no cover

    @property
    def is_open(self) -> bool:
        """``True`` while frames can be sent."""
        return self.state is ConnectionState.OPEN

    @abstractmethod
    async def connect(self) -> None:
        """Open the provider connection.

        Raises:
            ProviderUnavailable: If the connection cannot reach ``OPEN``.
        """
        ...  # pragma: no cover

    @abstractmethod
    async def send(self, frame: bytes | str) -> bool:
        """Forward *frame* verbatim.

        Returns:
            ``True`` if sent, ``False`` if the connection is not open.
        """
        ...  # pragma: no cover

    @abstractmethod
    async def send_keepalive(self) -> bool:
        """Send the provider's keep-alive control frame."""
        ...  # pragma: no cover

    @abstractmethod
    async def receive(self) -> bytes | str | None:
        """Wait for the next provider frame; ``None`` once closed."""
        ...  # pragma: no cover

    @abstractmethod
    def normalize(self, raw: bytes | str) -> TranscriptEvent | None:
        """Convert a provider frame into a TranscriptEvent.

        Returns:
            The event, or ``None`` when the frame carries no transcript text.

        Raises:
            MalformedUpstreamPayload: If *raw* is not valid JSON.
        """
        ...  # pragma: no cover

    @abstractmethod
    async def close(self) -> None:
        """Close the connection.  Safe to call more than once."""
        ...  # pragma: no cover
