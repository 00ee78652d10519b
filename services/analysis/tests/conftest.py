"""Shared fixtures for analysis adapter tests."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture()
def openai_client() -> MagicMock:
    """A mock AsyncOpenAI client with async chat, audio and models calls."""
    client = MagicMock(name="AsyncOpenAI")
    client.chat.completions.create = AsyncMock()
    client.audio.transcriptions.create = AsyncMock()
    client.models.list = AsyncMock(return_value=SimpleNamespace(data=[object(), object()]))
    return client


@pytest.fixture()
def chat_reply():
    """Build a chat completion response carrying *content*."""

    def _build(content: str | None) -> SimpleNamespace:
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    return _build


@pytest.fixture()
def webm_audio() -> bytes:
    """Two kilobytes of placeholder audio, above the batch minimum."""
    return b"\x1a\x45\xdf\xa3" + b"\x00" * 2044
