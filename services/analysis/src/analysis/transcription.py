"""
Batch (one-shot) transcription adapter for VoxRelay.

Transcribes a complete audio buffer with OpenAI Whisper.  The buffer is
staged as a temporary file for the duration of one call and removed on
both success and failure.  Provider failures never propagate: callers
receive an empty, final TranscriptEvent instead.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import structlog
from openai import AsyncOpenAI

from vr_common.errors import AudioTooSmall
from vr_common.models import TranscriptEvent

logger = structlog.get_logger()

ADAPTER_NAME = "batch_transcription"

DEFAULT_MIME_TYPE = "audio/webm"
DEFAULT_EXTENSION = ".webm"

# Whisper does not report a confidence; use a fixed placeholder.
PLACEHOLDER_CONFIDENCE = 0.9

# Returned in place of a result when the provider call fails.
FAILED_CONFIDENCE = 0.0

# Checked in order; substring match on the MIME type.
_EXTENSIONS: tuple[tuple[str, str], ...] = (
    ("wav", ".wav"),
    ("mp3", ".mp3"),
    ("mp4", ".mp4"),
    ("ogg", ".ogg"),
)


def extension_for(mime_type: str | None) -> str:
    """Map a MIME type to the file extension Whisper expects."""
    mime = (mime_type or DEFAULT_MIME_TYPE).lower()
    for needle, extension in _EXTENSIONS:
        if needle in mime:
            return extension
    return DEFAULT_EXTENSION


def is_failed_transcription(event: TranscriptEvent) -> bool:
    """True for the empty result ``transcribe`` returns on provider failure."""
    return not event.has_text and event.confidence == FAILED_CONFIDENCE


class BatchTranscriber:
    """One-shot Whisper transcription.

    Args:
        client: Shared ``AsyncOpenAI`` client.
        model: Whisper model identifier.
        language: Language hint passed to the provider.
        min_audio_bytes: Smallest buffer accepted.
        temp_dir: Directory for staged audio (system default when ``None``).
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str = "whisper-1",
        language: str = "en",
        min_audio_bytes: int = 1000,
        temp_dir: str | Path | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self._language = language
        self._min_audio_bytes = min_audio_bytes
        self._temp_dir = temp_dir

    @property
    def min_audio_bytes(self) -> int:
        return self._min_audio_bytes

    def validate(self, audio: bytes) -> None:
        """Reject buffers too small to transcribe.

        Raises:
            AudioTooSmall: If *audio* is below ``min_audio_bytes``.
        """
        if len(audio) < self._min_audio_bytes:
            logger.info(
                "batch_audio_too_small",
                size=len(audio),
                minimum=self._min_audio_bytes,
            )
            raise AudioTooSmall(len(audio), self._min_audio_bytes)

    async def transcribe(
        self, audio: bytes, mime_type: str | None = DEFAULT_MIME_TYPE,
    ) -> TranscriptEvent:
        """Transcribe *audio* in one call.

        Returns:
            A final TranscriptEvent; empty text with confidence 0 when the
            provider call fails.

        Raises:
            AudioTooSmall: If *audio* is below ``min_audio_bytes``.  The
                provider is not called in that case.
        """
        self.validate(audio)
        extension = extension_for(mime_type)
        log = logger.bind(size=len(audio), mime_type=mime_type, model=self._model)

        try:
            with self._staged(audio, extension) as path:
                with path.open("rb") as audio_file:
                    transcription = await self._client.audio.transcriptions.create(
                        file=audio_file,
                        model=self._model,
                        language=self._language,
                        response_format="verbose_json",
                        temperature=0,
                    )
        except Exception as exc:  # noqa: BLE001
            log.error("batch_transcription_failed", error=str(exc))
            return TranscriptEvent(text="", is_final=True, confidence=FAILED_CONFIDENCE)

        text = getattr(transcription, "text", "") or ""
        log.info("batch_transcription_complete", chars=len(text))
        return TranscriptEvent(
            text=text,
            is_final=True,
            confidence=PLACEHOLDER_CONFIDENCE,
        )

    @contextmanager
    def _staged(self, audio: bytes, extension: str) -> Iterator[Path]:
        """Write *audio* to a temp file that is removed on exit."""
        fd, name = tempfile.mkstemp(prefix="audio_", suffix=extension, dir=self._temp_dir)
        path = Path(name)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(audio)
            yield path
        finally:
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            else:
                logger.debug("batch_temp_file_removed", path=str(path))
