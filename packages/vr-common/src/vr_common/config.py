"""
Environment-based configuration management for VoxRelay.

Uses pydantic-settings to load configuration values from environment
variables and .env files. Settings are read once at process start and
treated as read-only afterwards; sessions receive the values they need
at construction time.

All environment variables are prefixed with ``VR_`` to avoid collisions.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from vr_common.errors import ConfigurationError


class ClientMode(str, Enum):
    """How inbound client frames are interpreted."""

    PROXY = "proxy"
    MULTIPLEXED = "multiplexed"


class TranscriptionMode(str, Enum):
    """Where client audio is transcribed."""

    STREAMING = "streaming"
    BATCH = "batch"


class Settings(BaseSettings):
    """Central configuration loaded from ``VR_``-prefixed environment variables.

    Attributes:
        deepgram_api_key: API key for the Deepgram streaming and read APIs.
        deepgram_url: Deepgram live transcription WebSocket URL.
        deepgram_read_url: Deepgram text-intelligence REST URL.
        deepgram_model: Streaming model identifier.
        language: BCP-47 language code for transcription.
        smart_format: Ask the provider to punctuate and format output.
        interim_results: Ask the provider for partial transcripts.
        encoding: Optional raw audio encoding hint (e.g. ``linear16``).
        sample_rate: Optional sample rate hint in Hz.
        channels: Optional channel count hint.
        openai_api_key: API key for OpenAI vision and Whisper.
        vision_model: Chat model used for frame analysis.
        vision_max_tokens: Completion token cap for frame analysis.
        vision_temperature: Sampling temperature for frame analysis.
        whisper_model: Batch transcription model.
        client_mode: ``proxy`` or ``multiplexed`` client framing.
        transcription_mode: ``streaming`` or ``batch`` audio handling.
        upstream_provider: Registered upstream engine identifier.
        keepalive_interval_s: Seconds between upstream keep-alive frames.
        min_batch_audio_bytes: Smallest audio buffer accepted for batch.
        provider_timeout_s: Optional bound on provider calls (``None`` = none).
        verify_provider_on_connect: Probe OpenAI before serving a session.
        host: Bind address.
        port: Bind port for the main app.
        proxy_port: Bind port for the proxy-mode app.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_json: Render logs as JSON lines instead of console output.
    """

    model_config = SettingsConfigDict(
        env_prefix="VR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Deepgram ──
    deepgram_api_key: str = Field(default="", description="Deepgram API key.")
    deepgram_url: str = Field(
        default="wss://api.deepgram.com/v1/listen",
        description="Deepgram live transcription WebSocket URL.",
    )
    deepgram_read_url: str = Field(
        default="https://api.deepgram.com/v1/read",
        description="Deepgram text-intelligence REST URL.",
    )
    deepgram_model: str = Field(default="nova-2", description="Streaming model identifier.")
    language: str = Field(default="en", max_length=10, description="Transcription language.")
    smart_format: bool = Field(default=True, description="Provider-side formatting.")
    interim_results: bool = Field(default=True, description="Emit partial transcripts.")
    encoding: str | None = Field(default=None, description="Raw audio encoding hint.")
    sample_rate: int | None = Field(default=None, gt=0, description="Sample rate hint in Hz.")
    channels: int | None = Field(default=None, ge=1, description="Channel count hint.")

    # ── OpenAI ──
    openai_api_key: str = Field(default="", description="OpenAI API key.")
    vision_model: str = Field(default="gpt-4.1-mini", description="Frame analysis model.")
    vision_max_tokens: int = Field(default=300, ge=1, description="Frame analysis token cap.")
    vision_temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Frame analysis sampling temperature.",
    )
    whisper_model: str = Field(default="whisper-1", description="Batch transcription model.")

    # ── Relay ──
    client_mode: ClientMode = Field(
        default=ClientMode.MULTIPLEXED,
        description="Client framing mode.",
    )
    transcription_mode: TranscriptionMode = Field(
        default=TranscriptionMode.STREAMING,
        description="Streaming upstream or batch transcription.",
    )
    upstream_provider: str = Field(default="deepgram", description="Upstream engine id.")
    keepalive_interval_s: float = Field(
        default=3.0,
        gt=0.0,
        description="Seconds between upstream keep-alive frames.",
    )
    min_batch_audio_bytes: int = Field(
        default=1000,
        ge=0,
        description="Smallest audio buffer accepted for batch transcription.",
    )
    provider_timeout_s: float | None = Field(
        default=None,
        gt=0.0,
        description="Optional bound on provider calls; unset means no timeout.",
    )
    verify_provider_on_connect: bool = Field(
        default=False,
        description="Probe the analysis provider before serving a session.",
    )

    # ── Server ──
    host: str = Field(default="0.0.0.0", description="Bind address.")
    port: int = Field(default=3000, ge=1, le=65535, description="Main app bind port.")
    proxy_port: int = Field(default=8081, ge=1, le=65535, description="Proxy app bind port.")

    # ── Logging ──
    log_level: str = Field(default="INFO", description="Logging level.")
    log_json: bool = Field(default=True, description="Render logs as JSON.")

    def require_credentials(
        self,
        mode: ClientMode | None = None,
        transcription: TranscriptionMode | None = None,
    ) -> None:
        """Fail fast when a credential needed by *mode* is missing.

        Args:
            mode: Client mode to check (defaults to ``client_mode``).
            transcription: Transcription mode (defaults to ``transcription_mode``).

        Raises:
            ConfigurationError: Naming every missing credential.
        """
        mode = mode or self.client_mode
        transcription = transcription or self.transcription_mode

        missing: list[str] = []
        # Proxy mode always streams; vision and batch both go through OpenAI.
        if uses_upstream(mode, transcription) and not self.deepgram_api_key:
            missing.append("VR_DEEPGRAM_API_KEY")
        if mode is ClientMode.MULTIPLEXED and not self.openai_api_key:
            missing.append("VR_OPENAI_API_KEY")

        if missing:
            raise ConfigurationError(f"Missing required credentials: {', '.join(missing)}")


def uses_upstream(mode: ClientMode, transcription: TranscriptionMode) -> bool:
    """Return ``True`` when sessions in *mode* need a streaming upstream."""
    return mode is ClientMode.PROXY or transcription is TranscriptionMode.STREAMING


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    Returns:
        The process-wide ``Settings`` instance.
    """
    return Settings()
