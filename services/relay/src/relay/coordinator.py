"""
Session pair coordinator for VoxRelay.

Binds one ClientSession to at most one UpstreamEngine for its whole
lifetime.  Opens the upstream concurrently with reading client frames,
runs the keep-alive timer, pumps provider events back to the client as
transcription envelopes, runs frame analysis and batch transcription as
independent tasks, and tears both sides down exactly once.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import structlog

from analysis import is_failed_transcription
from vr_common.config import ClientMode, Settings, TranscriptionMode, uses_upstream
from vr_common.errors import (
    AdapterFailure,
    AudioTooSmall,
    MalformedUpstreamPayload,
    ProviderUnavailable,
)
from vr_common.metrics import (
    ADAPTER_FAILURES,
    ADAPTER_LATENCY,
    AUDIO_FRAMES_DROPPED,
    AUDIO_FRAMES_FORWARDED,
    KEEPALIVES_SENT,
    SESSIONS_ACTIVE,
    UPSTREAM_CONNECT_FAILURES,
)

from relay.client_session import MESSAGE_PROCESSING_FAILED, ClientSession
from relay.upstream_base import UpstreamEngine

logger = structlog.get_logger()

T = TypeVar("T")

PROVIDER_UNAVAILABLE = "Transcription provider unavailable"
UPSTREAM_EVENT_FAILED = "Upstream event processing failed"
VIDEO_ANALYSIS_FAILED = "Video analysis failed"
TRANSCRIPTION_FAILED = "Transcription failed"
PROBE_FAILED = "OpenAI connection failed"


@dataclass(frozen=True)
class RelayOptions:
    """Per-app relay behaviour, fixed when a pair is created."""

    mode: ClientMode = ClientMode.MULTIPLEXED
    transcription: TranscriptionMode = TranscriptionMode.STREAMING
    keepalive_interval: float = 3.0
    provider_timeout: float | None = None
    verify_on_connect: bool = False

    @classmethod
    def from_settings(cls, settings: Settings, *, mode: ClientMode | None = None) -> RelayOptions:
        mode = mode or settings.client_mode
        return cls(
            mode=mode,
            # Proxy mode has no batch path.
            transcription=(
                TranscriptionMode.STREAMING if mode is ClientMode.PROXY
                else settings.transcription_mode
            ),
            keepalive_interval=settings.keepalive_interval_s,
            provider_timeout=settings.provider_timeout_s,
            verify_on_connect=(
                settings.verify_provider_on_connect and mode is ClientMode.MULTIPLEXED
            ),
        )

    @property
    def streaming(self) -> bool:
        return uses_upstream(self.mode, self.transcription)


@dataclass
class SessionPair:
    """One client connection and the upstream connection serving it."""

    client: ClientSession
    upstream: UpstreamEngine | None = None
    keepalive_task: asyncio.Task[None] | None = None
    created_at: float = field(default_factory=time.monotonic)


class SessionCoordinator:
    """Lifecycle owner for one session pair.

    Args:
        client: The accepted-on-run client session.
        options: Relay behaviour for this pair.
        upstream_factory: Builds a fresh upstream engine; only called for
            streaming transcription.
        vision: Frame analyzer (``VisionAnalyzer``) for multiplexed mode.
        transcriber: ``BatchTranscriber`` for batch transcription mode.
        session_id: Identifier bound into log lines.
    """

    def __init__(
        self,
        client: ClientSession,
        *,
        options: RelayOptions,
        upstream_factory: Callable[[], UpstreamEngine] | None = None,
        vision: Any = None,
        transcriber: Any = None,
        session_id: str | None = None,
    ) -> None:
        self._options = options
        self._upstream_factory = upstream_factory
        self._vision = vision
        self._transcriber = transcriber
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.pair = SessionPair(client=client)

        self._closed = False
        self._counted = False
        self._shutdown = asyncio.Event()
        self._finished = asyncio.Event()
        self._connect_task: asyncio.Task[None] | None = None
        self._pump_task: asyncio.Task[None] | None = None
        self._work: set[asyncio.Task[Any]] = set()
        self._log = logger.bind(session_id=self.session_id, mode=options.mode.value)

    @property
    def client(self) -> ClientSession:
        return self.pair.client

    @property
    def upstream(self) -> UpstreamEngine | None:
        return self.pair.upstream

    @property
    def closed(self) -> bool:
        return self._closed

    # ── lifecycle ──

    async def run(self) -> None:
        """Serve the pair until either side closes."""
        await self.client.accept()
        SESSIONS_ACTIVE.labels(mode=self._options.mode.value).inc()
        self._counted = True
        self._log.info(
            "session_started",
            transcription=self._options.transcription.value,
        )

        reason = "client_closed"
        try:
            if self._options.verify_on_connect and not await self._probe_provider():
                reason = "provider_probe_failed"
                return

            if self._options.streaming:
                if self._upstream_factory is None:
                    raise RuntimeError("Streaming transcription needs an upstream factory")
                self.pair.upstream = self._upstream_factory()
                self._connect_task = asyncio.create_task(self._open_upstream())

            reader = asyncio.create_task(self._read_client())
            stopper = asyncio.create_task(self._shutdown.wait())
            try:
                done, _ = await asyncio.wait(
                    {reader, stopper}, return_when=asyncio.FIRST_COMPLETED,
                )
                if reader in done and reader.exception() is not None:
                    reason = "client_error"
                    self._log.error("client_reader_failed", error=str(reader.exception()))
            finally:
                for task in (reader, stopper):
                    task.cancel()
                await asyncio.gather(reader, stopper, return_exceptions=True)
        finally:
            # Teardown runs in its own task so a cancelled handler cannot
            # interrupt it halfway.
            closer = asyncio.ensure_future(self.close(reason))
            try:
                await asyncio.shield(closer)
                # Teardown may be running in the upstream pump.
                await self._finished.wait()
            except asyncio.CancelledError:
                self._log.info("session_teardown_detached", reason=reason)
                raise

    async def close(self, reason: str = "closed") -> None:
        """Tear down both sides of the pair.  Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._shutdown.set()
        try:
            await self._teardown(reason)
        finally:
            self._finished.set()

    async def _teardown(self, reason: str) -> None:
        current = asyncio.current_task()

        self._stop_keepalive()

        if self._connect_task is not None and self._connect_task is not current:
            if not self._connect_task.done():
                self._connect_task.cancel()
            await asyncio.gather(self._connect_task, return_exceptions=True)

        if self.upstream is not None:
            await self.upstream.close()

        if self._pump_task is not None and self._pump_task is not current:
            self._pump_task.cancel()
            await asyncio.gather(self._pump_task, return_exceptions=True)

        await self.client.close()
        if self._counted:
            SESSIONS_ACTIVE.labels(mode=self._options.mode.value).dec()
        self._log.info(
            "session_closed",
            reason=reason,
            duration_s=round(time.monotonic() - self.pair.created_at, 3),
        )

    # ── client side ──

    async def _read_client(self) -> None:
        async for frame in self.client.frames():
            try:
                await self.client.dispatch(frame, self)
            except Exception as exc:
                self._log.exception("client_frame_failed", error=str(exc))
                await self.client.send_error(MESSAGE_PROCESSING_FAILED)

    async def on_audio(
        self,
        audio: bytes,
        *,
        mime_type: str | None = None,
        request_id: str | None = None,
    ) -> None:
        """Route one audio payload to the upstream or the batch transcriber."""
        if self._options.streaming:
            await self._forward(audio)
            return
        await self._submit_batch(audio, mime_type or "audio/webm", request_id)

    async def on_passthrough(self, frame: str) -> None:
        await self._forward(frame)

    async def on_video_frame(self, payload: str, *, request_id: str | None = None) -> None:
        if self._vision is None:
            self._log.warning("video_frame_ignored_no_analyzer")
            return
        self._spawn(self._analyze_frame(payload, request_id))

    async def _forward(self, frame: bytes | str) -> None:
        if not frame:
            # An empty binary frame ends a Deepgram stream.
            AUDIO_FRAMES_DROPPED.inc()
            self._log.warning("audio_dropped_empty")
            return
        upstream = self.upstream
        if upstream is None or not upstream.is_open:
            AUDIO_FRAMES_DROPPED.inc()
            self._log.warning(
                "audio_dropped_upstream_not_open",
                size=len(frame),
                state=upstream.state.value if upstream else None,
            )
            return
        if await upstream.send(frame):
            AUDIO_FRAMES_FORWARDED.inc()
            self._log.debug("audio_forwarded", size=len(frame))
        else:
            AUDIO_FRAMES_DROPPED.inc()
            self._log.warning("audio_dropped_send_failed", size=len(frame))

    # ── upstream side ──

    async def _open_upstream(self) -> None:
        upstream = self.upstream
        assert upstream is not None
        try:
            await self._bounded(upstream.connect())
        except (ProviderUnavailable, asyncio.TimeoutError) as exc:
            UPSTREAM_CONNECT_FAILURES.labels(provider=upstream.name).inc()
            self._log.error("upstream_unavailable", provider=upstream.name, error=str(exc))
            await self.client.send_error(PROVIDER_UNAVAILABLE)
            self._connect_task = None
            await self.close("provider_unavailable")
            return

        if self._closed:
            await upstream.close()
            return

        self._log.info("upstream_open", provider=upstream.name)
        self.pair.keepalive_task = asyncio.create_task(self._keepalive_loop())
        self._pump_task = asyncio.create_task(self._pump_upstream())

    async def _keepalive_loop(self) -> None:
        upstream = self.upstream
        assert upstream is not None
        while not self._closed:
            await asyncio.sleep(self._options.keepalive_interval)
            if self._closed or not upstream.is_open:
                break
            if await upstream.send_keepalive():
                KEEPALIVES_SENT.inc()
                self._log.debug("keepalive_sent")

    def _stop_keepalive(self) -> None:
        task = self.pair.keepalive_task
        self.pair.keepalive_task = None
        if task is not None and not task.done():
            task.cancel()

    async def _pump_upstream(self) -> None:
        upstream = self.upstream
        assert upstream is not None
        try:
            while True:
                raw = await upstream.receive()
                if raw is None:
                    break
                await self._relay_event(upstream, raw)
        finally:
            self._pump_task = None
            await self.close("upstream_closed")

    async def _relay_event(self, upstream: UpstreamEngine, raw: bytes | str) -> None:
        try:
            event = upstream.normalize(raw)
        except MalformedUpstreamPayload:
            self._log.warning("upstream_payload_malformed", size=len(raw))
            await self.client.send_raw(raw)
            return
        except Exception as exc:
            self._log.error("upstream_event_failed", error=str(exc))
            await self.client.send_error(UPSTREAM_EVENT_FAILED)
            return

        if event is not None:
            await self.client.send_transcript(event)

    # ── analysis tasks ──

    async def _submit_batch(self, audio: bytes, mime_type: str, request_id: str | None) -> None:
        if self._transcriber is None:
            self._log.warning("audio_ignored_no_transcriber", size=len(audio))
            return
        try:
            self._transcriber.validate(audio)
        except AudioTooSmall as exc:
            self._log.warning("batch_audio_too_small", size=len(audio))
            await self.client.send_error(
                str(exc), code=exc.status_code, request_id=request_id,
            )
            return
        self._spawn(self._transcribe(audio, mime_type, request_id))

    async def _transcribe(self, audio: bytes, mime_type: str, request_id: str | None) -> None:
        try:
            event = await self._timed("transcription", self._transcriber.transcribe(audio, mime_type))
        except (AdapterFailure, asyncio.TimeoutError) as exc:
            ADAPTER_FAILURES.labels(adapter="transcription").inc()
            self._log.error("batch_transcription_failed", error=str(exc))
            await self.client.send_error(TRANSCRIPTION_FAILED, request_id=request_id)
            return
        if is_failed_transcription(event):
            ADAPTER_FAILURES.labels(adapter="transcription").inc()
            self._log.error("batch_transcription_failed", error="provider call failed")
            await self.client.send_error(TRANSCRIPTION_FAILED, request_id=request_id)
            return
        if event.has_text:
            await self.client.send_transcript(event, request_id=request_id)

    async def _analyze_frame(self, payload: str, request_id: str | None) -> None:
        try:
            analysis = await self._timed("vision", self._vision.analyze_frame(payload))
        except (AdapterFailure, asyncio.TimeoutError) as exc:
            ADAPTER_FAILURES.labels(adapter="vision").inc()
            self._log.error("video_analysis_failed", error=str(exc))
            await self.client.send_error(VIDEO_ANALYSIS_FAILED, request_id=request_id)
            return
        await self.client.send_video_analysis(analysis, request_id=request_id)

    async def _probe_provider(self) -> bool:
        ok = False
        if self._vision is not None:
            try:
                ok = bool(await self._bounded(self._vision.check_connection()))
            except asyncio.TimeoutError:
                ok = False
        if not ok:
            self._log.error("provider_probe_failed")
            await self.client.send_error(PROBE_FAILED)
        return ok

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._work.add(task)
        task.add_done_callback(self._work.discard)

    async def _timed(self, adapter: str, call: Awaitable[T]) -> T:
        start = time.monotonic()
        try:
            return await self._bounded(call)
        finally:
            ADAPTER_LATENCY.labels(adapter=adapter).observe(time.monotonic() - start)

    async def _bounded(self, call: Awaitable[T]) -> T:
        if self._options.provider_timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=self._options.provider_timeout)
