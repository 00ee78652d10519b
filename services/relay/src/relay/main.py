"""
VoxRelay service entry point.

Builds the FastAPI application: validates credentials, creates the
per-process provider clients and analysis adapters, selects the
streaming upstream provider, and mounts the HTTP routers, the relay WebSocket
and the Prometheus metrics endpoint.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

import httpx
import structlog
import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from openai import AsyncOpenAI
from prometheus_client import make_asgi_app

from analysis import BatchTranscriber, TextAnalyzer, VisionAnalyzer
from vr_common.config import ClientMode, Settings, get_settings
from vr_common.errors import ConfigurationError
from vr_common.logging import configure_logging

from relay.coordinator import RelayOptions
from relay.middleware.cors import add_cors
from relay.middleware.logging import LoggingMiddleware
from relay.routers import analysis as analysis_routes
from relay.routers import health, ws
from relay.upstream_base import UpstreamEngine
from relay.upstreams.deepgram import DeepgramUpstream, UpstreamConfig

logger = structlog.get_logger()

HTTP_TIMEOUT_S = 30.0


def _deepgram_factory(settings: Settings) -> Callable[[], UpstreamEngine]:
    config = UpstreamConfig(
        model=settings.deepgram_model,
        language=settings.language,
        smart_format=settings.smart_format,
        interim_results=settings.interim_results,
        encoding=settings.encoding,
        sample_rate=settings.sample_rate,
        channels=settings.channels,
    )

    def factory() -> UpstreamEngine:
        return DeepgramUpstream(
            settings.deepgram_api_key,
            config=config,
            url=settings.deepgram_url,
            connect_timeout=settings.provider_timeout_s,
        )

    return factory


# Provider id → builder of the per-pair upstream factory.
UPSTREAM_PROVIDERS: dict[str, Callable[[Settings], Callable[[], UpstreamEngine]]] = {
    "deepgram": _deepgram_factory,
}


def build_upstream_factory(settings: Settings) -> Callable[[], UpstreamEngine]:
    """Return a factory producing one fresh upstream per session pair.

    Raises:
        ConfigurationError: If ``upstream_provider`` names no known provider.
    """
    try:
        builder = UPSTREAM_PROVIDERS[settings.upstream_provider]
    except KeyError:
        raise ConfigurationError(
            f"Unknown upstream provider '{settings.upstream_provider}'. "
            f"Available: {sorted(UPSTREAM_PROVIDERS)}"
        ) from None
    return builder(settings)


def _openai_client(settings: Settings) -> AsyncOpenAI | None:
    """Shared OpenAI client, or ``None`` when no key is configured."""
    if not settings.openai_api_key:
        return None
    if settings.provider_timeout_s is None:
        return AsyncOpenAI(api_key=settings.openai_api_key)
    return AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.provider_timeout_s)


async def _error_body(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


def create_app(settings: Settings | None = None, *, mode: ClientMode | None = None) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        settings: Configuration (``get_settings()`` when omitted).
        mode: Client mode override; the proxy entry point passes ``proxy``.
    """
    settings = settings or get_settings()
    options = RelayOptions.from_settings(settings, mode=mode)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── startup ──
        configure_logging("voxrelay", settings.log_level, json_logs=settings.log_json)
        settings.require_credentials(options.mode, options.transcription)

        http_client = httpx.AsyncClient(timeout=settings.provider_timeout_s or HTTP_TIMEOUT_S)
        openai_client = _openai_client(settings)

        app.state.settings = settings
        app.state.relay_options = options
        app.state.upstream_factory = build_upstream_factory(settings) if options.streaming else None
        app.state.vision = None
        app.state.transcriber = None
        if openai_client is not None:
            app.state.vision = VisionAnalyzer(
                openai_client,
                model=settings.vision_model,
                max_tokens=settings.vision_max_tokens,
                temperature=settings.vision_temperature,
            )
            app.state.transcriber = BatchTranscriber(
                openai_client,
                model=settings.whisper_model,
                language=settings.language,
                min_audio_bytes=settings.min_batch_audio_bytes,
            )
        app.state.text_analyzer = TextAnalyzer(
            settings.deepgram_api_key,
            http_client,
            url=settings.deepgram_read_url,
            language=settings.language,
        )
        logger.info(
            "relay_startup",
            mode=options.mode.value,
            transcription=options.transcription.value,
            provider=settings.upstream_provider,
        )

        yield

        # ── shutdown ──
        logger.info("relay_shutdown")
        await http_client.aclose()
        if openai_client is not None:
            await openai_client.close()

    app = FastAPI(title="VoxRelay", version="0.1.0", lifespan=lifespan)
    app.state.relay_options = options

    app.include_router(health.router)
    app.include_router(analysis_routes.router)
    app.include_router(ws.router)
    app.add_exception_handler(HTTPException, _error_body)  # type: ignore[arg-type]

    app.mount("/metrics", make_asgi_app())

    app.add_middleware(LoggingMiddleware)
    add_cors(app)
    return app


def main() -> None:
    """Run the relay on ``VR_PORT`` in the configured client mode."""
    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


def proxy_main() -> None:
    """Run the audio-only proxy relay on ``VR_PROXY_PORT``."""
    settings = get_settings()
    uvicorn.run(
        create_app(settings, mode=ClientMode.PROXY),
        host=settings.host,
        port=settings.proxy_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
