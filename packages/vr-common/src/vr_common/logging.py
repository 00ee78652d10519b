"""
Structured logging setup for VoxRelay.

Configures structlog for JSON-formatted structured logging across all
services. Every log line includes timestamp, level, service name, and
event. Per-session context (session_id, mode) is bound at connection time.
"""

from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(
    service: str,
    level: str = "INFO",
    *,
    json_logs: bool = True,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        service: Service name attached to every log line.
        level: Minimum log level name.
        json_logs: Render JSON lines when ``True``, console output otherwise.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
        force=True,
    )

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_service(service),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def _add_service(service: str) -> structlog.types.Processor:
    """Build a processor that stamps *service* onto every event."""

    def processor(
        _logger: object, _method: str, event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict.setdefault("service", service)
        return event_dict

    return processor
