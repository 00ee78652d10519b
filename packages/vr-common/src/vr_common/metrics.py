"""
Prometheus metrics helpers for VoxRelay.

Shared metric definitions for the relay core and the analysis
adapters.  Exposed by the FastAPI app at ``/metrics``.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

SESSIONS_ACTIVE = Gauge(
    "relay_sessions_active",
    "Session pairs currently open",
    ["mode"],
)
AUDIO_FRAMES_FORWARDED = Counter(
    "relay_audio_frames_forwarded_total",
    "Client audio frames forwarded to the upstream provider",
)
AUDIO_FRAMES_DROPPED = Counter(
    "relay_audio_frames_dropped_total",
    "Client audio frames dropped because the upstream was not open",
)
KEEPALIVES_SENT = Counter(
    "relay_keepalives_sent_total",
    "Keep-alive control frames sent upstream",
)
UPSTREAM_CONNECT_FAILURES = Counter(
    "relay_upstream_connect_failures_total",
    "Upstream handshakes that never reached the open state",
    ["provider"],
)
ADAPTER_FAILURES = Counter(
    "relay_adapter_failures_total",
    "Analysis adapter calls that failed or timed out",
    ["adapter"],
)
ADAPTER_LATENCY = Histogram(
    "relay_adapter_latency_seconds",
    "Analysis adapter call latency in seconds",
    ["adapter"],
)
