"""
vr-common: Shared library for VoxRelay.

Provides configuration management, the error taxonomy, common data
models, structured logging and Prometheus metrics used by the relay
and analysis packages.
"""

from vr_common.config import ClientMode, Settings, TranscriptionMode, get_settings

__all__ = [
    "ClientMode",
    "Settings",
    "TranscriptionMode",
    "get_settings",
]
