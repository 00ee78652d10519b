"""Shared fixtures for vr-common tests."""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from vr_common.config import get_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Isolate each test from ``VR_`` variables in the host environment."""
    for key in list(os.environ):
        if key.startswith("VR_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir("/")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
