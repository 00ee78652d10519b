"""
CORS middleware configuration for VoxRelay.

Browser clients are served from arbitrary origins during development,
so every origin is allowed.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


def add_cors(app: FastAPI, origins: list[str] | None = None) -> None:
    """Attach CORS middleware; all origins unless *origins* is given."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
