"""
API router package for VoxRelay.

Contains the health, analysis (text, vision, one-shot transcription)
and relay WebSocket routers.
"""
