"""
VoxRelay relay service.

Accepts client WebSocket connections, pairs each with one upstream
streaming transcription connection, and relays audio up and normalized
transcript envelopes down.  Also serves the HTTP analysis routes.
"""
