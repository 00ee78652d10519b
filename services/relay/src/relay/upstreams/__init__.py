"""
Upstream provider implementations package for VoxRelay.

Contains concrete UpstreamEngine implementations for each supported
streaming transcription provider.
"""

from relay.upstreams.deepgram import DeepgramUpstream, UpstreamConfig, parse_deepgram_result

__all__ = ["DeepgramUpstream", "UpstreamConfig", "parse_deepgram_result"]
