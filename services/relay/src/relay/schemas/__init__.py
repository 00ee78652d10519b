"""Request and response schemas for the VoxRelay HTTP routes."""
