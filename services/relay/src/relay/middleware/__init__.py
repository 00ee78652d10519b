"""HTTP middleware for the VoxRelay app."""
