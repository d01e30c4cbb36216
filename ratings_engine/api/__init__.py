"""HTTP API for the teacher ratings engine."""
