"""Operational scripts (scheduler entry points)."""
