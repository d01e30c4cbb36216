"""
Teacher Ratings Engine

Weekly-deduplicated rating ledger, live and all-time aggregation, and
immutable ranked weekly leaderboard snapshots.
"""

__version__ = "0.1.0"
