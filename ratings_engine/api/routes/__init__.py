"""API routes for ratings, teacher views, leaderboards and snapshots."""

from ratings_engine.api.routes import leaderboard, ratings, snapshots, teachers

__all__ = ["leaderboard", "ratings", "snapshots", "teachers"]
