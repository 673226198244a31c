"""Leaderboard ranking and published snapshot store."""

from backend_coliseum.leaderboard.builder import build_leaderboard, movement_for, percentile, rank_of
from backend_coliseum.leaderboard.snapshot_store import LeaderboardSnapshot, SnapshotStore

__all__ = [
    "LeaderboardSnapshot",
    "SnapshotStore",
    "build_leaderboard",
    "movement_for",
    "percentile",
    "rank_of",
]
