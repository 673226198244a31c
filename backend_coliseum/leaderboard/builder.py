"""
Leaderboard builder: ranks DomainStrength rows of one (domain, window) bucket.

Sort: composite_score descending, ties by ascending entity_id; ranks 1..N.
Movement is computed against the previously published ranking of the same
bucket. The full ranking is always built; depth truncation is the caller's job.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from backend_coliseum.scoring.models import (
    MOVEMENT_NEW,
    MOVEMENT_SAME,
    DomainStrength,
    LeaderboardEntry,
)


def movement_for(rank: int, previous_rank: int | None) -> str | int:
    """'new' if previously unranked, 'same' if unchanged, else previous_rank - rank."""
    if previous_rank is None:
        return MOVEMENT_NEW
    if previous_rank == rank:
        return MOVEMENT_SAME
    return previous_rank - rank


def previous_ranks(entries: Iterable[LeaderboardEntry] | None) -> dict[str, int]:
    if not entries:
        return {}
    return {e.entity_id: e.rank for e in entries}


def build_leaderboard(
    rows: Sequence[DomainStrength],
    previous: Iterable[LeaderboardEntry] | Mapping[str, int] | None = None,
) -> list[LeaderboardEntry]:
    """
    Rank rows of a single (domain, window) bucket.

    previous is the last published ranking of the same bucket (entries, or an
    entity_id -> rank mapping). Raises ValueError when rows mix buckets.
    """
    if rows:
        buckets = {(r.domain, r.time_window) for r in rows}
        if len(buckets) > 1:
            raise ValueError(f"rows span {len(buckets)} (domain, window) buckets; expected one")

    prev = dict(previous) if isinstance(previous, Mapping) else previous_ranks(previous)
    ordered = sorted(rows, key=lambda r: (-r.composite_score, r.entity_id))
    entries: list[LeaderboardEntry] = []
    for rank, row in enumerate(ordered, start=1):
        previous_rank = prev.get(row.entity_id)
        entries.append(
            LeaderboardEntry(
                rank=rank,
                entity_id=row.entity_id,
                score=row.composite_score,
                previous_rank=previous_rank,
                movement=movement_for(rank, previous_rank),
            )
        )
    return entries


def rank_of(entries: Sequence[LeaderboardEntry], entity_id: str) -> LeaderboardEntry | None:
    for entry in entries:
        if entry.entity_id == entity_id:
            return entry
    return None


def percentile(rank: int, total: int) -> float:
    """(rank - 1) / total: 0.0 is the top of the board."""
    if total <= 0:
        return 0.0
    return round((rank - 1) / total, 4)
