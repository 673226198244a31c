"""
Tests for leaderboard ranking, movement and the published snapshot store.
"""

from __future__ import annotations

import pytest

from backend_coliseum.leaderboard.builder import build_leaderboard, percentile, rank_of
from backend_coliseum.leaderboard.snapshot_store import LeaderboardSnapshot, SnapshotStore
from backend_coliseum.scoring.models import Domain, DomainStrength, TimeWindow

NOW = 1_700_000_000.0


def _row(entity_id: str, score: float, domain: Domain = Domain.CULTURAL, window: TimeWindow = TimeWindow.LAST_30_DAYS):
    return DomainStrength(
        entity_id=entity_id,
        domain=domain,
        time_window=window,
        composite_score=score,
        per_key_scores={"rock": score},
        evaluated_at=NOW,
    )


def test_ties_broken_by_entity_id():
    """Two artists at 42.0 in A/30d: the smaller entity_id ranks higher."""
    entries = build_leaderboard([_row("artist-b", 42.0), _row("artist-a", 42.0)])
    assert [(e.rank, e.entity_id) for e in entries] == [(1, "artist-a"), (2, "artist-b")]


def test_sorted_by_score_descending():
    entries = build_leaderboard([_row("low", 1.0), _row("high", 99.5), _row("neg", -3.0), _row("mid", 10.0)])
    assert [e.entity_id for e in entries] == ["high", "mid", "low", "neg"]
    assert [e.rank for e in entries] == [1, 2, 3, 4]
    assert entries[0].score == 99.5


def test_movement_against_previous_ranking():
    previous = build_leaderboard([_row("a", 10.0), _row("b", 8.0), _row("c", 6.0)])
    current = build_leaderboard(
        [_row("c", 20.0), _row("a", 15.0), _row("b", 1.0), _row("d", 0.5)],
        previous,
    )
    movement = {e.entity_id: (e.rank, e.previous_rank, e.movement) for e in current}
    assert movement["c"] == (1, 3, 2)
    assert movement["a"] == (2, 1, -1)
    assert movement["b"] == (3, 2, -1)
    assert movement["d"] == (4, None, "new")


def test_movement_same_and_mapping_input():
    entries = build_leaderboard([_row("a", 5.0), _row("b", 4.0)], {"a": 1, "b": 3})
    assert entries[0].movement == "same"
    assert entries[1].movement == 1


def test_first_ranking_is_all_new():
    entries = build_leaderboard([_row("a", 5.0), _row("b", 4.0)])
    assert all(e.movement == "new" and e.previous_rank is None for e in entries)


def test_mixed_buckets_rejected():
    with pytest.raises(ValueError, match="buckets"):
        build_leaderboard([_row("a", 1.0), _row("b", 1.0, domain=Domain.ECONOMIC)])
    with pytest.raises(ValueError):
        build_leaderboard([_row("a", 1.0), _row("b", 1.0, window=TimeWindow.ALL_TIME)])


def test_empty_rows():
    assert build_leaderboard([]) == []


def test_rank_of_and_percentile():
    entries = build_leaderboard([_row(f"a{i}", float(i)) for i in range(10)])
    entry = rank_of(entries, "a9")
    assert entry.rank == 1
    assert percentile(entry.rank, len(entries)) == 0.0
    assert percentile(rank_of(entries, "a0").rank, len(entries)) == 0.9
    assert rank_of(entries, "missing") is None
    assert percentile(1, 0) == 0.0


def test_snapshot_page_and_lookup():
    rows = [_row("a", 3.0), _row("b", 2.0), _row("c", 1.0)]
    snap = LeaderboardSnapshot(
        domain=Domain.CULTURAL,
        window=TimeWindow.LAST_30_DAYS,
        evaluated_at=NOW,
        entries=tuple(build_leaderboard(rows)),
        rows=tuple(rows),
    )
    assert snap.total == 3
    assert [e.entity_id for e in snap.page(2, 1)] == ["b", "c"]
    assert [e.entity_id for e in snap.page(None, 0)] == ["a", "b", "c"]
    assert snap.page(5, 10) == ()
    assert snap.entry_for("b").rank == 2
    assert snap.row_for("c").composite_score == 1.0
    assert snap.entry_for("zzz") is None
    assert snap.to_dict()["entries"][0]["entity_id"] == "a"


def test_store_publish_swaps_only_given_buckets():
    store = SnapshotStore()
    a30 = LeaderboardSnapshot(Domain.CULTURAL, TimeWindow.LAST_30_DAYS, NOW)
    g7 = LeaderboardSnapshot(Domain.ECONOMIC, TimeWindow.LAST_7_DAYS, NOW)
    store.publish([a30, g7])
    newer = LeaderboardSnapshot(Domain.CULTURAL, TimeWindow.LAST_30_DAYS, NOW + 60)
    store.publish([newer])
    assert store.get(Domain.CULTURAL, TimeWindow.LAST_30_DAYS) is newer
    assert store.get(Domain.ECONOMIC, TimeWindow.LAST_7_DAYS) is g7
    assert store.get(Domain.GEOGRAPHIC, TimeWindow.ALL_TIME) is None
    assert len(store.keys()) == 2
    store.clear()
    assert store.keys() == []
