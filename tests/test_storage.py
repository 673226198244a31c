"""
Tests for the SQLite event log and the SQLAlchemy snapshot repository.
"""

from __future__ import annotations

import pytest

from backend_coliseum.core.exceptions import EventLogError
from backend_coliseum.leaderboard.builder import build_leaderboard
from backend_coliseum.leaderboard.snapshot_store import LeaderboardSnapshot
from backend_coliseum.scoring.models import SECONDS_PER_DAY, Domain, DomainStrength, TimeWindow


def test_insert_events_ignores_duplicate_ids(event_log, make_event):
    e1 = make_event("e1", artist_genres=["rock"])
    e2 = make_event("e2", city="Lima")
    assert event_log.insert_events([e1, e2]) == (2, 0)
    assert event_log.insert_events([e1, make_event("e3")]) == (1, 1)
    assert event_log.count() == 3


def test_fetch_round_trips_metadata(event_log, make_event):
    event = make_event("rt", "concierto.ticket_purchased", user_id="fan-9", amount_cents=5000, artist_genres=["salsa"])
    event_log.insert_events([event])
    (loaded,) = event_log.fetch()
    assert loaded == event


def test_fetch_bounds_since_inclusive_until_exclusive(event_log, make_event, now_ts):
    events = [make_event(f"d{d}", days_ago=d) for d in (0, 1, 2, 3)]
    event_log.insert_events(events)
    since = now_ts - 2 * SECONDS_PER_DAY
    until = now_ts
    ids = [e.id for e in event_log.fetch(since, until)]
    assert ids == ["d2", "d1"]
    assert len(event_log.fetch(since, None)) == 3
    assert len(event_log.fetch(None, until)) == 3
    assert len(event_log.fetch()) == 4


def test_sqlite_errors_raise_event_log_error(broken_event_log, make_event):
    with pytest.raises(EventLogError, match="no such table"):
        broken_event_log.fetch()
    with pytest.raises(EventLogError):
        broken_event_log.insert_events([make_event("e1")])
    with pytest.raises(EventLogError):
        broken_event_log.count()


def _snapshot(domain, window, evaluated_at, scores, previous=None):
    rows = [
        DomainStrength(
            entity_id=entity_id,
            domain=domain,
            time_window=window,
            composite_score=score,
            per_key_scores={"k": score},
            evaluated_at=evaluated_at,
            insights={"note": entity_id},
        )
        for entity_id, score in scores.items()
    ]
    return LeaderboardSnapshot(
        domain=domain,
        window=window,
        evaluated_at=evaluated_at,
        entries=tuple(build_leaderboard(rows, previous)),
        rows=tuple(rows),
    )


def test_snapshot_repository_persist_and_load(snapshot_repo, now_ts):
    first = _snapshot(Domain.CULTURAL, TimeWindow.LAST_7_DAYS, now_ts, {"a": 2.0, "b": 1.0})
    other = _snapshot(Domain.ECONOMIC, TimeWindow.ALL_TIME, now_ts, {"x": 50.0})
    snapshot_repo.persist_snapshots([first, other])

    second = _snapshot(Domain.CULTURAL, TimeWindow.LAST_7_DAYS, now_ts + 60, {"a": 1.0, "b": 3.0}, first.entries)
    snapshot_repo.persist_snapshots([second])

    loaded = {(s.domain, s.window): s for s in snapshot_repo.load_latest()}
    assert set(loaded) == {(Domain.CULTURAL, TimeWindow.LAST_7_DAYS), (Domain.ECONOMIC, TimeWindow.ALL_TIME)}

    cultural = loaded[(Domain.CULTURAL, TimeWindow.LAST_7_DAYS)]
    assert cultural.evaluated_at == now_ts + 60
    assert cultural.entries == second.entries
    assert [e.movement for e in cultural.entries] == [1, -1]
    assert cultural.row_for("a").insights == {"note": "a"}

    economic = loaded[(Domain.ECONOMIC, TimeWindow.ALL_TIME)]
    assert economic.entries[0].movement == "new"
    assert economic.row_for("x").per_key_scores == {"k": 50.0}


def test_snapshot_repository_round_trips_composite_bucket(snapshot_repo, now_ts):
    composite = _snapshot(Domain.COMPOSITE, TimeWindow.LAST_30_DAYS, now_ts, {"a": 12.5, "b": 40.0})
    snapshot_repo.persist_snapshots([composite])
    (loaded,) = snapshot_repo.load_latest()
    assert loaded.domain is Domain.COMPOSITE
    assert [e.entity_id for e in loaded.entries] == ["b", "a"]
