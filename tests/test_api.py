"""
Tests for the FastAPI endpoints. Uses temporary SQLite stores via conftest fixtures.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from backend_coliseum.api_server.server import create_app
from backend_coliseum.engine import ColiseumEngine

NOW = 1_700_000_000.0


def _raw(event_id: str, event_type: str, artist_id: str, **metadata):
    return {
        "id": event_id,
        "user_id": "fan-1",
        "event_type": event_type,
        "timestamp": NOW,
        "metadata": {"artist_id": artist_id, **metadata},
    }


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["published"] == []


def test_ingest_events_counts_duplicates_and_invalid(client):
    body = {
        "events": [
            _raw("e1", "player.track_played", "a"),
            _raw("e2", "concierto.ticket_purchased", "b", amount_cents=5000),
            {"id": "broken", "timestamp": NOW},
        ]
    }
    r = client.post("/events", json=body)
    assert r.status_code == 200
    data = r.json()
    assert data["received"] == 3
    assert data["inserted"] == 2
    assert data["duplicates"] == 0
    assert len(data["invalid"]) == 1

    r2 = client.post("/events", json={"events": [_raw("e1", "player.track_played", "a")]})
    assert r2.json()["inserted"] == 0
    assert r2.json()["duplicates"] == 1


def test_mutations_endpoint(client):
    r = client.post(
        "/mutations",
        json={"event": _raw("t1", "concierto.ticket_purchased", "a", amount_cents=5000, tier="VIP"), "now": NOW},
    )
    assert r.status_code == 200
    data = r.json()
    assert data["event_id"] == "t1"
    revenue = [m for m in data["mutations"] if m["domain"] == "G"]
    assert revenue[0]["effective_delta"] == pytest.approx(5000.0)
    assert revenue[0]["tier"] == "vip"
    assert revenue[0]["event_type"] == "concierto.ticket_purchased"
    assert {m["domain"] for m in data["mutations"]} == {"A", "T", "G"}


def test_mutations_rejects_invalid_event(client):
    r = client.post("/mutations", json={"event": {"id": "x"}})
    assert r.status_code == 400


def test_refresh_then_read_leaderboard(client):
    client.post(
        "/events",
        json={
            "events": [
                _raw("1", "concierto.ticket_purchased", "artist-b", amount_cents=1000),
                _raw("2", "concierto.ticket_purchased", "artist-a", amount_cents=1000),
                _raw("3", "concierto.ticket_purchased", "artist-c", amount_cents=3000),
            ]
        },
    )
    r = client.post("/aggregates/7d/refresh", params={"now": NOW})
    assert r.status_code == 200
    assert r.json()["window"] == "7d"
    assert {b["domain"]: b["total"] for b in r.json()["buckets"]} == {"A": 3, "T": 3, "G": 3, "C": 0, "composite": 3}

    board = client.get("/leaderboards/G/7d").json()
    assert board["total"] == 3
    assert board["evaluated_at"] == NOW
    assert [e["entity_id"] for e in board["entries"]] == ["artist-c", "artist-a", "artist-b"]
    assert board["entries"][0]["movement"] == "new"

    page = client.get("/leaderboards/economic/7d", params={"limit": 1, "offset": 1}).json()
    assert [e["entity_id"] for e in page["entries"]] == ["artist-a"]
    assert page["limit"] == 1 and page["offset"] == 1

    rank = client.get("/leaderboards/G/7d/entities/artist-b")
    assert rank.status_code == 200
    assert rank.json()["rank"] == 3
    assert rank.json()["percentile"] == pytest.approx(0.6667)
    assert rank.json()["insights"]["transaction_count"] == 1

    assert client.get("/leaderboards/G/7d/entities/nobody").status_code == 404
    assert client.get("/health").json()["published"] == ["A/7d", "C/7d", "G/7d", "T/7d", "composite/7d"]

    composite = client.get("/leaderboards/composite/7d").json()
    assert [e["entity_id"] for e in composite["entries"]] == ["artist-c", "artist-a", "artist-b"]
    assert composite["entries"][0]["score"] == pytest.approx(80 + 90 + 3000)
    breakdown = client.get("/leaderboards/composite/7d/entities/artist-c").json()
    assert breakdown["per_key_scores"] == pytest.approx({"A": 80.0, "T": 90.0, "G": 3000.0})
    assert breakdown["insights"]["strongest_domain"] == "G"


def test_leaderboard_empty_before_publish(client):
    r = client.get("/leaderboards/A/alltime")
    assert r.status_code == 200
    assert r.json()["total"] == 0
    assert r.json()["entries"] == []
    assert r.json()["evaluated_at"] is None


def test_invalid_domain_or_window(client):
    assert client.get("/leaderboards/X/7d").status_code == 400
    assert client.get("/leaderboards/A/1y").status_code == 400
    assert client.post("/aggregates/forever/refresh").status_code == 400
    assert client.get("/leaderboards/A/7d", params={"limit": 0}).status_code == 422


def test_refresh_publish_failure_returns_503(event_log):
    sink = MagicMock()
    sink.persist_snapshots.side_effect = RuntimeError("disk full")
    engine = ColiseumEngine(event_log, sink=sink, clock=lambda: NOW)
    app = create_app(engine=engine, event_log=event_log, start_runner=False)
    with TestClient(app) as c:
        r = c.post("/aggregates/30d/refresh")
        assert r.status_code == 503
        assert "window=30d" in r.json()["detail"]
        assert c.get("/leaderboards/A/30d").json()["total"] == 0


def test_broken_event_log_returns_502(client, broken_event_log):
    r = client.post("/aggregates/7d/refresh", params={"now": NOW})
    assert r.status_code == 502
    assert "passport_entries" in r.json()["detail"]
    r = client.post("/events", json={"events": [_raw("e1", "player.track_played", "a")]})
    assert r.status_code == 502
