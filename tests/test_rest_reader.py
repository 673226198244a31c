"""
Tests for the REST event log reader using httpx.MockTransport.
"""

from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest

from backend_coliseum.core.exceptions import EventLogError
from backend_coliseum.database.rest_reader import RestEventLogReader

ROWS = [
    {"id": "r1", "user_id": "u1", "event_type": "player.track_played", "created_at": "2023-11-14T20:00:00+00:00", "metadata": {"artist_id": "a"}},
    {"id": "r2", "user_id": "u2", "event_type": "concierto.ticket_purchased", "created_at": "2023-11-14T21:00:00Z", "metadata": {"artist_id": "a", "amount_cents": 1500}},
    {"id": "bad", "user_id": "u3", "created_at": "2023-11-14T21:30:00Z", "metadata": {}},
    {"id": "r3", "user_id": "u1", "event_type": "core.artist_followed", "timestamp": 1_699_999_000, "metadata": {"artist_id": "b"}},
]


def _reader(handler, **kwargs) -> RestEventLogReader:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return RestEventLogReader("https://events.example/rest/v1/", "secret-key", client=client, **kwargs)


def test_fetch_pages_and_skips_malformed_rows():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        offset = int(request.url.params["offset"])
        limit = int(request.url.params["limit"])
        return httpx.Response(200, json=ROWS[offset:offset + limit])

    events = _reader(handler, page_size=2).fetch()
    assert [e.id for e in events] == ["r1", "r2", "r3"]
    assert events[1].metadata["amount_cents"] == 1500
    assert events[2].timestamp == 1_699_999_000.0
    assert [r.url.params["offset"] for r in requests] == ["0", "2", "4"]
    assert requests[0].url.path == "/rest/v1/passport_entries"
    assert requests[0].url.params["select"] == "*"
    assert requests[0].url.params["order"] == "created_at.asc"


def test_fetch_sends_auth_headers_and_time_filters(now_ts):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    since = now_ts - 7 * 86400
    assert _reader(handler).fetch(since, now_ts) == []
    (request,) = seen
    assert request.headers["apikey"] == "secret-key"
    assert request.headers["Authorization"] == "Bearer secret-key"
    assert request.url.params.get_list("created_at") == [
        f"gte.{datetime.fromtimestamp(since, tz=timezone.utc).isoformat()}",
        f"lt.{datetime.fromtimestamp(now_ts, tz=timezone.utc).isoformat()}",
    ]


def test_fetch_without_bounds_has_no_time_filter():
    def handler(request: httpx.Request) -> httpx.Response:
        assert "created_at" not in request.url.params
        return httpx.Response(200, json=[])

    assert _reader(handler).fetch() == []


def test_http_error_raises_event_log_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "boom"})

    with pytest.raises(EventLogError, match="request failed"):
        _reader(handler).fetch()


def test_transport_error_raises_event_log_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(EventLogError):
        _reader(handler).fetch()


def test_non_list_payload_raises_event_log_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"rows": []})

    with pytest.raises(EventLogError, match="expected a list"):
        _reader(handler).fetch()
