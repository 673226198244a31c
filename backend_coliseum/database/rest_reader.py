"""
REST event log reader (PostgREST-style API, e.g. Supabase).

Implements the same reader contract as the local Database:
fetch(since, until) -> list[Event], since inclusive, until exclusive.
Pages through results with limit/offset. Rows that cannot be normalized are
logged and skipped; transport and HTTP errors raise EventLogError.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx

from backend_coliseum.coliseum_logging import get_logger
from backend_coliseum.core.exceptions import EventLogError, InvalidEventError
from backend_coliseum.scoring.models import Event

logger = get_logger(__name__)

DEFAULT_TABLE = "passport_entries"
DEFAULT_TIME_COLUMN = "created_at"
DEFAULT_PAGE_SIZE = 1000
REQUEST_TIMEOUT_SEC = 15.0


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


class RestEventLogReader:
    """Reads Passport events from a REST table. Pass client= to share or mock the transport."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        *,
        table: str = DEFAULT_TABLE,
        time_column: str = DEFAULT_TIME_COLUMN,
        page_size: int = DEFAULT_PAGE_SIZE,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._table = table
        self._time_column = time_column
        self._page_size = max(1, page_size)
        headers: dict[str, str] = {"Accept": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=REQUEST_TIMEOUT_SEC)
        self._headers = headers

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> RestEventLogReader:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _params(self, since: float | None, until: float | None, offset: int) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = [
            ("select", "*"),
            ("order", f"{self._time_column}.asc"),
            ("limit", str(self._page_size)),
            ("offset", str(offset)),
        ]
        if since is not None:
            params.append((self._time_column, f"gte.{_iso(since)}"))
        if until is not None:
            params.append((self._time_column, f"lt.{_iso(until)}"))
        return params

    def _get_page(self, since: float | None, until: float | None, offset: int) -> list[dict[str, Any]]:
        url = f"{self._base_url}/{self._table}"
        try:
            resp = self._client.get(url, params=self._params(since, until, offset), headers=self._headers)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            logger.warning("event_log_fetch_failed", table=self._table, offset=offset, error=str(e))
            raise EventLogError(f"event log request failed: {e}") from e
        except ValueError as e:
            raise EventLogError(f"event log returned invalid JSON: {e}") from e
        if not isinstance(data, list):
            raise EventLogError(f"event log returned {type(data).__name__}, expected a list")
        return data

    def fetch(self, since: float | None = None, until: float | None = None) -> list[Event]:
        """Return all events with since <= timestamp < until, following pages until a short page."""
        events: list[Event] = []
        skipped = 0
        offset = 0
        while True:
            page = self._get_page(since, until, offset)
            for raw in page:
                try:
                    events.append(Event.from_dict(raw if isinstance(raw, dict) else {}))
                except InvalidEventError as e:
                    skipped += 1
                    logger.warning("event_log_row_skipped", error=str(e))
            if len(page) < self._page_size:
                break
            offset += len(page)
        logger.info("event_log_fetched", table=self._table, events=len(events), skipped=skipped)
        return events
