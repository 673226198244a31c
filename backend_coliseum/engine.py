"""
Coliseum engine: the exposed surface of the scoring system.

- compute_mutations(event, now): mutations for one event at an instant.
- refresh_aggregates(window, now): full recompute of one window, published atomically;
  returns the DomainStrength rows. refresh_snapshots() returns the published boards.
- get_leaderboard(domain, window): last published ranking (never blocks on a refresh).

A refresh reads the event log, aggregates, ranks the four domains and the
composite board (sum of the four per artist), persists the new snapshots
through the sink, then swaps them into the in-memory store. If the sink fails
nothing is swapped and PublishError is raised; readers keep seeing the previous
snapshot until the next successful pass.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Iterable, Protocol

from backend_coliseum.aggregation.aggregator import aggregate, composite_rows
from backend_coliseum.coliseum_logging import bind_artist, get_logger, refresh_scope
from backend_coliseum.config.settings import Settings
from backend_coliseum.core.exceptions import PublishError
from backend_coliseum.database import Database, RestEventLogReader, SnapshotRepository, get_database
from backend_coliseum.leaderboard.builder import build_leaderboard, percentile
from backend_coliseum.leaderboard.snapshot_store import LeaderboardSnapshot, SnapshotStore
from backend_coliseum.scoring.models import (
    SCORING_DOMAINS,
    Domain,
    DomainStrength,
    Event,
    LeaderboardEntry,
    Mutation,
    TimeWindow,
)
from backend_coliseum.scoring.pipeline import generate
from backend_coliseum.scoring.weights import DEFAULT_CONFIG, ScoringConfig, load_config

logger = get_logger(__name__)


class EventReader(Protocol):
    def fetch(self, since: float | None = None, until: float | None = None) -> list[Event]: ...


class SnapshotSink(Protocol):
    def persist_snapshots(self, snapshots: Iterable[LeaderboardSnapshot]) -> None: ...


class ColiseumEngine:
    """Scoring engine bound to one event reader and (optionally) one snapshot sink."""

    def __init__(
        self,
        reader: EventReader,
        *,
        config: ScoringConfig = DEFAULT_CONFIG,
        sink: SnapshotSink | None = None,
        store: SnapshotStore | None = None,
        workers: int = 1,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._reader = reader
        self._config = config
        self._sink = sink
        self._store = store or SnapshotStore()
        self._workers = max(1, workers)
        self._clock = clock
        self._refresh_lock = threading.Lock()

    @property
    def config(self) -> ScoringConfig:
        return self._config

    @property
    def store(self) -> SnapshotStore:
        return self._store

    def compute_mutations(self, event: Event, now_ts: float | None = None) -> list[Mutation]:
        """All mutations for event evaluated at now_ts (defaults to the engine clock)."""
        return generate(event, self._clock() if now_ts is None else now_ts, self._config)

    def refresh_aggregates(
        self,
        window: TimeWindow | str,
        now_ts: float | None = None,
    ) -> list[DomainStrength]:
        """
        Recompute window at now_ts, publish it, and return the per-domain rows
        (one per artist and scoring domain; composite rows are only published).
        """
        snapshots = self.refresh_snapshots(window, now_ts)
        return [row for snap in snapshots if snap.domain in SCORING_DOMAINS for row in snap.rows]

    def refresh_snapshots(
        self,
        window: TimeWindow | str,
        now_ts: float | None = None,
    ) -> list[LeaderboardSnapshot]:
        """
        Recompute window at now_ts and publish one snapshot per domain plus the
        composite board.

        Refreshes are serialized. Raises PublishError if the sink fails (the store
        is left untouched) and EventLogError if the event log cannot be read.
        """
        window = TimeWindow.parse(window)
        with self._refresh_lock:
            now_ts = self._clock() if now_ts is None else now_ts
            with refresh_scope(window.value, now_ts):
                return self._refresh_locked(window, now_ts)

    def _refresh_locked(self, window: TimeWindow, now_ts: float) -> list[LeaderboardSnapshot]:
        started = time.monotonic()
        events = self._reader.fetch(window.since(now_ts), None)
        rows = aggregate(events, window, now_ts, self._config, workers=self._workers)
        snapshots = self._build_snapshots(rows, window, now_ts)

        if self._sink is not None:
            try:
                self._sink.persist_snapshots(snapshots)
            except Exception as e:
                logger.error("aggregation_publish_failed", error=str(e))
                raise PublishError(window.value, str(e)) from e

        self._store.publish(snapshots)
        logger.info(
            "aggregates_refreshed",
            events=len(events),
            rows=len(rows),
            buckets=len(snapshots),
            duration_ms=round((time.monotonic() - started) * 1000, 2),
        )
        return snapshots

    def _build_snapshots(
        self,
        rows: list[DomainStrength],
        window: TimeWindow,
        now_ts: float,
    ) -> list[LeaderboardSnapshot]:
        by_domain: dict[Domain, list[DomainStrength]] = {d: [] for d in Domain}
        for row in rows:
            by_domain[row.domain].append(row)
        by_domain[Domain.COMPOSITE] = composite_rows(rows, window, now_ts)
        snapshots: list[LeaderboardSnapshot] = []
        for domain in Domain:
            previous = self._store.get(domain, window)
            entries = build_leaderboard(
                by_domain[domain],
                previous.entries if previous is not None else None,
            )
            snapshots.append(
                LeaderboardSnapshot(
                    domain=domain,
                    window=window,
                    evaluated_at=now_ts,
                    entries=tuple(entries),
                    rows=tuple(by_domain[domain]),
                )
            )
        return snapshots

    def get_snapshot(self, domain: Domain | str, window: TimeWindow | str) -> LeaderboardSnapshot | None:
        return self._store.get(Domain.parse(domain), TimeWindow.parse(window))

    def get_leaderboard(self, domain: Domain | str, window: TimeWindow | str) -> list[LeaderboardEntry]:
        """Last published ranking for (domain, window); empty if nothing was published yet."""
        snap = self.get_snapshot(domain, window)
        return list(snap.entries) if snap is not None else []

    def get_entity_rank(
        self,
        domain: Domain | str,
        window: TimeWindow | str,
        entity_id: str,
    ) -> dict[str, Any] | None:
        """Rank, percentile, score and insights of one artist; None when unranked."""
        snap = self.get_snapshot(domain, window)
        if snap is None:
            return None
        entry = snap.entry_for(entity_id)
        if entry is None:
            bind_artist(entity_id, __name__).debug("entity_rank_unranked", domain=snap.domain, window=snap.window)
            return None
        row = snap.row_for(entity_id)
        return {
            "entity_id": entity_id,
            "domain": snap.domain.value,
            "window": snap.window.value,
            "rank": entry.rank,
            "total": snap.total,
            "percentile": percentile(entry.rank, snap.total),
            "score": entry.score,
            "movement": entry.movement,
            "per_key_scores": dict(row.per_key_scores) if row is not None else {},
            "insights": dict(row.insights) if row is not None else {},
            "evaluated_at": snap.evaluated_at,
        }

    def warm_start(self) -> int:
        """Load the last persisted snapshots into the store (if the sink can reload). Returns buckets loaded."""
        load_latest = getattr(self._sink, "load_latest", None)
        if load_latest is None:
            return 0
        snapshots = load_latest()
        self._store.publish(snapshots)
        logger.info("engine_warm_start", buckets=len(snapshots))
        return len(snapshots)


def build_engine(settings: Settings, *, event_log: Database | None = None) -> ColiseumEngine:
    """
    Wire an engine from settings: REST event log when EVENT_LOG_URL is set, else the
    local SQLite log; scoring tables from COLISEUM_WEIGHTS_PATH; snapshots persisted
    through SQLAlchemy at COLISEUM_SNAPSHOT_DB_URL.
    """
    reader: EventReader
    if settings.event_log_url:
        reader = RestEventLogReader(settings.event_log_url, settings.event_log_api_key)
    else:
        reader = event_log if event_log is not None else get_database(settings.db_path)
    repository = SnapshotRepository(settings.snapshot_db_url)
    repository.init_db()
    engine = ColiseumEngine(
        reader,
        config=load_config(settings.weights_path),
        sink=repository,
        workers=settings.aggregation_workers,
    )
    logger.info(
        "engine_built",
        event_log="rest" if settings.event_log_url else "sqlite",
        workers=settings.aggregation_workers,
    )
    return engine
