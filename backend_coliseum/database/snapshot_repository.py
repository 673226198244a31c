"""
Published snapshot persistence: SQLAlchemy-backed domain strength rows and leaderboards
(the four domains and the composite board).

Works on any SQLAlchemy URL (PostgreSQL in production, SQLite by default).
Each publish replaces the stored rows of the published (domain, window) buckets
inside a single transaction, so a failed publish leaves the previous snapshot intact.
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Iterable, Iterator

from sqlalchemy import Column, Float, Integer, String, Text, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from backend_coliseum.coliseum_logging import get_logger
from backend_coliseum.leaderboard.snapshot_store import LeaderboardSnapshot
from backend_coliseum.scoring.models import (
    MOVEMENT_NEW,
    MOVEMENT_SAME,
    Domain,
    DomainStrength,
    LeaderboardEntry,
    TimeWindow,
)

logger = get_logger(__name__)

Base = declarative_base()

# -----------------------------------------------------------------------------
# SQLAlchemy models
# -----------------------------------------------------------------------------


class DomainStrengthRecord(Base):
    """Aggregated strength of one artist in one domain/window at the last published instant."""

    __tablename__ = "domain_strength"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_id = Column(String(128), nullable=False, index=True)
    domain = Column(String(16), nullable=False, index=True)  # "A", "T", "G", "C" or "composite"
    time_window = Column(String(16), nullable=False, index=True)
    composite_score = Column(Float, nullable=False)
    per_key_scores = Column(Text, nullable=False)  # JSON object key -> score
    insights = Column(Text, nullable=True)  # JSON object
    evaluated_at = Column(Float, nullable=False, index=True)  # Unix seconds

    def to_model(self) -> DomainStrength:
        return DomainStrength(
            entity_id=self.entity_id,
            domain=Domain(self.domain),
            time_window=TimeWindow(self.time_window),
            composite_score=self.composite_score,
            per_key_scores=json.loads(self.per_key_scores or "{}"),
            evaluated_at=self.evaluated_at,
            insights=json.loads(self.insights or "{}"),
        )


class LeaderboardEntryRecord(Base):
    """One ranked row of a published leaderboard."""

    __tablename__ = "leaderboard_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    domain = Column(String(16), nullable=False, index=True)  # "A", "T", "G", "C" or "composite"
    time_window = Column(String(16), nullable=False, index=True)
    rank = Column(Integer, nullable=False)
    entity_id = Column(String(128), nullable=False, index=True)
    score = Column(Float, nullable=False)
    previous_rank = Column(Integer, nullable=True)
    movement = Column(String(16), nullable=False)  # "new", "same" or signed int as text
    evaluated_at = Column(Float, nullable=False)

    def to_model(self) -> LeaderboardEntry:
        return LeaderboardEntry(
            rank=self.rank,
            entity_id=self.entity_id,
            score=self.score,
            previous_rank=self.previous_rank,
            movement=_parse_movement(self.movement),
        )


def _parse_movement(raw: str) -> str | int:
    if raw in (MOVEMENT_NEW, MOVEMENT_SAME):
        return raw
    return int(raw)


# -----------------------------------------------------------------------------
# Repository
# -----------------------------------------------------------------------------


class SnapshotRepository:
    """Persists and reloads published snapshots. Used as the engine's publish sink."""

    def __init__(self, url: str) -> None:
        connect_args: dict[str, Any] = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self._url = url
        self._engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)

    @property
    def url(self) -> str:
        return self._url

    def init_db(self) -> None:
        """Create snapshot tables if they do not exist. Safe to call on every startup."""
        Base.metadata.create_all(bind=self._engine)
        logger.info("snapshot_repository_init_db", url=self._url.split("?")[0].split("//")[-1])

    def dispose(self) -> None:
        self._engine.dispose()

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        """Single session; commits on success, rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def persist_snapshots(self, snapshots: Iterable[LeaderboardSnapshot]) -> None:
        """Replace stored rows for each snapshot's (domain, window), all in one transaction."""
        snaps = list(snapshots)
        with self._session_scope() as session:
            for snap in snaps:
                domain = snap.domain.value
                window = snap.window.value
                session.query(DomainStrengthRecord).filter(
                    DomainStrengthRecord.domain == domain,
                    DomainStrengthRecord.time_window == window,
                ).delete(synchronize_session=False)
                session.query(LeaderboardEntryRecord).filter(
                    LeaderboardEntryRecord.domain == domain,
                    LeaderboardEntryRecord.time_window == window,
                ).delete(synchronize_session=False)
                session.add_all(
                    DomainStrengthRecord(
                        entity_id=row.entity_id,
                        domain=domain,
                        time_window=window,
                        composite_score=row.composite_score,
                        per_key_scores=json.dumps(row.per_key_scores),
                        insights=json.dumps(row.insights),
                        evaluated_at=row.evaluated_at,
                    )
                    for row in snap.rows
                )
                session.add_all(
                    LeaderboardEntryRecord(
                        domain=domain,
                        time_window=window,
                        rank=entry.rank,
                        entity_id=entry.entity_id,
                        score=entry.score,
                        previous_rank=entry.previous_rank,
                        movement=str(entry.movement),
                        evaluated_at=snap.evaluated_at,
                    )
                    for entry in snap.entries
                )
        logger.info(
            "snapshots_persisted",
            buckets=len(snaps),
            entries=sum(s.total for s in snaps),
        )

    def load_latest(self) -> list[LeaderboardSnapshot]:
        """Rebuild the last persisted snapshot of every stored (domain, window)."""
        with self._session_scope() as session:
            rows = (
                session.query(DomainStrengthRecord)
                .order_by(DomainStrengthRecord.domain, DomainStrengthRecord.time_window, DomainStrengthRecord.entity_id)
                .all()
            )
            entries = (
                session.query(LeaderboardEntryRecord)
                .order_by(LeaderboardEntryRecord.domain, LeaderboardEntryRecord.time_window, LeaderboardEntryRecord.rank)
                .all()
            )
            rows_by_bucket: dict[tuple[str, str], list[DomainStrength]] = {}
            for r in rows:
                rows_by_bucket.setdefault((r.domain, r.time_window), []).append(r.to_model())
            entries_by_bucket: dict[tuple[str, str], list[LeaderboardEntry]] = {}
            evaluated: dict[tuple[str, str], float] = {}
            for e in entries:
                entries_by_bucket.setdefault((e.domain, e.time_window), []).append(e.to_model())
                evaluated[(e.domain, e.time_window)] = e.evaluated_at

        snapshots: list[LeaderboardSnapshot] = []
        for bucket in sorted(set(rows_by_bucket) | set(entries_by_bucket)):
            bucket_rows = rows_by_bucket.get(bucket, [])
            evaluated_at = evaluated.get(bucket)
            if evaluated_at is None:
                evaluated_at = bucket_rows[0].evaluated_at if bucket_rows else 0.0
            snapshots.append(
                LeaderboardSnapshot(
                    domain=Domain(bucket[0]),
                    window=TimeWindow(bucket[1]),
                    evaluated_at=evaluated_at,
                    entries=tuple(entries_by_bucket.get(bucket, [])),
                    rows=tuple(bucket_rows),
                )
            )
        logger.info("snapshots_loaded", buckets=len(snapshots))
        return snapshots
