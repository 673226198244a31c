"""
FastAPI server: event ingest, mutation preview, aggregation refresh and leaderboards.

Leaderboard reads come from the last published in-memory snapshot and never
wait on a refresh. Config via env (see backend_coliseum.config.settings).
"""

from __future__ import annotations

import threading
import time
from contextlib import asynccontextmanager
from typing import Any, Union

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field

from backend_coliseum import __version__
from backend_coliseum.coliseum_logging import get_logger
from backend_coliseum.config.settings import Settings, get_settings
from backend_coliseum.core.exceptions import EventLogError, InvalidEventError, PublishError
from backend_coliseum.database import Database, get_database
from backend_coliseum.engine import ColiseumEngine, build_engine
from backend_coliseum.scoring.models import Domain, Event, TimeWindow

logger = get_logger(__name__)

DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 500


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------


class IngestEventsRequest(BaseModel):
    """POST /events body: raw Passport events as produced by the capture layer."""

    events: list[dict[str, Any]] = Field(..., description="Events with id, user_id, event_type, timestamp, metadata")


class IngestEventsResponse(BaseModel):
    received: int = Field(..., description="Events in the request")
    inserted: int = Field(..., description="Events newly stored")
    duplicates: int = Field(..., description="Events skipped because their id was already stored")
    invalid: list[str] = Field(default_factory=list, description="Reasons for events rejected before storage")


class MutationsRequest(BaseModel):
    """POST /mutations body: one raw event and an optional evaluation instant (Unix seconds)."""

    event: dict[str, Any]
    now: float | None = Field(None, description="Evaluation instant; defaults to current time")


class MutationModel(BaseModel):
    event_id: str
    user_id: str
    entity_id: str
    domain: str
    key: str
    delta: float
    weight: float
    recency_decay: float
    effective_delta: float
    occurred_at: float
    event_type: str = ""
    tier: str | None = None


class MutationsResponse(BaseModel):
    event_id: str
    evaluated_at: float
    mutations: list[MutationModel] = Field(default_factory=list)


class RefreshBucket(BaseModel):
    domain: str
    total: int


class RefreshResponse(BaseModel):
    window: str
    evaluated_at: float
    buckets: list[RefreshBucket]


class LeaderboardEntryModel(BaseModel):
    rank: int
    entity_id: str
    score: float
    previous_rank: int | None = None
    movement: Union[int, str] = Field(..., description='"new", "same" or previous_rank - rank')


class LeaderboardResponse(BaseModel):
    domain: str
    window: str
    evaluated_at: float | None = Field(None, description="Instant of the published snapshot; null when nothing published")
    total: int
    limit: int
    offset: int
    entries: list[LeaderboardEntryModel] = Field(default_factory=list)


class EntityRankResponse(BaseModel):
    entity_id: str
    domain: str
    window: str
    rank: int
    total: int
    percentile: float = Field(..., ge=0, le=1, description="(rank - 1) / total; 0 is the top")
    score: float
    movement: Union[int, str]
    per_key_scores: dict[str, float] = Field(default_factory=dict)
    insights: dict[str, Any] = Field(default_factory=dict)
    evaluated_at: float


# -----------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------


def get_engine(request: Request) -> ColiseumEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="engine not initialized")
    return engine


def get_event_log(request: Request) -> Database:
    db = getattr(request.app.state, "event_log", None)
    if db is None:
        raise HTTPException(status_code=503, detail="event log not initialized")
    return db


def _parse_domain(value: str) -> Domain:
    try:
        return Domain.parse(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def _parse_window(value: str) -> TimeWindow:
    try:
        return TimeWindow.parse(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


# -----------------------------------------------------------------------------
# Lifespan: wire engine, warm start, background periodic runner (never blocks API)
# -----------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build engine from settings if not injected, start periodic runner thread; stop it on shutdown."""
    from backend_coliseum.agent_worker.runner import (
        SHUTDOWN_JOIN_TIMEOUT_SEC,
        PeriodicRunnerConfig,
        run_periodic_worker,
    )

    settings: Settings = app.state.settings or get_settings()
    if app.state.event_log is None:
        app.state.event_log = get_database(settings.db_path)
    if app.state.engine is None:
        app.state.engine = build_engine(settings, event_log=app.state.event_log)
        try:
            app.state.engine.warm_start()
        except Exception as e:
            logger.warning("engine_warm_start_skip", error=str(e))

    stop_event = threading.Event()
    thread: threading.Thread | None = None
    if app.state.start_runner:
        config = PeriodicRunnerConfig(interval_sec=settings.refresh_interval_sec)
        thread = threading.Thread(
            target=run_periodic_worker,
            args=(app.state.engine, config, stop_event),
            name="periodic-runner",
            daemon=True,
        )
        thread.start()
        logger.info("api_periodic_runner_started", interval_sec=config.interval_sec)

    yield

    stop_event.set()
    if thread is not None:
        thread.join(timeout=SHUTDOWN_JOIN_TIMEOUT_SEC)
        if thread.is_alive():
            logger.warning("api_periodic_runner_shutdown_timeout", timeout_sec=SHUTDOWN_JOIN_TIMEOUT_SEC)
        else:
            logger.info("api_periodic_runner_stopped")


# -----------------------------------------------------------------------------
# App and routes
# -----------------------------------------------------------------------------


def create_app(
    *,
    settings: Settings | None = None,
    engine: ColiseumEngine | None = None,
    event_log: Database | None = None,
    start_runner: bool = True,
) -> FastAPI:
    """
    Build the ASGI app. Anything not injected is built from settings at startup;
    tests pass an engine and event log and disable the runner.
    """
    app = FastAPI(
        title="Coliseum Scoring API",
        description="Artist DNA scoring: Passport events to ranked A/T/G/C and composite leaderboards.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.event_log = event_log
    app.state.start_runner = start_runner

    @app.get("/health")
    def health(engine: ColiseumEngine = Depends(get_engine)):
        published = [f"{d.value}/{w.value}" for d, w in sorted(engine.store.keys(), key=lambda k: (k[0].value, k[1].value))]
        return {"status": "ok", "version": __version__, "published": published}

    @app.post("/events", response_model=IngestEventsResponse)
    def ingest_events(body: IngestEventsRequest, db: Database = Depends(get_event_log)):
        """Normalize and store a batch of events. Duplicate ids are ignored; invalid events are reported."""
        events: list[Event] = []
        invalid: list[str] = []
        for raw in body.events:
            try:
                events.append(Event.from_dict(raw))
            except InvalidEventError as e:
                invalid.append(str(e))
        try:
            inserted, duplicates = db.insert_events(events) if events else (0, 0)
        except EventLogError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e
        if invalid:
            logger.info("ingest_events_invalid", invalid=len(invalid))
        return IngestEventsResponse(
            received=len(body.events),
            inserted=inserted,
            duplicates=duplicates,
            invalid=invalid,
        )

    @app.post("/mutations", response_model=MutationsResponse)
    def compute_mutations(body: MutationsRequest, engine: ColiseumEngine = Depends(get_engine)):
        try:
            event = Event.from_dict(body.event)
        except InvalidEventError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        now_ts = body.now if body.now is not None else time.time()
        mutations = engine.compute_mutations(event, now_ts)
        return MutationsResponse(
            event_id=event.id,
            evaluated_at=now_ts,
            mutations=[MutationModel(**m.to_dict()) for m in mutations],
        )

    @app.post("/aggregates/{window}/refresh", response_model=RefreshResponse)
    def refresh_aggregates(
        window: str,
        now: float | None = Query(None, description="Evaluation instant (Unix seconds); defaults to current time"),
        engine: ColiseumEngine = Depends(get_engine),
    ):
        """Recompute and publish the domain and composite leaderboards for window. 503 when publishing fails."""
        tw = _parse_window(window)
        try:
            snapshots = engine.refresh_snapshots(tw, now)
        except PublishError as e:
            raise HTTPException(status_code=503, detail=str(e)) from e
        except EventLogError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e
        return RefreshResponse(
            window=tw.value,
            evaluated_at=snapshots[0].evaluated_at if snapshots else 0.0,
            buckets=[RefreshBucket(domain=s.domain.value, total=s.total) for s in snapshots],
        )

    @app.get("/leaderboards/{domain}/{window}", response_model=LeaderboardResponse)
    def get_leaderboard(
        domain: str,
        window: str,
        limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
        offset: int = Query(0, ge=0),
        engine: ColiseumEngine = Depends(get_engine),
    ):
        """Page of the last published ranking; empty when nothing has been published yet."""
        d = _parse_domain(domain)
        tw = _parse_window(window)
        snap = engine.get_snapshot(d, tw)
        if snap is None:
            return LeaderboardResponse(domain=d.value, window=tw.value, total=0, limit=limit, offset=offset)
        return LeaderboardResponse(
            domain=d.value,
            window=tw.value,
            evaluated_at=snap.evaluated_at,
            total=snap.total,
            limit=limit,
            offset=offset,
            entries=[LeaderboardEntryModel(**e.to_dict()) for e in snap.page(limit, offset)],
        )

    @app.get("/leaderboards/{domain}/{window}/entities/{entity_id}", response_model=EntityRankResponse)
    def get_entity_rank(
        domain: str,
        window: str,
        entity_id: str,
        engine: ColiseumEngine = Depends(get_engine),
    ):
        d = _parse_domain(domain)
        tw = _parse_window(window)
        result = engine.get_entity_rank(d, tw, entity_id)
        if result is None:
            raise HTTPException(status_code=404, detail=f"entity {entity_id} not ranked in {d.value}/{tw.value}")
        return EntityRankResponse(**result)

    return app


app = create_app()
