"""
Data models for the Coliseum scoring engine.

Events (input), mutations (derived, ephemeral), domain strength rows
(aggregates) and leaderboard entries (ranked view). Plain dataclasses; no
ORM coupling so storage backends stay swappable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from backend_coliseum.core.exceptions import InvalidEventError

SECONDS_PER_DAY = 86400


class Domain(str, Enum):
    """
    The four DNA scoring domains, plus COMPOSITE: the per-artist sum of the
    four, ranked on its own leaderboard. Generators never emit COMPOSITE.
    """

    CULTURAL = "A"
    BEHAVIORAL = "T"
    ECONOMIC = "G"
    GEOGRAPHIC = "C"
    COMPOSITE = "composite"

    @classmethod
    def parse(cls, value: str | Domain) -> Domain:
        """Accept a domain letter (any case), its name ("cultural") or "composite"."""
        if isinstance(value, Domain):
            return value
        raw = str(value).strip()
        for member in cls:
            if raw.upper() == member.value or raw.upper() == member.name:
                return member
        raise ValueError(f"Invalid domain {value!r}. Must be A, T, G, C or composite")


# Domains that receive mutations, in generator order.
SCORING_DOMAINS: tuple[Domain, ...] = (
    Domain.CULTURAL,
    Domain.BEHAVIORAL,
    Domain.ECONOMIC,
    Domain.GEOGRAPHIC,
)


class TimeWindow(str, Enum):
    """Aggregation windows. ALL_TIME has no lower bound."""

    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    ALL_TIME = "alltime"

    @property
    def days(self) -> int | None:
        return {"7d": 7, "30d": 30}.get(self.value)

    def since(self, now_ts: float) -> float | None:
        """Inclusive lower bound (Unix seconds) of the window at now_ts; None for all-time."""
        days = self.days
        if days is None:
            return None
        return now_ts - days * SECONDS_PER_DAY

    def contains(self, occurred_at: float, now_ts: float) -> bool:
        since = self.since(now_ts)
        return since is None or occurred_at >= since

    @classmethod
    def parse(cls, value: str | TimeWindow) -> TimeWindow:
        """Accept "7d", "30d", "alltime", "all-time" or "all_time"."""
        if isinstance(value, TimeWindow):
            return value
        raw = str(value).strip().lower().replace("-", "").replace("_", "")
        for member in cls:
            if raw == member.value:
                return member
        raise ValueError(f"Invalid time window {value!r}. Must be 7d, 30d, or alltime")


def _parse_timestamp(raw: Any) -> float:
    """Epoch seconds (int/float) or ISO-8601 string -> Unix seconds. Naive strings are UTC."""
    if isinstance(raw, bool):
        raise InvalidEventError(f"invalid timestamp {raw!r}")
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, datetime):
        dt = raw
    elif isinstance(raw, str) and raw.strip():
        text = raw.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as e:
            raise InvalidEventError(f"invalid timestamp {raw!r}") from e
    else:
        raise InvalidEventError(f"invalid timestamp {raw!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


@dataclass(frozen=True)
class Event:
    """
    One Passport engagement event, as produced by the capture layer.

    id is the idempotency key. timestamp is Unix seconds. metadata carries the
    optional fields read by the domain generators: artist_id, artist_genres,
    amount_cents, completion_pct, city.
    """

    id: str
    user_id: str
    event_type: str
    timestamp: float
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> Event:
        """
        Normalize a raw capture-layer record.

        timestamp falls back to created_at; both accept epoch seconds or ISO strings.
        Raises InvalidEventError when id, event_type or timestamp is missing.
        """
        event_id = raw.get("id")
        if event_id is None or str(event_id).strip() == "":
            raise InvalidEventError("event id is required")
        event_type = raw.get("event_type")
        if not isinstance(event_type, str) or not event_type.strip():
            raise InvalidEventError(f"event {event_id}: event_type is required")
        ts_raw = raw.get("timestamp")
        if ts_raw is None:
            ts_raw = raw.get("created_at")
        if ts_raw is None:
            raise InvalidEventError(f"event {event_id}: timestamp is required")
        metadata = raw.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            raise InvalidEventError(f"event {event_id}: metadata must be an object")
        user_id = raw.get("user_id")
        return cls(
            id=str(event_id),
            user_id="" if user_id is None else str(user_id),
            event_type=event_type.strip(),
            timestamp=_parse_timestamp(ts_raw),
            metadata=dict(metadata),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "event_type": self.event_type,
            "timestamp": self.timestamp,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class Mutation:
    """
    A single weighted, decayed contribution of one event to one domain/key.

    effective_delta = delta * weight * recency_decay, evaluated at a given instant.
    event_type and tier (purchase tier, economic mutations only) feed insights.
    """

    event_id: str
    user_id: str
    entity_id: str
    domain: Domain
    key: str
    delta: float
    weight: float
    recency_decay: float
    effective_delta: float
    occurred_at: float
    event_type: str = ""
    tier: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "user_id": self.user_id,
            "entity_id": self.entity_id,
            "domain": self.domain.value,
            "key": self.key,
            "delta": self.delta,
            "weight": self.weight,
            "recency_decay": self.recency_decay,
            "effective_delta": self.effective_delta,
            "occurred_at": self.occurred_at,
            "event_type": self.event_type,
            "tier": self.tier,
        }


@dataclass
class DomainStrength:
    """
    Aggregated strength of one entity in one domain and time window.

    composite_score is the sum of per_key_scores. insights holds descriptive
    per-domain metadata (primary genres, loyalty, revenue, cities).
    """

    entity_id: str
    domain: Domain
    time_window: TimeWindow
    composite_score: float
    per_key_scores: dict[str, float]
    evaluated_at: float
    insights: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "domain": self.domain.value,
            "time_window": self.time_window.value,
            "composite_score": self.composite_score,
            "per_key_scores": dict(self.per_key_scores),
            "evaluated_at": self.evaluated_at,
            "insights": dict(self.insights),
        }


MOVEMENT_NEW = "new"
MOVEMENT_SAME = "same"


@dataclass(frozen=True)
class LeaderboardEntry:
    """
    One ranked row. movement is "new", "same", or the signed rank change
    (previous_rank - rank; positive means the entity climbed).
    """

    rank: int
    entity_id: str
    score: float
    previous_rank: int | None
    movement: str | int

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "entity_id": self.entity_id,
            "score": self.score,
            "previous_rank": self.previous_rank,
            "movement": self.movement,
        }
