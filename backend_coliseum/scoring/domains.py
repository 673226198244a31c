"""
Domain mutation generators: one pure function per DNA domain.

A (Cultural)   -> one mutation per artist genre, or "general_engagement"
T (Behavioral) -> always one "engagement" mutation, boosted by completion
G (Economic)   -> one "revenue" mutation when amount_cents is non-zero
C (Geographic) -> one "city:<city>" mutation when a city is present

Each generator reads only the metadata field it depends on. A malformed value
skips that generator for the event; the other domains still fire.
"""

from __future__ import annotations

import math
from types import MappingProxyType
from typing import Any, Callable, Mapping

from backend_coliseum.coliseum_logging import bind_artist
from backend_coliseum.scoring.models import Domain, Event, Mutation

GENERAL_ENGAGEMENT_KEY = "general_engagement"
ENGAGEMENT_KEY = "engagement"
REVENUE_KEY = "revenue"
CITY_KEY_PREFIX = "city:"

DEFAULT_ADENINE_MULTIPLIER = 0.1
DEFAULT_THYMINE_MULTIPLIER = 0.5
DEFAULT_CYTOSINE_MULTIPLIER = 0.1

ADENINE_MULTIPLIERS: Mapping[str, float] = MappingProxyType({
    "concierto.event_attended": 1.0,
    "concierto.ticket_purchased": 0.8,
    "concierto.vote_cast": 0.5,
    "core.artist_followed": 0.4,
    "social.user_followed": 0.4,
    "player.track_completed": 0.3,
    "player.track_played": 0.1,
    "player.track_skipped": -0.05,
})

THYMINE_MULTIPLIERS: Mapping[str, float] = MappingProxyType({
    "concierto.event_attended": 1.0,
    "concierto.vote_cast": 0.8,
    "concierto.ticket_purchased": 0.9,
    "player.track_completed": 0.6,
    "core.artist_followed": 0.5,
    "social.user_followed": 0.5,
    "player.track_played": 0.3,
})

CYTOSINE_MULTIPLIERS: Mapping[str, float] = MappingProxyType({
    "concierto.event_attended": 2.0,
    "concierto.ticket_purchased": 1.5,
    "concierto.event_rsvp": 0.8,
    "concierto.event_viewed": 0.3,
})

# (event, entity_id, weight, recency_decay) -> mutations
DomainGenerator = Callable[[Event, str, float, float], list]


def adenine_multiplier(event_type: str) -> float:
    return ADENINE_MULTIPLIERS.get(event_type, DEFAULT_ADENINE_MULTIPLIER)


def thymine_multiplier(event_type: str) -> float:
    return THYMINE_MULTIPLIERS.get(event_type, DEFAULT_THYMINE_MULTIPLIER)


def gamma_multiplier(event_type: str) -> float:
    return CYTOSINE_MULTIPLIERS.get(event_type, DEFAULT_CYTOSINE_MULTIPLIER)


def completion_boost(completion_pct: float) -> float:
    """1 + pct^2 * 2, pct clamped to [0, 1]: 50% -> 1.5x, 90% -> 2.62x, 100% -> 3x."""
    pct = min(1.0, max(0.0, completion_pct))
    return 1.0 + (pct ** 2) * 2.0


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _mutation(
    event: Event,
    entity_id: str,
    domain: Domain,
    key: str,
    delta: float,
    weight: float,
    recency_decay: float,
    tier: str | None = None,
) -> Mutation:
    return Mutation(
        event_id=event.id,
        user_id=event.user_id,
        entity_id=entity_id,
        domain=domain,
        key=key,
        delta=delta,
        weight=weight,
        recency_decay=recency_decay,
        effective_delta=delta * weight * recency_decay,
        occurred_at=event.timestamp,
        event_type=event.event_type,
        tier=tier,
    )


def _skip_malformed(
    event: Event,
    entity_id: str,
    domain: Domain,
    field_name: str,
    value: Any,
) -> list[Mutation]:
    bind_artist(entity_id, __name__).debug(
        "domain_generator_skipped_malformed",
        event_id=event.id,
        domain=domain.value,
        field=field_name,
        value_type=type(value).__name__,
    )
    return []


def generate_cultural(event: Event, entity_id: str, weight: float, recency_decay: float) -> list[Mutation]:
    """Domain A: one mutation per distinct genre; general_engagement when no genres."""
    genres = event.metadata.get("artist_genres")
    delta = adenine_multiplier(event.event_type)
    if genres is None or (isinstance(genres, (list, tuple)) and len(genres) == 0):
        return [_mutation(event, entity_id, Domain.CULTURAL, GENERAL_ENGAGEMENT_KEY, delta, weight, recency_decay)]
    if not isinstance(genres, (list, tuple)) or not all(isinstance(g, str) and g for g in genres):
        return _skip_malformed(event, entity_id, Domain.CULTURAL, "artist_genres", genres)
    seen: set[str] = set()
    out: list[Mutation] = []
    for genre in genres:
        if genre in seen:
            continue
        seen.add(genre)
        out.append(_mutation(event, entity_id, Domain.CULTURAL, genre, delta, weight, recency_decay))
    return out


def generate_behavioral(event: Event, entity_id: str, weight: float, recency_decay: float) -> list[Mutation]:
    """Domain T: always exactly one engagement mutation (unless completion_pct is malformed)."""
    pct = event.metadata.get("completion_pct")
    boost = 1.0
    if pct is not None:
        if not _is_number(pct):
            return _skip_malformed(event, entity_id, Domain.BEHAVIORAL, "completion_pct", pct)
        boost = completion_boost(float(pct))
    delta = thymine_multiplier(event.event_type) * boost
    return [_mutation(event, entity_id, Domain.BEHAVIORAL, ENGAGEMENT_KEY, delta, weight, recency_decay)]


def generate_economic(event: Event, entity_id: str, weight: float, recency_decay: float) -> list[Mutation]:
    """Domain G: revenue in dollars; no mutation at all without a non-zero amount."""
    amount_cents = event.metadata.get("amount_cents")
    if amount_cents is None:
        return []
    if not _is_number(amount_cents):
        return _skip_malformed(event, entity_id, Domain.ECONOMIC, "amount_cents", amount_cents)
    if amount_cents == 0:
        return []
    delta = amount_cents / 100
    tier = event.metadata.get("tier")
    tier = tier.strip().lower() if isinstance(tier, str) and tier.strip() else None
    return [_mutation(event, entity_id, Domain.ECONOMIC, REVENUE_KEY, delta, weight, recency_decay, tier)]


def generate_geographic(event: Event, entity_id: str, weight: float, recency_decay: float) -> list[Mutation]:
    """Domain C: one city-keyed mutation when the event carries a city."""
    city = event.metadata.get("city")
    if city is None:
        return []
    if not isinstance(city, str) or not city.strip():
        return _skip_malformed(event, entity_id, Domain.GEOGRAPHIC, "city", city)
    key = f"{CITY_KEY_PREFIX}{city}"
    delta = gamma_multiplier(event.event_type)
    return [_mutation(event, entity_id, Domain.GEOGRAPHIC, key, delta, weight, recency_decay)]


# Closed set, invoked unconditionally in this order for every event.
DOMAIN_GENERATORS: tuple[tuple[Domain, DomainGenerator], ...] = (
    (Domain.CULTURAL, generate_cultural),
    (Domain.BEHAVIORAL, generate_behavioral),
    (Domain.ECONOMIC, generate_economic),
    (Domain.GEOGRAPHIC, generate_geographic),
)
