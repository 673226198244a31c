"""
Mutation pipeline: one event -> zero or more DNA mutations at an evaluation instant.

resolve artist -> weight lookup -> recency decay -> four domain generators.
Pure and idempotent for fixed (event, now_ts, config); safe to run across any
worker pool. Events without a resolvable artist are skipped.
"""

from __future__ import annotations

from typing import Any, Iterable

from backend_coliseum.coliseum_logging import get_logger
from backend_coliseum.scoring.decay import decay
from backend_coliseum.scoring.domains import DOMAIN_GENERATORS
from backend_coliseum.scoring.models import Event, Mutation
from backend_coliseum.scoring.weights import DEFAULT_CONFIG, ScoringConfig

logger = get_logger(__name__)

# artist_id is the capture-layer contract; artistId is the legacy frontend alias.
ARTIST_ID_FIELDS = ("artist_id", "artistId")


def resolve_entity_id(event: Event) -> str | None:
    """Return the pre-resolved artist id from metadata, or None if absent/unusable."""
    for name in ARTIST_ID_FIELDS:
        value: Any = event.metadata.get(name)
        if isinstance(value, bool) or value is None:
            continue
        if isinstance(value, (str, int)):
            text = str(value).strip()
            if text:
                return text
    return None


def generate(
    event: Event,
    now_ts: float,
    config: ScoringConfig = DEFAULT_CONFIG,
) -> list[Mutation]:
    """Return all mutations for event evaluated at now_ts (empty if the artist is unresolvable)."""
    entity_id = resolve_entity_id(event)
    if entity_id is None:
        logger.info(
            "event_skipped_unresolved_entity",
            event_id=event.id,
            event_type=event.event_type,
        )
        return []
    weight = config.weight_for(event.event_type)
    recency = decay(event.timestamp, event.event_type, now_ts, config)
    mutations: list[Mutation] = []
    for _domain, generator in DOMAIN_GENERATORS:
        mutations.extend(generator(event, entity_id, weight, recency))
    return mutations


def generate_many(
    events: Iterable[Event],
    now_ts: float,
    config: ScoringConfig = DEFAULT_CONFIG,
) -> list[Mutation]:
    """Concatenate generate() over events, in input order."""
    out: list[Mutation] = []
    for event in events:
        out.extend(generate(event, now_ts, config))
    return out
