"""
Scoring package: weights, recency decay and per-domain mutation generation.

Consumes normalized Passport events and produces weighted, decayed DNA
mutations for the four domains (A/T/G/C). Pure functions only.
"""

from backend_coliseum.scoring.decay import decay
from backend_coliseum.scoring.models import (
    SCORING_DOMAINS,
    Domain,
    DomainStrength,
    Event,
    LeaderboardEntry,
    Mutation,
    TimeWindow,
)
from backend_coliseum.scoring.pipeline import generate, generate_many, resolve_entity_id
from backend_coliseum.scoring.weights import (
    DEFAULT_CONFIG,
    DecayRule,
    ScoringConfig,
    load_config,
)

__all__ = [
    "decay",
    "SCORING_DOMAINS",
    "Domain",
    "DomainStrength",
    "Event",
    "LeaderboardEntry",
    "Mutation",
    "TimeWindow",
    "generate",
    "generate_many",
    "resolve_entity_id",
    "DEFAULT_CONFIG",
    "DecayRule",
    "ScoringConfig",
    "load_config",
]
