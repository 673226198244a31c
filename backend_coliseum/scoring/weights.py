"""
Weight and decay tables for Passport event types.

Loaded once at startup into immutable mappings and passed by reference into
the pure scoring functions. Unknown event types resolve to DEFAULT_WEIGHT and
DEFAULT_DECAY. An optional JSON file can override individual entries:

    {
      "weights": {"player.track_played": 2},
      "decay": {"player.track_played": {"half_life_days": 14, "floor": 0.1}}
    }
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from backend_coliseum.coliseum_logging import get_logger
from backend_coliseum.core.exceptions import ConfigError

logger = get_logger(__name__)

DEFAULT_WEIGHT = 1.0


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


@dataclass(frozen=True)
class DecayRule:
    """Half-life (days) and retention floor for one event type."""

    half_life_days: float
    floor: float

    def __post_init__(self) -> None:
        if not _is_number(self.half_life_days) or self.half_life_days <= 0:
            raise ConfigError(f"half_life_days must be > 0, got {self.half_life_days!r}")
        if not _is_number(self.floor) or not 0 < self.floor <= 1:
            raise ConfigError(f"floor must be in (0, 1], got {self.floor!r}")


DEFAULT_DECAY = DecayRule(half_life_days=30.0, floor=0.2)

# Tier 5 transformative (1000) → tier 1 ambient (0.1)
EVENT_WEIGHTS: Mapping[str, float] = MappingProxyType({
    "treasury.subscription_started": 1000,
    "concierto.event_hosted": 1000,
    "treasury.payout_received": 1000,
    "companon.campaign_launched": 1000,
    "concierto.ticket_purchased": 100,
    "concierto.event_attended": 100,
    "concierto.vote_cast": 100,
    "locker.item_claimed": 100,
    "core.track_uploaded": 100,
    "companon.offer_redeemed": 100,
    "concierto.event_rsvp": 10,
    "core.artist_followed": 10,
    "social.user_followed": 10,
    "player.track_completed": 10,
    "locker.opened": 10,
    "companon.offer_viewed": 10,
    "player.track_played": 1,
    "core.track_viewed": 1,
    "concierto.event_viewed": 1,
    "companon.campaign_impression": 1,
    "player.track_skipped": 0.1,
    "core.search_performed": 0.1,
    "navigation.page_viewed": 0.1,
})

DECAY_RULES: Mapping[str, DecayRule] = MappingProxyType({
    "player.track_played": DecayRule(7, 0.1),
    "player.track_skipped": DecayRule(7, 0.1),
    "concierto.event_viewed": DecayRule(7, 0.1),
    "core.artist_followed": DecayRule(30, 0.3),
    "social.user_followed": DecayRule(30, 0.3),
    "concierto.vote_cast": DecayRule(30, 0.3),
    "concierto.ticket_purchased": DecayRule(90, 0.5),
    "treasury.subscription_started": DecayRule(180, 0.7),
    "concierto.event_attended": DecayRule(365, 0.8),
    "core.track_uploaded": DecayRule(365, 0.9),
})


@dataclass(frozen=True)
class ScoringConfig:
    """Immutable weight and decay tables plus their fallbacks."""

    weights: Mapping[str, float] = field(default_factory=lambda: EVENT_WEIGHTS)
    decay_rules: Mapping[str, DecayRule] = field(default_factory=lambda: DECAY_RULES)
    default_weight: float = DEFAULT_WEIGHT
    default_decay: DecayRule = DEFAULT_DECAY

    def weight_for(self, event_type: str) -> float:
        return self.weights.get(event_type, self.default_weight)

    def decay_rule_for(self, event_type: str) -> DecayRule:
        return self.decay_rules.get(event_type, self.default_decay)


DEFAULT_CONFIG = ScoringConfig()


def _parse_weights(raw: Any) -> dict[str, float]:
    if not isinstance(raw, dict):
        raise ConfigError("'weights' must be an object of event_type -> number")
    out: dict[str, float] = {}
    for event_type, value in raw.items():
        if not _is_number(value) or value < 0:
            raise ConfigError(f"weight for {event_type!r} must be a non-negative number, got {value!r}")
        out[str(event_type)] = float(value)
    return out


def _parse_decay(raw: Any) -> dict[str, DecayRule]:
    if not isinstance(raw, dict):
        raise ConfigError("'decay' must be an object of event_type -> {half_life_days, floor}")
    out: dict[str, DecayRule] = {}
    for event_type, value in raw.items():
        if not isinstance(value, dict):
            raise ConfigError(f"decay for {event_type!r} must be an object")
        out[str(event_type)] = DecayRule(
            half_life_days=value.get("half_life_days"),
            floor=value.get("floor"),
        )
    return out


def build_config(overrides: Mapping[str, Any] | None = None) -> ScoringConfig:
    """Merge overrides ({"weights": ..., "decay": ...}) over the built-in tables."""
    if not overrides:
        return DEFAULT_CONFIG
    weights = dict(EVENT_WEIGHTS)
    decay = dict(DECAY_RULES)
    if "weights" in overrides:
        weights.update(_parse_weights(overrides["weights"]))
    if "decay" in overrides:
        decay.update(_parse_decay(overrides["decay"]))
    return ScoringConfig(
        weights=MappingProxyType(weights),
        decay_rules=MappingProxyType(decay),
    )


def load_config(path: str | Path | None = None) -> ScoringConfig:
    """
    Return the scoring config: built-in tables, merged with the JSON file at path if given.
    Raises ConfigError on unreadable files or invalid values.
    """
    if path is None:
        return DEFAULT_CONFIG
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"cannot load weights file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"weights file {path} must contain a JSON object")
    config = build_config(data)
    logger.info(
        "scoring_config_loaded",
        path=str(path),
        weights=len(config.weights),
        decay_rules=len(config.decay_rules),
    )
    return config
