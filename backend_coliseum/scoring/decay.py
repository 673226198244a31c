"""
Recency decay: exponential half-life model clamped to a retention floor.

    factor = max(0.5 ** (days_since / half_life_days), floor)

Example with a 30-day half-life and 0.2 floor:
- 0 days old: 1.0
- 30 days old: 0.5
- 60 days old: 0.25
- 90+ days old: 0.2 (floor; old engagement never fully vanishes)

Future timestamps clamp to 0 days. Deterministic; no clock access.
"""

from __future__ import annotations

from backend_coliseum.scoring.models import SECONDS_PER_DAY
from backend_coliseum.scoring.weights import DEFAULT_CONFIG, ScoringConfig


def days_since(event_ts: float, now_ts: float) -> float:
    """Fractional days between event_ts and now_ts; never negative."""
    return max(0.0, (now_ts - event_ts) / SECONDS_PER_DAY)


def decay(
    event_ts: float,
    event_type: str,
    now_ts: float,
    config: ScoringConfig = DEFAULT_CONFIG,
) -> float:
    """Return the recency multiplier in (0, 1] for an event of event_type at event_ts."""
    rule = config.decay_rule_for(event_type)
    half_lives = days_since(event_ts, now_ts) / rule.half_life_days
    raw = 0.5 ** half_lives
    return max(raw, rule.floor)
