"""
Descriptive per-domain insights attached to each DomainStrength row.

A: primary genres, genre diversity (normalized Shannon entropy), niche depth,
   crossover potential and per-genre engagement
T: unique fans, loyalty, interactions per fan, RSVP-to-attendance conversion,
   superfan share and churn risk
G: transactions, revenue, lifetime value per fan and willingness to pay
C: primary cities, reach, touring viability and per-city engagement
composite: strongest domain and each domain's share of the total

Derived from the same fold as the scores; deterministic. Ties on top-N lists
are broken by key so output never depends on insertion order.
"""

from __future__ import annotations

import math
from typing import Any, Mapping

from backend_coliseum.scoring.domains import CITY_KEY_PREFIX, GENERAL_ENGAGEMENT_KEY
from backend_coliseum.scoring.models import SCORING_DOMAINS, Domain

PRIMARY_GENRES_LIMIT = 3
PRIMARY_CITIES_LIMIT = 5
# Fans with at least this many events count as repeat (loyal) fans
REPEAT_FAN_MIN_EVENTS = 2
# Most engaged share of fans considered for superfan status
SUPERFAN_TOP_SHARE = 0.1

RSVP_EVENT = "concierto.event_rsvp"
ATTENDED_EVENT = "concierto.event_attended"
PREMIUM_TIERS = frozenset({"vip", "premium"})

# Reach is measured against the top metro markets
REACH_MARKET_COUNT = 100
TOURING_CITY_MIN_ENGAGEMENT = 50.0
TOURING_VIABLE_CITY_COUNT = 5


def _top_keys(scores: Mapping[str, float], limit: int) -> list[str]:
    positive = [(k, v) for k, v in scores.items() if v > 0]
    positive.sort(key=lambda kv: (-kv[1], kv[0]))
    return [k for k, _ in positive[:limit]]


def _ratio(numerator: float, denominator: float, digits: int = 4) -> float:
    return round(numerator / denominator, digits) if denominator else 0.0


def genre_diversity_index(genre_scores: Mapping[str, float]) -> float:
    """Shannon entropy of positive genre scores, normalized to [0, 1]. 0 for fewer than 2 genres."""
    values = [v for v in genre_scores.values() if v > 0]
    if len(values) < 2:
        return 0.0
    total = math.fsum(values)
    entropy = -math.fsum((v / total) * math.log2(v / total) for v in values)
    return round(min(1.0, entropy / math.log2(len(values))), 4)


def superfan_percentage(fan_events: Mapping[str, int]) -> float:
    """
    Share of fans at or above the top-decile interaction count, counting only
    repeat fans. A single very active fan among casual listeners yields 1/N.
    """
    if not fan_events:
        return 0.0
    counts = sorted(fan_events.values(), reverse=True)
    top = max(1, math.ceil(len(counts) * SUPERFAN_TOP_SHARE))
    threshold = max(counts[top - 1], REPEAT_FAN_MIN_EVENTS)
    superfans = sum(1 for c in counts if c >= threshold)
    return _ratio(superfans, len(counts))


def cultural_insights(per_key_scores: Mapping[str, float]) -> dict[str, Any]:
    genres = {k: v for k, v in per_key_scores.items() if k != GENERAL_ENGAGEMENT_KEY}
    diversity = genre_diversity_index(genres)
    has_genres = any(v > 0 for v in genres.values())
    return {
        "primary_genres": _top_keys(genres, PRIMARY_GENRES_LIMIT),
        "genre_diversity_index": diversity,
        "niche_depth": round(1.0 - diversity, 4) if has_genres else 0.0,
        "crossover_potential": diversity,
        "genre_engagement": {k: genres[k] for k in sorted(genres)},
    }


def behavioral_insights(
    fan_events: Mapping[str, int],
    event_types: Mapping[str, int] | None = None,
) -> dict[str, Any]:
    event_types = event_types or {}
    rsvps = event_types.get(RSVP_EVENT, 0)
    conversion = min(1.0, _ratio(event_types.get(ATTENDED_EVENT, 0), rsvps))
    unique_fans = len(fan_events)
    if unique_fans == 0:
        return {
            "unique_fans": 0,
            "loyalty_index": 0.0,
            "avg_interactions_per_fan": 0.0,
            "conversion_rate": conversion,
            "superfan_percentage": 0.0,
            "churn_risk_score": 0.0,
        }
    repeat = sum(1 for count in fan_events.values() if count >= REPEAT_FAN_MIN_EVENTS)
    loyalty = _ratio(repeat, unique_fans)
    return {
        "unique_fans": unique_fans,
        "loyalty_index": loyalty,
        "avg_interactions_per_fan": _ratio(sum(fan_events.values()), unique_fans),
        "conversion_rate": conversion,
        "superfan_percentage": superfan_percentage(fan_events),
        "churn_risk_score": round(1.0 - loyalty, 4),
    }


def economic_insights(
    transaction_count: int,
    revenue_total: float,
    premium_transactions: int = 0,
    artist_fans: int = 0,
) -> dict[str, Any]:
    """Revenue figures are undecayed dollars. artist_fans counts every fan of the artist, paying or not."""
    return {
        "transaction_count": transaction_count,
        "total_revenue": round(revenue_total, 2),
        "avg_transaction_value": _ratio(revenue_total, transaction_count, 2),
        "lifetime_value_per_fan": _ratio(revenue_total, artist_fans, 2),
        "willingness_to_pay_index": _ratio(premium_transactions, transaction_count),
    }


def geographic_insights(per_key_scores: Mapping[str, float]) -> dict[str, Any]:
    cities = {
        k[len(CITY_KEY_PREFIX):]: v
        for k, v in per_key_scores.items()
        if k.startswith(CITY_KEY_PREFIX)
    }
    viable = sum(1 for v in cities.values() if v >= TOURING_CITY_MIN_ENGAGEMENT)
    return {
        "primary_cities": _top_keys(cities, PRIMARY_CITIES_LIMIT),
        "city_count": len(cities),
        "geographic_reach_index": round(min(1.0, len(cities) / REACH_MARKET_COUNT), 4),
        "touring_viability_score": round(min(1.0, viable / TOURING_VIABLE_CITY_COUNT), 4),
        "city_engagement": {k: cities[k] for k in sorted(cities)},
    }


def composite_insights(domain_scores: Mapping[str, float]) -> dict[str, Any]:
    """domain_scores maps domain letter -> score for the domains the artist appears in."""
    strongest = None
    best = 0.0
    for domain in SCORING_DOMAINS:
        score = domain_scores.get(domain.value)
        if score is not None and score > best:
            strongest, best = domain.value, score
    total = math.fsum(v for v in domain_scores.values() if v > 0)
    return {
        "strongest_domain": strongest,
        "domain_count": len(domain_scores),
        "domain_share": {
            d.value: _ratio(max(0.0, domain_scores[d.value]), total)
            for d in SCORING_DOMAINS
            if d.value in domain_scores
        },
    }


def build_insights(
    domain: Domain,
    per_key_scores: Mapping[str, float],
    *,
    fan_events: Mapping[str, int] | None = None,
    event_types: Mapping[str, int] | None = None,
    transaction_count: int = 0,
    revenue_total: float = 0.0,
    premium_transactions: int = 0,
    artist_fans: int = 0,
) -> dict[str, Any]:
    """Dispatch to the domain's insight function."""
    if domain is Domain.CULTURAL:
        return cultural_insights(per_key_scores)
    if domain is Domain.BEHAVIORAL:
        return behavioral_insights(fan_events or {}, event_types)
    if domain is Domain.ECONOMIC:
        return economic_insights(transaction_count, revenue_total, premium_transactions, artist_fans)
    if domain is Domain.COMPOSITE:
        return composite_insights(per_key_scores)
    return geographic_insights(per_key_scores)
