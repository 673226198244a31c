"""
Windowed aggregation: events -> mutations -> DomainStrength rows.

For a time window and evaluation instant: filter events to the window,
deduplicate on event id, regenerate mutations at the instant, and fold by
(entity_id, domain, key) with plain summation. Mutations are never cached;
every pass re-derives them from source events so decay is always current.

The fold is a commutative monoid (PartialAggregate.merge), so it can run over
a worker pool sharded by entity and be merged in any order. Per-key sums use
math.fsum over all contributions, so serial and parallel results are identical.

composite_rows() sums the domain rows of each artist into its overall strength.
"""

from __future__ import annotations

import math
import time
import zlib
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Iterable

from backend_coliseum.aggregation.insights import PREMIUM_TIERS, build_insights
from backend_coliseum.coliseum_logging import get_logger
from backend_coliseum.scoring.models import (
    SCORING_DOMAINS,
    Domain,
    DomainStrength,
    Event,
    Mutation,
    TimeWindow,
)
from backend_coliseum.scoring.pipeline import generate, resolve_entity_id
from backend_coliseum.scoring.weights import DEFAULT_CONFIG, ScoringConfig

logger = get_logger(__name__)

DOMAIN_ORDER = {domain: i for i, domain in enumerate(Domain)}


@dataclass
class _Accumulator:
    """Running totals for one (entity_id, domain)."""

    contributions: dict[str, list[float]] = field(default_factory=dict)
    fan_events: Counter = field(default_factory=Counter)
    # T fires once per event, so T mutations count events by type
    event_types: Counter = field(default_factory=Counter)
    transaction_count: int = 0
    premium_transactions: int = 0
    revenues: list[float] = field(default_factory=list)
    paying_fans: set[str] = field(default_factory=set)

    @property
    def revenue_total(self) -> float:
        return math.fsum(self.revenues)

    def add(self, mutation: Mutation) -> None:
        self.contributions.setdefault(mutation.key, []).append(mutation.effective_delta)
        if mutation.domain is Domain.BEHAVIORAL:
            self.event_types[mutation.event_type] += 1
            if mutation.user_id:
                self.fan_events[mutation.user_id] += 1
        elif mutation.domain is Domain.ECONOMIC:
            self.transaction_count += 1
            self.revenues.append(mutation.delta)
            if mutation.tier in PREMIUM_TIERS:
                self.premium_transactions += 1
            if mutation.user_id:
                self.paying_fans.add(mutation.user_id)

    def merge(self, other: _Accumulator) -> None:
        for key, values in other.contributions.items():
            self.contributions.setdefault(key, []).extend(values)
        self.fan_events.update(other.fan_events)
        self.event_types.update(other.event_types)
        self.transaction_count += other.transaction_count
        self.premium_transactions += other.premium_transactions
        self.revenues.extend(other.revenues)
        self.paying_fans.update(other.paying_fans)

    def per_key_scores(self) -> dict[str, float]:
        return {key: math.fsum(self.contributions[key]) for key in sorted(self.contributions)}


class PartialAggregate:
    """Partial fold over a subset of mutations; merge() combines two partials."""

    def __init__(self) -> None:
        self._buckets: dict[tuple[str, Domain], _Accumulator] = {}

    def __len__(self) -> int:
        return len(self._buckets)

    def add(self, mutation: Mutation) -> None:
        bucket = self._buckets.get((mutation.entity_id, mutation.domain))
        if bucket is None:
            bucket = _Accumulator()
            self._buckets[(mutation.entity_id, mutation.domain)] = bucket
        bucket.add(mutation)

    def add_all(self, mutations: Iterable[Mutation]) -> PartialAggregate:
        for mutation in mutations:
            self.add(mutation)
        return self

    def merge(self, other: PartialAggregate) -> PartialAggregate:
        """Fold other into self (in place) and return self."""
        for bucket_key, acc in other._buckets.items():
            mine = self._buckets.get(bucket_key)
            if mine is None:
                mine = _Accumulator()
                self._buckets[bucket_key] = mine
            mine.merge(acc)
        return self

    def _artist_fans(self, entity_id: str) -> set[str]:
        """Every fan seen for the artist: engaged (T) or paying (G)."""
        fans: set[str] = set()
        behavioral = self._buckets.get((entity_id, Domain.BEHAVIORAL))
        if behavioral is not None:
            fans.update(behavioral.fan_events)
        economic = self._buckets.get((entity_id, Domain.ECONOMIC))
        if economic is not None:
            fans.update(economic.paying_fans)
        return fans

    def finalize(self, window: TimeWindow, evaluated_at: float) -> list[DomainStrength]:
        """Return one DomainStrength per (entity, domain), ordered by domain then entity_id."""
        rows: list[DomainStrength] = []
        ordered = sorted(self._buckets, key=lambda k: (DOMAIN_ORDER[k[1]], k[0]))
        for entity_id, domain in ordered:
            acc = self._buckets[(entity_id, domain)]
            per_key = acc.per_key_scores()
            artist_fans = 0
            if domain is Domain.ECONOMIC:
                artist_fans = len(self._artist_fans(entity_id))
            rows.append(
                DomainStrength(
                    entity_id=entity_id,
                    domain=domain,
                    time_window=window,
                    composite_score=math.fsum(per_key.values()),
                    per_key_scores=per_key,
                    evaluated_at=evaluated_at,
                    insights=build_insights(
                        domain,
                        per_key,
                        fan_events=acc.fan_events,
                        event_types=acc.event_types,
                        transaction_count=acc.transaction_count,
                        revenue_total=acc.revenue_total,
                        premium_transactions=acc.premium_transactions,
                        artist_fans=artist_fans,
                    ),
                )
            )
        return rows


def dedupe_events(events: Iterable[Event]) -> list[Event]:
    """
    Keep one event per id. Events are ordered by (timestamp, id) first so the
    survivor of a duplicate id does not depend on input order.
    """
    seen: set[str] = set()
    out: list[Event] = []
    for event in sorted(events, key=lambda e: (e.timestamp, e.id)):
        if event.id in seen:
            continue
        seen.add(event.id)
        out.append(event)
    return out


def dedupe_mutations(mutations: Iterable[Mutation]) -> list[Mutation]:
    """Keep the first mutation per (event_id, entity_id, domain, key)."""
    seen: set[tuple[str, str, Domain, str]] = set()
    out: list[Mutation] = []
    for m in mutations:
        ident = (m.event_id, m.entity_id, m.domain, m.key)
        if ident in seen:
            continue
        seen.add(ident)
        out.append(m)
    return out


def filter_window(events: Iterable[Event], window: TimeWindow, now_ts: float) -> list[Event]:
    """Events with timestamp inside window at now_ts (all-time keeps everything)."""
    return [e for e in events if window.contains(e.timestamp, now_ts)]


def shard_events(events: Iterable[Event], shard_count: int) -> list[list[Event]]:
    """
    Partition events by resolved artist so each (entity, domain) bucket is built
    by exactly one shard. Unresolvable events go to shard 0 (they are skipped anyway).
    """
    shards: list[list[Event]] = [[] for _ in range(max(1, shard_count))]
    for event in events:
        entity_id = resolve_entity_id(event)
        idx = 0 if entity_id is None else zlib.crc32(entity_id.encode("utf-8")) % len(shards)
        shards[idx].append(event)
    return shards


def fold_events(
    events: Iterable[Event],
    now_ts: float,
    config: ScoringConfig = DEFAULT_CONFIG,
) -> PartialAggregate:
    """Generate mutations for events at now_ts and fold them into a partial aggregate."""
    partial = PartialAggregate()
    for event in events:
        partial.add_all(generate(event, now_ts, config))
    return partial


def apply_mutations(
    mutations: Iterable[Mutation],
    window: TimeWindow,
    evaluated_at: float,
) -> list[DomainStrength]:
    """Fold already-generated mutations (deduplicated) into DomainStrength rows."""
    partial = PartialAggregate().add_all(dedupe_mutations(mutations))
    return partial.finalize(window, evaluated_at)


def composite_rows(
    rows: Iterable[DomainStrength],
    window: TimeWindow,
    evaluated_at: float,
) -> list[DomainStrength]:
    """
    One COMPOSITE row per artist: the sum of its domain scores, with the
    per-domain breakdown (domain letter -> score) as per_key_scores.
    """
    by_entity: dict[str, dict[Domain, float]] = {}
    for row in rows:
        if row.domain is Domain.COMPOSITE:
            continue
        by_entity.setdefault(row.entity_id, {})[row.domain] = row.composite_score
    out: list[DomainStrength] = []
    for entity_id in sorted(by_entity):
        scores = by_entity[entity_id]
        breakdown = {d.value: scores[d] for d in SCORING_DOMAINS if d in scores}
        out.append(
            DomainStrength(
                entity_id=entity_id,
                domain=Domain.COMPOSITE,
                time_window=window,
                composite_score=math.fsum(breakdown.values()),
                per_key_scores=breakdown,
                evaluated_at=evaluated_at,
                insights=build_insights(Domain.COMPOSITE, breakdown),
            )
        )
    return out


def aggregate(
    events: Iterable[Event],
    window: TimeWindow,
    now_ts: float | None = None,
    config: ScoringConfig = DEFAULT_CONFIG,
    *,
    workers: int = 1,
) -> list[DomainStrength]:
    """
    Full recompute for one window: dedupe -> filter -> generate -> fold.

    workers > 1 shards events by artist across a thread pool and merges the
    partial sums; the result equals the serial fold.
    """
    now_ts = now_ts if now_ts is not None else time.time()
    unique = dedupe_events(events)
    in_window = filter_window(unique, window, now_ts)

    if workers <= 1 or len(in_window) < 2:
        partial = fold_events(in_window, now_ts, config)
    else:
        shards = [s for s in shard_events(in_window, workers) if s]
        partial = PartialAggregate()
        with ThreadPoolExecutor(max_workers=min(workers, len(shards))) as pool:
            futures = [pool.submit(fold_events, shard, now_ts, config) for shard in shards]
            for future in as_completed(futures):
                partial.merge(future.result())

    rows = partial.finalize(window, now_ts)
    logger.info(
        "aggregation_completed",
        window=window.value,
        events=len(in_window),
        duplicates=_count_duplicates(unique, events),
        rows=len(rows),
        workers=workers,
    )
    return rows


def _count_duplicates(unique: list[Event], events: Iterable[Event]) -> int:
    if isinstance(events, (list, tuple)):
        return len(events) - len(unique)
    return 0
