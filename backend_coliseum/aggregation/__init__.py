"""Windowed aggregation of mutations into DomainStrength rows."""

from backend_coliseum.aggregation.aggregator import (
    PartialAggregate,
    aggregate,
    apply_mutations,
    composite_rows,
    dedupe_events,
    dedupe_mutations,
    filter_window,
    fold_events,
    shard_events,
)
from backend_coliseum.aggregation.insights import build_insights

__all__ = [
    "PartialAggregate",
    "aggregate",
    "apply_mutations",
    "build_insights",
    "composite_rows",
    "dedupe_events",
    "dedupe_mutations",
    "filter_window",
    "fold_events",
    "shard_events",
]
