"""
In-memory published snapshots, one per (domain, window).

Publication is double-buffered: a refresh builds the next set of snapshots off
to the side and swaps them in with a single reference assignment. Readers
always see a consistent table from one evaluation instant.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from backend_coliseum.scoring.models import Domain, DomainStrength, LeaderboardEntry, TimeWindow

SnapshotKey = tuple[Domain, TimeWindow]


@dataclass(frozen=True)
class LeaderboardSnapshot:
    """Ranked leaderboard plus the rows it was built from, for one bucket and instant."""

    domain: Domain
    window: TimeWindow
    evaluated_at: float
    entries: tuple[LeaderboardEntry, ...] = ()
    rows: tuple[DomainStrength, ...] = ()
    _by_entity: Mapping[str, LeaderboardEntry] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "_by_entity",
            MappingProxyType({e.entity_id: e for e in self.entries}),
        )

    @property
    def total(self) -> int:
        return len(self.entries)

    def entry_for(self, entity_id: str) -> LeaderboardEntry | None:
        return self._by_entity.get(entity_id)

    def row_for(self, entity_id: str) -> DomainStrength | None:
        for row in self.rows:
            if row.entity_id == entity_id:
                return row
        return None

    def page(self, limit: int | None = None, offset: int = 0) -> tuple[LeaderboardEntry, ...]:
        offset = max(0, offset)
        if limit is None:
            return self.entries[offset:]
        return self.entries[offset:offset + max(0, limit)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain.value,
            "window": self.window.value,
            "evaluated_at": self.evaluated_at,
            "total": self.total,
            "entries": [e.to_dict() for e in self.entries],
        }


class SnapshotStore:
    """Thread-safe holder of the currently published snapshots."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshots: Mapping[SnapshotKey, LeaderboardSnapshot] = MappingProxyType({})

    def get(self, domain: Domain, window: TimeWindow) -> LeaderboardSnapshot | None:
        # Single read of an immutable mapping; no lock needed.
        return self._snapshots.get((domain, window))

    def publish(self, snapshots: Iterable[LeaderboardSnapshot]) -> None:
        """Swap in new snapshots; buckets not in snapshots keep their current value."""
        with self._lock:
            merged = dict(self._snapshots)
            for snap in snapshots:
                merged[(snap.domain, snap.window)] = snap
            self._snapshots = MappingProxyType(merged)

    def keys(self) -> list[SnapshotKey]:
        return list(self._snapshots)

    def clear(self) -> None:
        with self._lock:
            self._snapshots = MappingProxyType({})
