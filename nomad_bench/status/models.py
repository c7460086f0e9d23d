"""Data models for allocation status tracking.

1. COUNTS ARE SNAPSHOTS
   - AggregateCounts is recomputed from the full allocation listing on every
     successful query, never patched incrementally.

2. METRIC NAMES
   - placed: every allocation the orchestrator reports
   - booting: allocations with client status "pending"
   - running: allocations with client status "running"

3. WATCH STATE
   - WatchState holds the read cursor and the last value emitted per metric.
     Each iteration takes a state and returns a new one.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, Optional


class ClientStatus(str, Enum):
    """Client status of an allocation."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"
    LOST = "lost"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ClientStatus":
        if not isinstance(value, str):
            return cls.UNKNOWN
        try:
            return cls(value.lower())
        except ValueError:
            return cls.UNKNOWN


METRIC_PLACED = "placed"
METRIC_BOOTING = "booting"
METRIC_RUNNING = "running"

METRIC_NAMES = (METRIC_PLACED, METRIC_BOOTING, METRIC_RUNNING)


@dataclass(frozen=True)
class AggregateCounts:
    """Allocation counts for one query response."""

    total: int = 0
    pending: int = 0
    running: int = 0

    @property
    def other(self) -> int:
        """Allocations that are neither pending nor running."""
        return self.total - self.pending - self.running

    @classmethod
    def from_statuses(cls, statuses: Iterable[Optional[str]]) -> "AggregateCounts":
        total = pending = running = 0
        for raw in statuses:
            total += 1
            status = ClientStatus.parse(raw)
            if status is ClientStatus.PENDING:
                pending += 1
            elif status is ClientStatus.RUNNING:
                running += 1
        return cls(total=total, pending=pending, running=running)

    def as_metrics(self) -> Dict[str, int]:
        return {
            METRIC_PLACED: self.total,
            METRIC_BOOTING: self.pending,
            METRIC_RUNNING: self.running,
        }


@dataclass(frozen=True)
class MetricSample:
    """One metric value captured at ``timestamp``."""

    name: str
    value: float
    timestamp: datetime


@dataclass(frozen=True)
class WatchState:
    """State carried between watch loop iterations.

    ``cursor`` only moves forward. ``last_emitted`` has no entry for a
    metric until it has been emitted once.
    """

    cursor: int = 1
    last_emitted: Dict[str, int] = field(default_factory=dict)

    def advance(self, index: int) -> "WatchState":
        """Return a state whose cursor is ``index`` if that is further along."""
        if index <= self.cursor:
            return self
        return replace(self, cursor=index)

    def changed(self, counts: AggregateCounts) -> Dict[str, int]:
        """Metrics whose value differs from what was last emitted."""
        return {
            name: value
            for name, value in counts.as_metrics().items()
            if self.last_emitted.get(name) != value
        }

    def with_emitted(self, emitted: Dict[str, int]) -> "WatchState":
        if not emitted:
            return self
        return replace(self, last_emitted={**self.last_emitted, **emitted})
