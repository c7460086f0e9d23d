"""Allocation watch loop.

Follows the orchestrator's allocation listing with blocking queries and
reports placed/booting/running counts to a metrics sink whenever they change.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ..config import WatchConfig
from ..orchestrator import OrchestratorError
from .models import AggregateCounts, MetricSample, WatchState
from .sink import SinkError


def _log(msg: str) -> None:
    """Print with flush for reliable output from a long-running loop."""
    print(msg, flush=True)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StepResult:
    """Outcome of one watch iteration."""

    state: WatchState
    advanced: bool = False
    counts: Optional[AggregateCounts] = None
    samples: List[MetricSample] = field(default_factory=list)
    sink_errors: List[SinkError] = field(default_factory=list)


def watch_step(
    state: WatchState,
    client,
    sink,
    *,
    allow_stale: bool = True,
    clock: Callable[[], datetime] = _utcnow,
) -> StepResult:
    """Run one query-and-emit iteration.

    Args:
        state: State from the previous iteration.
        client: Object with ``list_allocations(wait_index, allow_stale)``.
        sink: Object with ``set(name, value, timestamp)``.
        allow_stale: Accept answers from non-leader servers.
        clock: Source of observation timestamps.

    Returns:
        StepResult with the new state. If the index did not move the state is
        returned unchanged and nothing is emitted.

    Raises:
        OrchestratorError: If the query fails. The state is not advanced.
    """
    allocations, meta = client.list_allocations(wait_index=state.cursor, allow_stale=allow_stale)
    observed_at = clock()

    # Long-poll timed out without new data, or a stale server answered with an
    # older index.
    if meta.last_index <= state.cursor:
        return StepResult(state=state)

    state = state.advance(meta.last_index)
    counts = AggregateCounts.from_statuses(alloc.client_status for alloc in allocations)
    result = StepResult(state=state, advanced=True, counts=counts)

    changed = state.changed(counts)
    for name, value in changed.items():
        sample = MetricSample(name=name, value=value, timestamp=observed_at)
        result.samples.append(sample)
        try:
            sink.set(sample.name, sample.value, sample.timestamp)
        except SinkError as exc:
            result.sink_errors.append(exc)

    result.state = state.with_emitted(changed)
    return result


class AllocationWatcher:
    """Runs ``watch_step`` until stopped.

    Query failures are logged and retried after ``error_backoff`` seconds.
    A query that returns without a new index is followed by a pause of
    ``min_query_interval`` seconds, so a server that answers immediately
    cannot drive the loop into a busy spin.
    """

    def __init__(
        self,
        client,
        sink,
        config: Optional[WatchConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.client = client
        self.sink = sink
        self.config = config or WatchConfig()
        self.clock = clock
        self.state = WatchState(cursor=self.config.start_index)
        self._stop_event = threading.Event()
        self._consecutive_failures = 0
        self.iterations = 0

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def stop(self) -> None:
        self._stop_event.set()

    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run(self) -> None:
        """Loop until ``stop()`` is called."""
        _log(
            f"[watch] Starting (cursor={self.state.cursor}, stale={self.config.allow_stale}, "
            f"min_query_interval={self.config.min_query_interval}s)"
        )
        while not self._stop_event.is_set():
            self.run_once()
        _log(f"[watch] Stopped at index {self.state.cursor}")

    def run_once(self) -> Optional[StepResult]:
        """Run a single iteration including any pause that follows it."""
        self.iterations += 1
        try:
            result = watch_step(
                self.state,
                self.client,
                self.sink,
                allow_stale=self.config.allow_stale,
                clock=self.clock,
            )
        except OrchestratorError as exc:
            self._consecutive_failures += 1
            _log(
                f"[watch] Failed querying allocations "
                f"(failure {self._consecutive_failures}): {exc}"
            )
            self._stop_event.wait(self.config.error_backoff)
            return None

        if self._consecutive_failures:
            _log(f"[watch] Query recovered after {self._consecutive_failures} failures")
            self._consecutive_failures = 0

        self.state = result.state
        for exc in result.sink_errors:
            _log(f"[watch] WARNING: metrics sink write failed: {exc}")

        if not result.advanced:
            self._stop_event.wait(self.config.min_query_interval)
        elif result.samples:
            counts = result.counts
            _log(
                f"[watch] index={self.state.cursor} placed={counts.total} "
                f"booting={counts.pending} running={counts.running}"
            )
        return result
