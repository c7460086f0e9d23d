"""Allocation status tracking - watch loop, aggregate counts and metrics sink."""

from .models import (
    METRIC_BOOTING,
    METRIC_NAMES,
    METRIC_PLACED,
    METRIC_RUNNING,
    AggregateCounts,
    ClientStatus,
    MetricSample,
    WatchState,
)
from .sink import GraphiteSink, SinkError, connect
from .watcher import AllocationWatcher, StepResult, watch_step

__all__ = [
    "METRIC_BOOTING",
    "METRIC_NAMES",
    "METRIC_PLACED",
    "METRIC_RUNNING",
    "AggregateCounts",
    "ClientStatus",
    "MetricSample",
    "WatchState",
    "GraphiteSink",
    "SinkError",
    "connect",
    "AllocationWatcher",
    "StepResult",
    "watch_step",
]
