"""Internal job model.

This is the structured form produced by the manifest parser. It uses Python
naming and types (``timedelta`` for durations, snake_case fields) and is
converted to the orchestrator's wire representation by ``transcode``.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, List, Optional


class JobType(str, Enum):
    """Scheduler used for a job."""

    SERVICE = "service"
    BATCH = "batch"
    SYSTEM = "system"


class RestartMode(str, Enum):
    """What the client does once restart attempts are exhausted."""

    FAIL = "fail"
    DELAY = "delay"


@dataclass
class Resources:
    """Resources requested by a task."""

    cpu: int = 100  # MHz
    memory_mb: int = 300


@dataclass
class RestartPolicy:
    """Task group restart policy."""

    mode: RestartMode = RestartMode.FAIL
    attempts: int = 0
    interval: timedelta = timedelta(minutes=30)
    delay: timedelta = timedelta(seconds=15)


@dataclass
class Task:
    """A single unit of work run by a driver."""

    name: str
    driver: str
    config: Dict[str, Any] = field(default_factory=dict)  # driver-specific, free-form
    env: Dict[str, str] = field(default_factory=dict)
    meta: Dict[str, str] = field(default_factory=dict)
    resources: Resources = field(default_factory=Resources)


@dataclass
class TaskGroup:
    """A set of tasks co-located on one node, run ``count`` times."""

    name: str
    count: int = 1
    tasks: List[Task] = field(default_factory=list)
    restart: Optional[RestartPolicy] = None
    meta: Dict[str, str] = field(default_factory=dict)


@dataclass
class Job:
    """A job as parsed from a manifest."""

    id: str
    name: str
    type: JobType = JobType.SERVICE
    priority: int = 50
    region: Optional[str] = None
    datacenters: List[str] = field(default_factory=list)
    groups: List[TaskGroup] = field(default_factory=list)
    meta: Dict[str, str] = field(default_factory=dict)

    @property
    def total_count(self) -> int:
        """Number of allocations the job asks for across all groups."""
        return sum(group.count for group in self.groups)
