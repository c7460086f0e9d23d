"""Conversion of the internal job model to the orchestrator wire format.

Field-by-field mapping into the JSON shape accepted by ``POST /v1/jobs``.
Free-form blocks (task driver config) are copied recursively and must hold
JSON-representable values only.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, List

from .models import Job, Resources, RestartPolicy, Task, TaskGroup

_NS_PER_SECOND = 1_000_000_000


class TranscodeError(Exception):
    """Raised when a job holds a value the wire format cannot represent."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


def duration_to_ns(value: timedelta) -> int:
    """Durations travel as integer nanoseconds."""
    return (value.days * 86400 + value.seconds) * _NS_PER_SECOND + value.microseconds * 1000


def convert_free_form(value: Any, path: str) -> Any:
    """Deep-copy a free-form value, rejecting anything JSON cannot carry."""
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            raise TranscodeError(path, f"non-finite number {value!r}")
        return value
    if isinstance(value, dict):
        out: Dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise TranscodeError(path, f"mapping key {key!r} is not a string")
            out[key] = convert_free_form(item, f"{path}.{key}")
        return out
    if isinstance(value, (list, tuple)):
        return [convert_free_form(item, f"{path}[{i}]") for i, item in enumerate(value)]
    raise TranscodeError(path, f"unsupported value of type {type(value).__name__}")


def _resources(resources: Resources) -> Dict[str, Any]:
    return {"CPU": resources.cpu, "MemoryMB": resources.memory_mb}


def _restart(policy: RestartPolicy) -> Dict[str, Any]:
    return {
        "Mode": policy.mode.value,
        "Attempts": policy.attempts,
        "Interval": duration_to_ns(policy.interval),
        "Delay": duration_to_ns(policy.delay),
    }


def _task(task: Task, path: str) -> Dict[str, Any]:
    return {
        "Name": task.name,
        "Driver": task.driver,
        "Config": convert_free_form(task.config, f"{path}.config"),
        "Env": dict(task.env) or None,
        "Meta": dict(task.meta) or None,
        "Resources": _resources(task.resources),
    }


def _group(group: TaskGroup, path: str) -> Dict[str, Any]:
    tasks: List[Dict[str, Any]] = [
        _task(task, f"{path}.tasks[{i}]") for i, task in enumerate(group.tasks)
    ]
    out: Dict[str, Any] = {
        "Name": group.name,
        "Count": group.count,
        "Tasks": tasks,
        "Meta": dict(group.meta) or None,
    }
    if group.restart is not None:
        out["RestartPolicy"] = _restart(group.restart)
    return out


def to_api_job(job: Job) -> Dict[str, Any]:
    """Convert a parsed ``Job`` into the API wire representation.

    Raises:
        TranscodeError: If any part of the job cannot be represented. No
            partial result is returned.
    """
    if not job.groups:
        raise TranscodeError("job", "no task groups")

    return {
        "ID": job.id,
        "Name": job.name,
        "Type": job.type.value,
        "Priority": job.priority,
        "Region": job.region,
        "Datacenters": list(job.datacenters),
        "TaskGroups": [_group(group, f"job.groups[{i}]") for i, group in enumerate(job.groups)],
        "Meta": dict(job.meta) or None,
    }
