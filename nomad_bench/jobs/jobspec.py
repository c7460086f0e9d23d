"""Job manifest template and parser.

The benchmark uses one fixed manifest: a single service job whose task
group is scaled to the requested number of containers. ``setup`` renders it
into the working directory and ``run`` parses it back into a ``Job``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..config import parse_duration
from .models import Job, JobType, Resources, RestartMode, RestartPolicy, Task, TaskGroup

MANIFEST_NAME = "job.yaml"

JOB_TEMPLATE = """\
job:
  id: bench
  name: bench
  type: service
  datacenters:
    - dc1
  groups:
    - name: cache
      count: {count}
      restart:
        mode: fail
        attempts: 0
      tasks:
        - name: bench
          driver: docker
          config:
            image: redis:latest
          resources:
            cpu: 100
            memory: 100
"""


class JobSpecError(Exception):
    """Raised when a manifest cannot be written, read or understood."""

    def __init__(self, message: str, path: Optional[Path] = None):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


def render_manifest(count: int) -> str:
    """Render the benchmark manifest for ``count`` containers."""
    if count <= 0:
        raise ValueError(f"count must be positive, got {count}")
    return JOB_TEMPLATE.format(count=count)


def write_manifest(directory: Path, count: int, name: str = MANIFEST_NAME) -> Path:
    """Write the rendered manifest into ``directory`` and return its path.

    Raises:
        JobSpecError: If the file cannot be written.
    """
    path = Path(directory) / name
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_manifest(count), encoding="utf-8")
    except OSError as e:
        raise JobSpecError(f"failed writing job file: {e}", path) from e
    return path


# --- Parsing ------------------------------------------------------------------


def _require(data: Dict[str, Any], key: str, where: str, path: Path) -> Any:
    if key not in data or data[key] is None:
        raise JobSpecError(f"{where}: missing required key {key!r}", path)
    return data[key]


def _mapping(value: Any, where: str, path: Path) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise JobSpecError(f"{where}: expected a mapping, got {type(value).__name__}", path)
    return value


def _sequence(value: Any, where: str, path: Path) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise JobSpecError(f"{where}: expected a list, got {type(value).__name__}", path)
    return value


def _int(value: Any, where: str, path: Path) -> int:
    # bool is an int subclass; "count: yes" is almost certainly a mistake
    if isinstance(value, bool) or not isinstance(value, int):
        raise JobSpecError(f"{where}: expected an integer, got {value!r}", path)
    return value


def _strings(value: Any, where: str, path: Path) -> Dict[str, str]:
    return {str(k): str(v) for k, v in _mapping(value, where, path).items()}


def _parse_restart(data: Dict[str, Any], where: str, path: Path) -> RestartPolicy:
    policy = RestartPolicy()
    if "mode" in data:
        try:
            policy.mode = RestartMode(str(data["mode"]).lower())
        except ValueError:
            raise JobSpecError(f"{where}.mode: unknown restart mode {data['mode']!r}", path) from None
    if "attempts" in data:
        policy.attempts = _int(data["attempts"], f"{where}.attempts", path)
    for key in ("interval", "delay"):
        if key in data:
            try:
                setattr(policy, key, parse_duration(data[key]))
            except ValueError as e:
                raise JobSpecError(f"{where}.{key}: {e}", path) from e
    return policy


def _parse_task(data: Dict[str, Any], where: str, path: Path) -> Task:
    resources_data = _mapping(data.get("resources"), f"{where}.resources", path)
    resources = Resources()
    if "cpu" in resources_data:
        resources.cpu = _int(resources_data["cpu"], f"{where}.resources.cpu", path)
    if "memory" in resources_data:
        resources.memory_mb = _int(resources_data["memory"], f"{where}.resources.memory", path)

    return Task(
        name=str(_require(data, "name", where, path)),
        driver=str(_require(data, "driver", where, path)),
        config=_mapping(data.get("config"), f"{where}.config", path),
        env=_strings(data.get("env"), f"{where}.env", path),
        meta=_strings(data.get("meta"), f"{where}.meta", path),
        resources=resources,
    )


def _parse_group(data: Dict[str, Any], where: str, path: Path) -> TaskGroup:
    name = str(_require(data, "name", where, path))
    count = _int(data.get("count", 1), f"{where}.count", path)
    if count < 0:
        raise JobSpecError(f"{where}.count: must not be negative", path)

    tasks = []
    for i, task_data in enumerate(_sequence(data.get("tasks"), f"{where}.tasks", path)):
        task_where = f"{where}.tasks[{i}]"
        tasks.append(_parse_task(_mapping(task_data, task_where, path), task_where, path))
    if not tasks:
        raise JobSpecError(f"{where}: group {name!r} has no tasks", path)

    restart = None
    if data.get("restart") is not None:
        restart = _parse_restart(_mapping(data["restart"], f"{where}.restart", path), f"{where}.restart", path)

    return TaskGroup(
        name=name,
        count=count,
        tasks=tasks,
        restart=restart,
        meta=_strings(data.get("meta"), f"{where}.meta", path),
    )


def parse_job(data: Any, path: Path) -> Job:
    """Build a ``Job`` from a loaded manifest document."""
    root = _mapping(data, "document", path)
    job_data = _mapping(_require(root, "job", "document", path), "job", path)

    job_id = str(_require(job_data, "id", "job", path))
    try:
        job_type = JobType(str(job_data.get("type", "service")).lower())
    except ValueError:
        raise JobSpecError(f"job.type: unknown job type {job_data['type']!r}", path) from None

    groups = []
    for i, group_data in enumerate(_sequence(job_data.get("groups"), "job.groups", path)):
        where = f"job.groups[{i}]"
        groups.append(_parse_group(_mapping(group_data, where, path), where, path))
    if not groups:
        raise JobSpecError("job: no task groups defined", path)

    return Job(
        id=job_id,
        name=str(job_data.get("name", job_id)),
        type=job_type,
        priority=_int(job_data.get("priority", 50), "job.priority", path),
        region=job_data.get("region"),
        datacenters=[str(dc) for dc in _sequence(job_data.get("datacenters"), "job.datacenters", path)],
        groups=groups,
        meta=_strings(job_data.get("meta"), "job.meta", path),
    )


def parse_file(path: Path) -> Job:
    """Parse a manifest file into a ``Job``.

    Raises:
        JobSpecError: If the file is unreadable, not YAML, or structurally invalid.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise JobSpecError(f"failed reading job file: {e}", path) from e
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise JobSpecError(f"invalid YAML: {e}", path) from e
    return parse_job(data, path)
