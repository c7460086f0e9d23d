"""Teardown of everything a benchmark run left behind.

Deregisters every job the orchestrator knows about and then removes the
local working directory. Any failure aborts immediately so that incomplete
cleanup is visible to the operator.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..orchestrator import OrchestratorError


def _log(msg: str) -> None:
    print(msg, flush=True)


@dataclass
class TeardownResult:
    """Outcome of a completed teardown."""

    job_ids: List[str] = field(default_factory=list)
    removed_dir: Optional[Path] = None

    @property
    def deregistered(self) -> int:
        return len(self.job_ids)


class TeardownError(Exception):
    """Raised when teardown stops before finishing."""

    def __init__(self, message: str, deregistered: int = 0, job_id: Optional[str] = None,
                 cause: Optional[Exception] = None):
        self.deregistered = deregistered
        self.job_id = job_id
        self.cause = cause
        super().__init__(message)


def remove_working_dir(path: Path) -> None:
    """Recursively remove ``path``. A missing directory counts as removed.

    Raises:
        TeardownError: If the directory exists but cannot be removed.
    """
    path = Path(path)
    if not path.exists() and not path.is_symlink():
        return
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError as e:
        raise TeardownError(f"failed cleaning up working dir {path}: {e}", cause=e) from e


def teardown(client, working_dir: Path) -> TeardownResult:
    """Deregister all jobs, then remove ``working_dir``.

    Args:
        client: Object with ``list_jobs()`` and ``deregister(job_id)``.
        working_dir: Directory holding the generated manifest.

    Raises:
        TeardownError: On listing, deregistration or removal failure.
    """
    try:
        jobs = client.list_jobs()
    except OrchestratorError as exc:
        raise TeardownError(f"failed listing jobs: {exc}", cause=exc) from exc

    _log(f"[teardown] Deregistering {len(jobs)} jobs")
    result = TeardownResult()
    for job in jobs:
        try:
            client.deregister(job.id)
        except OrchestratorError as exc:
            raise TeardownError(
                f"failed deregistering job {job.id} "
                f"({result.deregistered}/{len(jobs)} deregistered before failure): {exc}",
                deregistered=result.deregistered,
                job_id=job.id,
                cause=exc,
            ) from exc
        result.job_ids.append(job.id)

    remove_working_dir(working_dir)
    result.removed_dir = Path(working_dir)
    _log(f"[teardown] Deregistered {result.deregistered} jobs, removed {working_dir}")
    return result
