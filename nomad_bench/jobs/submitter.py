"""Fan-out job submission.

Registers ``count`` copies of one job, each under its own ID, one after the
other. The first failure stops the batch; jobs already registered stay
registered and are cleaned up by ``teardown``.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..orchestrator import OrchestratorError


def _log(msg: str) -> None:
    """Print with flush so progress shows up while the batch is running."""
    print(msg, flush=True)


def job_id_for(index: int) -> str:
    return f"job-{index}"


@dataclass
class SubmissionResult:
    """Outcome of a completed submission batch."""

    job_ids: List[str] = field(default_factory=list)
    eval_ids: List[str] = field(default_factory=list)

    @property
    def submitted(self) -> int:
        return len(self.job_ids)


class SubmissionError(Exception):
    """Raised when a registration fails part way through a batch."""

    def __init__(self, job_id: str, submitted: int, requested: int, cause: Optional[Exception] = None):
        self.job_id = job_id
        self.submitted = submitted
        self.requested = requested
        self.cause = cause
        super().__init__(
            f"failed registering {job_id} ({submitted}/{requested} registered before failure): {cause}"
        )


def submit_jobs(client, job: Dict[str, Any], count: int, progress_every: int = 100) -> SubmissionResult:
    """Register ``count`` instances of ``job`` as job-0 .. job-(count-1).

    Args:
        client: Object with a ``register(job) -> eval_id`` method.
        job: Job in the API wire representation. Not modified.
        count: Number of instances to register.
        progress_every: Log a progress line every N registrations (0 disables).

    Raises:
        ValueError: If ``count`` is not positive.
        SubmissionError: On the first failed registration.
    """
    if count <= 0:
        raise ValueError(f"count must be positive, got {count}")

    result = SubmissionResult()
    for i in range(count):
        instance = copy.deepcopy(job)
        instance["ID"] = job_id_for(i)
        try:
            eval_id = client.register(instance)
        except OrchestratorError as exc:
            _log(f"[submit] Registration of {instance['ID']} failed after {result.submitted} jobs: {exc}")
            raise SubmissionError(instance["ID"], result.submitted, count, exc) from exc
        result.job_ids.append(instance["ID"])
        result.eval_ids.append(eval_id)
        if progress_every and result.submitted % progress_every == 0:
            _log(f"[submit] Registered {result.submitted}/{count} jobs")

    _log(f"[submit] Registered {result.submitted} jobs")
    return result
