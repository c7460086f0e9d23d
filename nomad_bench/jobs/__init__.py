"""Job model, manifest handling, submission and teardown."""

from .models import Job, JobType, Resources, RestartMode, RestartPolicy, Task, TaskGroup
from .jobspec import JobSpecError, parse_file, render_manifest, write_manifest
from .transcode import TranscodeError, to_api_job
from .submitter import SubmissionError, SubmissionResult, submit_jobs
from .teardown import TeardownError, TeardownResult, teardown

__all__ = [
    "Job",
    "JobType",
    "Resources",
    "RestartMode",
    "RestartPolicy",
    "Task",
    "TaskGroup",
    "JobSpecError",
    "parse_file",
    "render_manifest",
    "write_manifest",
    "TranscodeError",
    "to_api_job",
    "SubmissionError",
    "SubmissionResult",
    "submit_jobs",
    "TeardownError",
    "TeardownResult",
    "teardown",
]
