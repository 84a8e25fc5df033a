"""Error taxonomy for the job-tracking core."""
from __future__ import annotations


class JobError(Exception):
    """Base class for job lifecycle errors."""


class InvalidWorkflowError(JobError):
    """The requested workflow selector has no processor endpoint."""

    def __init__(self, workflow: object) -> None:
        self.workflow = workflow
        label = str(workflow).strip() if workflow not in (None, "") else "<missing>"
        super().__init__(f"Unknown workflow: {label}")


class DuplicateJobError(JobError):
    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job {job_id} already exists")


class UnknownJobError(JobError, KeyError):
    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")

    def __str__(self) -> str:  # KeyError quotes its argument otherwise
        return str(self.args[0]) if self.args else ""


class DispatchError(JobError):
    """Outbound hand-off to the workflow processor failed."""

    def __init__(self, job_id: str, reason: str) -> None:
        self.job_id = job_id
        self.reason = reason
        super().__init__(f"Dispatch of job {job_id} failed: {reason}")


__all__ = [
    "JobError",
    "InvalidWorkflowError",
    "DuplicateJobError",
    "UnknownJobError",
    "DispatchError",
]
