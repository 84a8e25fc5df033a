"""Job tracking primitives for asynchronous generation."""

from .dispatcher import Dispatcher  # noqa: F401
from .errors import (  # noqa: F401
    DispatchError,
    DuplicateJobError,
    InvalidWorkflowError,
    JobError,
    UnknownJobError,
)
from .models import JobRecord, JobState  # noqa: F401
from .routing import WorkflowRouter  # noqa: F401
from .service import JobService  # noqa: F401
from .store import JobStore  # noqa: F401

__all__ = [
    "Dispatcher",
    "DispatchError",
    "DuplicateJobError",
    "InvalidWorkflowError",
    "JobError",
    "JobRecord",
    "JobService",
    "JobState",
    "JobStore",
    "UnknownJobError",
    "WorkflowRouter",
]
