"""Data models describing tracked generation jobs."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from config import DEFAULT_FINAL_PROMPT

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow() -> datetime:
    """Return a timezone-aware UTC datetime."""

    return datetime.now(timezone.utc)


class JobState(str, Enum):
    """Lifecycle states for a tracked job."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobState.PENDING


@dataclass
class JobRecord:
    """One generation request tracked from submission to its terminal outcome."""

    id: str
    state: JobState = JobState.PENDING
    workflow: Optional[str] = None
    result: List[str] = field(default_factory=list)
    final_prompt: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def mark_completed(self, result: List[str], final_prompt: Optional[str] = None) -> None:
        self.state = JobState.COMPLETED
        self.result = list(result)
        self.final_prompt = final_prompt
        self.error = None
        self.finished_at = utcnow()

    def mark_failed(self, error: str) -> None:
        self.state = JobState.FAILED
        self.result = []
        self.final_prompt = None
        self.error = error
        self.finished_at = utcnow()

    def copy(self) -> "JobRecord":
        return replace(self, result=list(self.result))

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "jobId": self.id,
            "status": self.state.value,
            "workflow": self.workflow,
            "createdAt": self.created_at.strftime(ISO_FORMAT),
        }
        if self.state is JobState.COMPLETED:
            payload["result"] = list(self.result)
            payload["finalPrompt"] = self.final_prompt or DEFAULT_FINAL_PROMPT
        elif self.state is JobState.FAILED:
            payload["error"] = self.error
        if self.finished_at is not None:
            payload["finishedAt"] = self.finished_at.strftime(ISO_FORMAT)
        return payload
