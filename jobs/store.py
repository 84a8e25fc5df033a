"""In-memory job table with optional TTL eviction."""
from __future__ import annotations

import threading
import time
from typing import Dict, List, Optional

from .errors import DuplicateJobError, UnknownJobError
from .models import JobRecord


class JobStore:
    """Thread-safe in-memory storage for job records.

    Every operation runs under one table-wide lock and readers get copies,
    so a record's state, result and error are always observed together.
    A terminal state is final: the first terminal write wins and later ones
    are ignored (the setter returns ``False``).
    """

    def __init__(self, *, ttl_seconds: Optional[int] = None) -> None:
        self._ttl_seconds = int(ttl_seconds) if ttl_seconds and int(ttl_seconds) > 0 else None
        self._jobs: Dict[str, JobRecord] = {}
        self._expiry: Dict[str, float] = {}
        self._lock = threading.RLock()

    @property
    def ttl_seconds(self) -> Optional[int]:
        return self._ttl_seconds

    def create(self, job_id: str, *, workflow: Optional[str] = None) -> JobRecord:
        with self._lock:
            self._purge_expired_locked()
            if job_id in self._jobs:
                raise DuplicateJobError(job_id)
            record = JobRecord(id=job_id, workflow=workflow)
            self._jobs[job_id] = record
            self._touch_locked(job_id)
            return record.copy()

    def get(self, job_id: str) -> Optional[JobRecord]:
        with self._lock:
            self._purge_expired_locked()
            record = self._jobs.get(job_id)
            return record.copy() if record else None

    def set_completed(self, job_id: str, result: List[str], final_prompt: Optional[str] = None) -> bool:
        with self._lock:
            record = self._require_locked(job_id)
            if record.is_terminal:
                return False
            record.mark_completed(result, final_prompt)
            self._touch_locked(job_id)
            return True

    def set_failed(self, job_id: str, error: str) -> bool:
        with self._lock:
            record = self._require_locked(job_id)
            if record.is_terminal:
                return False
            record.mark_failed(error)
            self._touch_locked(job_id)
            return True

    def snapshot(self, job_id: str) -> Optional[dict]:
        record = self.get(job_id)
        return record.to_dict() if record else None

    def _require_locked(self, job_id: str) -> JobRecord:
        self._purge_expired_locked()
        record = self._jobs.get(job_id)
        if record is None:
            raise UnknownJobError(job_id)
        return record

    def _touch_locked(self, job_id: str) -> None:
        if self._ttl_seconds is not None:
            self._expiry[job_id] = time.time() + self._ttl_seconds

    def _purge_expired_locked(self) -> None:
        if self._ttl_seconds is None or not self._expiry:
            return
        now = time.time()
        expired = [job_id for job_id, deadline in self._expiry.items() if deadline <= now]
        for job_id in expired:
            self._jobs.pop(job_id, None)
            self._expiry.pop(job_id, None)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            self._purge_expired_locked()
            return job_id in self._jobs

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired_locked()
            return len(self._jobs)
