"""Submit, callback and status handlers for tracked generation jobs."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from jsonschema import Draft7Validator
from jsonschema.exceptions import ValidationError as JSONSchemaValidationError

from config import CALLBACK_PATH_TEMPLATE, MAX_ID_ATTEMPTS
from observability.logger import get_logger, log_job_event
from observability.metrics import get_registry

from .callbacks import parse_callback
from .dispatcher import Dispatcher
from .errors import DuplicateJobError, InvalidWorkflowError, UnknownJobError
from .ids import new_job_id
from .models import JobRecord
from .routing import WorkflowRouter, normalize_workflow
from .store import JobStore

LOGGER = get_logger("cinegen.jobs.service")
REGISTRY = get_registry()
COMPLETED = REGISTRY.counter("jobs.completed_total")
FAILED = REGISTRY.counter("jobs.failed_total", source="callback")

GENERATE_REQUEST_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "workflow": {"type": "string", "minLength": 1},
    },
    "required": ["workflow"],
}
_REQUEST_VALIDATOR = Draft7Validator(GENERATE_REQUEST_SCHEMA)

# Outcomes of a processor callback.
CALLBACK_APPLIED = "applied"
CALLBACK_IGNORED = "ignored"
CALLBACK_UNKNOWN = "unknown"


def build_callback_url(base_url: str, job_id: str) -> str:
    return base_url.rstrip("/") + CALLBACK_PATH_TEMPLATE.format(job_id=job_id)


class JobService:
    """Mediates between submitters, the job table and the workflow processor."""

    def __init__(
        self,
        store: JobStore,
        router: WorkflowRouter,
        dispatcher: Dispatcher,
        *,
        id_factory: Callable[[], str] = new_job_id,
        max_id_attempts: int = MAX_ID_ATTEMPTS,
    ) -> None:
        self.store = store
        self.router = router
        self.dispatcher = dispatcher
        self._id_factory = id_factory
        self._max_id_attempts = max(1, int(max_id_attempts))

    def submit(
        self,
        payload: Mapping[str, Any],
        *,
        callback_base_url: str,
        trace_id: Optional[str] = None,
    ) -> JobRecord:
        """Register a pending job and hand it to the processor.

        Raises :class:`InvalidWorkflowError` before anything is recorded when
        the payload carries no routable workflow selector.
        """

        try:
            _REQUEST_VALIDATOR.validate(payload)
        except JSONSchemaValidationError as exc:
            workflow = payload.get("workflow") if isinstance(payload, Mapping) else None
            raise InvalidWorkflowError(workflow) from exc
        workflow = normalize_workflow(payload["workflow"])
        endpoint = self.router.resolve(workflow)

        record = self._register(workflow)
        callback_url = build_callback_url(callback_base_url, record.id)
        try:
            self.dispatcher.dispatch(record.id, endpoint, dict(payload), callback_url, trace_id=trace_id)
        except Exception:  # noqa: BLE001
            # The job is already visible to pollers; record the failure on it.
            LOGGER.exception("dispatch_enqueue_failed", extra={"job_id": record.id})
            self.store.set_failed(record.id, self.dispatcher.failure_message)
        REGISTRY.counter("jobs.submitted_total", workflow=workflow).inc()
        log_job_event(
            LOGGER,
            "job_submitted",
            job_id=record.id,
            workflow=workflow,
            model=payload.get("model"),
        )
        return record

    def _register(self, workflow: str) -> JobRecord:
        last_error: Optional[DuplicateJobError] = None
        for _ in range(self._max_id_attempts):
            job_id = self._id_factory()
            try:
                return self.store.create(job_id, workflow=workflow)
            except DuplicateJobError as exc:
                LOGGER.warning("job_id_collision", extra={"job_id": job_id})
                last_error = exc
        assert last_error is not None
        raise last_error

    def complete(self, job_id: str, body: Any) -> str:
        """Apply a processor callback; never raises for unknown or finished jobs."""

        callback = parse_callback(body)
        try:
            if callback.failed:
                applied = self.store.set_failed(job_id, callback.error or "")
            else:
                if callback.malformed:
                    log_job_event(LOGGER, "callback_result_malformed", job_id=job_id, level=logging.WARNING)
                applied = self.store.set_completed(job_id, callback.result, callback.final_prompt)
        except UnknownJobError:
            REGISTRY.counter("callbacks_total", outcome=CALLBACK_UNKNOWN).inc()
            log_job_event(LOGGER, "callback_unknown_job", job_id=job_id, level=logging.WARNING)
            return CALLBACK_UNKNOWN

        if not applied:
            REGISTRY.counter("callbacks_total", outcome=CALLBACK_IGNORED).inc()
            log_job_event(LOGGER, "job_terminal_ignored", job_id=job_id, source="callback")
            return CALLBACK_IGNORED
        REGISTRY.counter("callbacks_total", outcome=CALLBACK_APPLIED).inc()
        if callback.failed:
            FAILED.inc()
            log_job_event(LOGGER, "job_failed", job_id=job_id, level=logging.ERROR, error=callback.error)
        else:
            COMPLETED.inc()
            log_job_event(LOGGER, "job_completed", job_id=job_id, results=len(callback.result))
        return CALLBACK_APPLIED

    def status(self, job_id: str) -> Dict[str, Any]:
        snapshot = self.store.snapshot(job_id)
        if snapshot is None:
            raise UnknownJobError(job_id)
        return snapshot


__all__ = [
    "CALLBACK_APPLIED",
    "CALLBACK_IGNORED",
    "CALLBACK_UNKNOWN",
    "GENERATE_REQUEST_SCHEMA",
    "JobService",
    "build_callback_url",
]
