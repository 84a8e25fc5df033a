"""Fire-and-forget hand-off of jobs to the external workflow processor."""
from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from config import DISPATCH_FAILURE_MESSAGE, DISPATCH_TIMEOUT_S, DISPATCH_WORKERS
from observability.logger import bind_trace_id, clear_trace_id, get_logger, log_job_event
from observability.metrics import get_registry

from .errors import DispatchError, UnknownJobError
from .store import JobStore

LOGGER = get_logger("cinegen.jobs.dispatcher")
REGISTRY = get_registry()
QUEUE_GAUGE = REGISTRY.gauge("dispatch.queue_length")
DISPATCH_FAILURES = REGISTRY.counter("jobs.failed_total", source="dispatch")

_SHUTDOWN = "__shutdown__"


@dataclass
class DispatchTask:
    job_id: str
    endpoint: str
    payload: Dict[str, Any]
    callback_url: str
    trace_id: Optional[str] = None

    def body(self) -> Dict[str, Any]:
        return {**self.payload, "jobId": self.job_id, "callbackUrl": self.callback_url}


class Dispatcher:
    """Background workers posting jobs to processor webhooks.

    ``dispatch`` only enqueues, so the submitter's response never waits on
    the network. A transport error or non-2xx answer fails the job with a
    generic message; nothing is raised back to the caller.
    """

    def __init__(
        self,
        store: JobStore,
        *,
        client: Optional[httpx.Client] = None,
        timeout_s: float = DISPATCH_TIMEOUT_S,
        workers: int = DISPATCH_WORKERS,
        failure_message: str = DISPATCH_FAILURE_MESSAGE,
    ) -> None:
        self._store = store
        self._client = client
        self._owns_client = client is None
        self._client_lock = threading.Lock()
        self._timeout_s = timeout_s
        self._worker_count = max(1, int(workers))
        self._failure_message = failure_message
        self._tasks: "queue.Queue[DispatchTask]" = queue.Queue()
        self._threads: List[threading.Thread] = []
        self._start_lock = threading.Lock()
        self._started = False

    @property
    def failure_message(self) -> str:
        return self._failure_message

    def start(self) -> None:
        with self._start_lock:
            if self._started:
                return
            for index in range(self._worker_count):
                thread = threading.Thread(target=self._worker, name=f"dispatch-{index}", daemon=True)
                thread.start()
                self._threads.append(thread)
            self._started = True

    def stop(self, timeout: float = 1.0) -> None:
        with self._start_lock:
            if not self._started:
                return
            for _ in self._threads:
                self._tasks.put(DispatchTask(job_id=_SHUTDOWN, endpoint="", payload={}, callback_url=""))
            for thread in self._threads:
                thread.join(timeout=timeout)
            self._threads.clear()
            self._started = False
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def dispatch(
        self,
        job_id: str,
        endpoint: str,
        payload: Dict[str, Any],
        callback_url: str,
        *,
        trace_id: Optional[str] = None,
    ) -> None:
        self._tasks.put(
            DispatchTask(
                job_id=job_id,
                endpoint=endpoint,
                payload=dict(payload),
                callback_url=callback_url,
                trace_id=trace_id,
            )
        )
        QUEUE_GAUGE.set(float(self._tasks.qsize()))
        self.start()

    def join(self) -> None:
        """Block until every queued dispatch has been attempted."""

        self._tasks.join()

    def _http_client(self) -> httpx.Client:
        with self._client_lock:
            if self._client is None:
                self._client = httpx.Client(timeout=httpx.Timeout(self._timeout_s, connect=min(5.0, self._timeout_s)))
            return self._client

    def _worker(self) -> None:
        while True:
            task = self._tasks.get()
            QUEUE_GAUGE.set(float(self._tasks.qsize()))
            try:
                if task.job_id == _SHUTDOWN:
                    return
                bind_trace_id(task.trace_id)
                try:
                    self._send(task)
                except DispatchError as exc:
                    self._record_failure(task, exc)
                except Exception as exc:  # noqa: BLE001
                    LOGGER.exception("dispatch_crashed", extra={"job_id": task.job_id})
                    self._record_failure(task, DispatchError(task.job_id, str(exc)))
                finally:
                    clear_trace_id()
            finally:
                self._tasks.task_done()

    def _send(self, task: DispatchTask) -> None:
        try:
            response = self._http_client().post(task.endpoint, json=task.body())
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise DispatchError(task.job_id, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise DispatchError(task.job_id, f"{type(exc).__name__}: {exc}") from exc
        log_job_event(LOGGER, "job_dispatched", job_id=task.job_id, status_code=response.status_code)

    def _record_failure(self, task: DispatchTask, exc: DispatchError) -> None:
        DISPATCH_FAILURES.inc()
        log_job_event(
            LOGGER,
            "dispatch_failed",
            job_id=task.job_id,
            level=logging.ERROR,
            endpoint=task.endpoint,
            reason=exc.reason,
        )
        try:
            applied = self._store.set_failed(task.job_id, self._failure_message)
        except UnknownJobError:
            LOGGER.warning("dispatch_failed_job_missing", extra={"job_id": task.job_id})
            return
        if not applied:
            # The processor already answered before the webhook call returned.
            log_job_event(LOGGER, "job_terminal_ignored", job_id=task.job_id, source="dispatch")


__all__ = ["Dispatcher", "DispatchTask"]
