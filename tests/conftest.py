import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from jobs import JobStore, WorkflowRouter  # noqa: E402

IMAGE_WEBHOOK = "http://n8n.test/webhook/image"
VIDEO_WEBHOOK = "http://n8n.test/webhook/video"


class RecordingDispatcher:
    """Stands in for the dispatcher and remembers what it was handed."""

    failure_message = "Failed to start job."

    def __init__(self, store: Optional[JobStore] = None):
        self.store = store
        self.calls: List[Dict[str, Any]] = []
        self.seen_states: List[Optional[str]] = []

    def dispatch(self, job_id, endpoint, payload, callback_url, *, trace_id=None):
        if self.store is not None:
            record = self.store.get(job_id)
            self.seen_states.append(record.state.value if record else None)
        self.calls.append(
            {
                "job_id": job_id,
                "endpoint": endpoint,
                "payload": payload,
                "callback_url": callback_url,
                "trace_id": trace_id,
            }
        )

    def stop(self):
        pass


@pytest.fixture
def job_store() -> JobStore:
    return JobStore()


@pytest.fixture
def router() -> WorkflowRouter:
    return WorkflowRouter({"IMAGE": IMAGE_WEBHOOK, "VIDEO": VIDEO_WEBHOOK})


@pytest.fixture
def recording_dispatcher(job_store) -> RecordingDispatcher:
    return RecordingDispatcher(job_store)
