"""Job identifier generation."""
from __future__ import annotations

import uuid


def new_job_id() -> str:
    """Return a random UUID4 string (122 random bits)."""

    return str(uuid.uuid4())


__all__ = ["new_job_id"]
