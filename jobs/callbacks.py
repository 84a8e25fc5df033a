"""Normalization of result payloads posted back by the workflow processor."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

# imageUrls is what the n8n workflows send; the others are accepted aliases.
RESULT_FIELDS = ("imageUrls", "videoUrls", "resultUrls")


@dataclass(slots=True)
class CallbackPayload:
    """Parsed callback body: either an error or a normalized result."""

    error: Optional[str] = None
    result: List[str] = field(default_factory=list)
    final_prompt: Optional[str] = None
    malformed: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None


def normalize_result_urls(raw: Any) -> tuple[List[str], bool]:
    """Coerce a result-locator field into a list of strings.

    Returns ``(urls, malformed)``. A JSON array encoded as a string is
    decoded; anything that cannot be decoded degrades to an empty list.
    """

    if raw is None:
        return [], False
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return [], False
        try:
            decoded = json.loads(text)
        except ValueError:
            return [], True
        if isinstance(decoded, str):
            return ([decoded] if decoded.strip() else []), False
        if not isinstance(decoded, list):
            return [], True
        raw = decoded
    if isinstance(raw, (list, tuple)):
        return [str(item) for item in raw if item is not None], False
    return [], True


def parse_callback(body: Any) -> CallbackPayload:
    data: Mapping[str, Any] = body if isinstance(body, Mapping) else {}

    error = data.get("error")
    if error:
        message = error if isinstance(error, str) else json.dumps(error, ensure_ascii=False, default=str)
        return CallbackPayload(error=message)

    raw_result = None
    for name in RESULT_FIELDS:
        if data.get(name) is not None:
            raw_result = data[name]
            break
    result, malformed = normalize_result_urls(raw_result)

    final_prompt = data.get("finalPrompt")
    if final_prompt is not None and not isinstance(final_prompt, str):
        final_prompt = json.dumps(final_prompt, ensure_ascii=False, default=str)
    return CallbackPayload(result=result, final_prompt=final_prompt or None, malformed=malformed)


__all__ = ["CallbackPayload", "RESULT_FIELDS", "normalize_result_urls", "parse_callback"]
