"""Workflow selector to processor endpoint routing table."""
from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional

from .errors import InvalidWorkflowError


def normalize_workflow(value: object) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip().upper()


class WorkflowRouter:
    """Resolve workflow selectors into processor webhook URLs.

    Explicit ``routes`` take precedence; every selector listed in
    ``workflows`` without its own route falls back to ``default_endpoint``
    (the shared n8n router webhook).
    """

    def __init__(
        self,
        routes: Optional[Mapping[str, str]] = None,
        *,
        default_endpoint: str = "",
        workflows: Iterable[str] = (),
    ) -> None:
        table: Dict[str, str] = {}
        fallback = (default_endpoint or "").strip()
        if fallback:
            for name in workflows:
                key = normalize_workflow(name)
                if key:
                    table[key] = fallback
        for name, endpoint in (routes or {}).items():
            key = normalize_workflow(name)
            url = str(endpoint or "").strip()
            if key and url:
                table[key] = url
        self._routes = table

    @classmethod
    def from_config(cls) -> "WorkflowRouter":
        from config import N8N_ROUTER_WEBHOOK, WORKFLOW_ROUTES, WORKFLOWS

        return cls(WORKFLOW_ROUTES, default_endpoint=N8N_ROUTER_WEBHOOK, workflows=WORKFLOWS)

    def resolve(self, workflow: object) -> str:
        endpoint = self._routes.get(normalize_workflow(workflow))
        if not endpoint:
            raise InvalidWorkflowError(workflow)
        return endpoint

    def workflows(self) -> List[str]:
        return sorted(self._routes)

    def __bool__(self) -> bool:
        return bool(self._routes)


__all__ = ["WorkflowRouter", "normalize_workflow"]
