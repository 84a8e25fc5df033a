"""Flask application exposing the generation job gateway via HTTP."""
from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, abort, current_app, g, jsonify, request, send_from_directory
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from config import (
    CALLBACK_TOO_LARGE_MESSAGE,
    JOB_STORE_TTL_S,
    MAX_REQUEST_BYTES,
    PUBLIC_BASE_URL,
    STATIC_DIR,
)
from jobs import (
    Dispatcher,
    InvalidWorkflowError,
    JobService,
    JobStore,
    UnknownJobError,
    WorkflowRouter,
)
from observability.logger import bind_trace_id, clear_trace_id, current_trace_id, get_logger
from observability.metrics import get_registry

LOGGER = get_logger("cinegen.api")

CALLBACK_ACK = "Callback received."
STATIC_PAGES = {
    "/": "index.html",
    "/image": "image.html",
    "/video": "video.html",
}


class ApiError(Exception):
    """Exception translated into an HTTP error response."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def build_service(*, ttl_seconds: Optional[int] = JOB_STORE_TTL_S) -> JobService:
    store = JobStore(ttl_seconds=ttl_seconds)
    return JobService(store, WorkflowRouter.from_config(), Dispatcher(store))


def create_app(
    service: Optional[JobService] = None,
    *,
    public_base_url: Optional[str] = None,
    static_dir: Optional[str] = None,
) -> Flask:
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = MAX_REQUEST_BYTES
    if hasattr(app, "json"):
        app.json.ensure_ascii = False
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    job_service = service or build_service()
    app.extensions["job_service"] = job_service
    base_url = PUBLIC_BASE_URL if public_base_url is None else public_base_url.rstrip("/")
    static_root = Path(static_dir or STATIC_DIR).resolve()

    if not job_service.router:
        LOGGER.warning("No workflow routes configured; every submission will be rejected")

    @app.before_request
    def _bind_request_trace() -> None:
        trace_id = request.headers.get("X-Trace-Id") or uuid.uuid4().hex
        g.trace_id = trace_id
        bind_trace_id(trace_id)

    @app.after_request
    def _append_trace(response):  # type: ignore[override]
        trace_id = getattr(g, "trace_id", None)
        if trace_id:
            response.headers.setdefault("X-Trace-Id", trace_id)
        return response

    @app.teardown_request
    def _teardown_trace(_exc):  # type: ignore[override]
        clear_trace_id()

    @app.errorhandler(ApiError)
    def _handle_api_error(exc: ApiError):  # type: ignore[override]
        LOGGER.warning("API error", extra={"error_message": exc.message, "code": exc.status_code})
        return jsonify({"message": exc.message}), exc.status_code

    @app.errorhandler(HTTPException)
    def _handle_http_error(exc: HTTPException):  # type: ignore[override]
        return jsonify({"message": exc.description or exc.name}), exc.code or 500

    @app.errorhandler(Exception)
    def _handle_generic_error(exc: Exception):  # type: ignore[override]
        LOGGER.exception("Unhandled error")
        return jsonify({"message": "Internal server error."}), 500

    @app.post("/api/generate")
    def generate():
        payload = _require_json(request)
        try:
            record = _service().submit(
                payload,
                callback_base_url=base_url or request.host_url,
                trace_id=current_trace_id(),
            )
        except InvalidWorkflowError as exc:
            raise ApiError(str(exc), 400) from exc
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Error in /api/generate")
            raise ApiError("Failed to start generation job.", 500) from exc
        return jsonify({"jobId": record.id}), 202

    @app.post("/api/callback/<job_id>")
    @app.post("/api/n8n-callback/<job_id>")
    def job_callback(job_id: str):
        LOGGER.info("callback_received", extra={"job_id": job_id})
        try:
            body = request.get_json(force=True, silent=True)
        except RequestEntityTooLarge:
            LOGGER.warning("callback_too_large", extra={"job_id": job_id, "bytes": request.content_length})
            body = {"error": CALLBACK_TOO_LARGE_MESSAGE}
        _service().complete(job_id, body)
        return CALLBACK_ACK, 200, {"Content-Type": "text/plain; charset=utf-8"}

    @app.get("/api/status/<job_id>")
    def job_status(job_id: str):
        try:
            snapshot = _service().status(job_id)
        except UnknownJobError:
            return jsonify({"message": "Job not found."}), 404
        return jsonify(snapshot)

    @app.get("/api/health")
    def health():
        job_service_ = _service()
        status: Dict[str, Any] = {
            "status": "ok",
            "jobs": len(job_service_.store),
            "workflows": job_service_.router.workflows(),
            "ttlSeconds": job_service_.store.ttl_seconds,
            "submitted": get_registry().total("jobs.submitted_total"),
            "metrics": get_registry().snapshot(),
        }
        return jsonify(status)

    def serve_page():
        filename = STATIC_PAGES.get(request.path)
        if not filename or not (static_root / filename).is_file():
            abort(404)
        return send_from_directory(static_root, filename)

    for rule in STATIC_PAGES:
        app.add_url_rule(rule, endpoint=f"page_{rule.strip('/') or 'index'}", view_func=serve_page)

    return app


def _service() -> JobService:
    return current_app.extensions["job_service"]


def _require_json(req) -> Dict[str, Any]:
    data = req.get_json(force=True, silent=True)
    if data is None:
        raise ApiError("Request body must be valid JSON.")
    if not isinstance(data, dict):
        raise ApiError("Request body must be a JSON object.")
    return data


__all__ = ["ApiError", "CALLBACK_ACK", "build_service", "create_app"]
