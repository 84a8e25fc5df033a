import json
import logging

import pytest

from observability.logger import (
    JsonFormatter,
    TraceIdFilter,
    bind_trace_id,
    build_logging_config,
    clear_trace_id,
    current_trace_id,
    log_job_event,
)
from observability.metrics import MetricsRegistry, render_series


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("cinegen.test", logging.INFO, __file__, 1, "job_completed", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


def test_json_formatter_includes_extra_and_trace():
    bind_trace_id("trace-7")
    try:
        assert current_trace_id() == "trace-7"
        line = JsonFormatter().format(_record(job_id="job-1", job_results=2, job_error=None))
    finally:
        clear_trace_id()

    payload = json.loads(line)
    assert payload["event"] == "job_completed"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "cinegen.test"
    assert payload["trace_id"] == "trace-7"
    assert payload["job_id"] == "job-1"
    assert payload["job_results"] == 2
    assert "job_error" not in payload
    assert "lineno" not in payload
    assert current_trace_id() is None


def test_trace_filter_fills_placeholder_without_bound_trace():
    record = _record()
    assert TraceIdFilter().filter(record) is True
    assert record.trace_id == "-"
    assert "trace_id" not in json.loads(JsonFormatter().format(record))


def test_log_job_event_flattens_details():
    logger = logging.getLogger("cinegen.test.events")
    handler = _ListHandler()
    logger.addHandler(handler)
    try:
        log_job_event(logger, "job_failed", job_id="job-9", level=logging.WARNING, source="callback")
    finally:
        logger.removeHandler(handler)

    (record,) = handler.records
    assert record.getMessage() == "job_failed"
    assert record.levelno == logging.WARNING
    assert record.job_id == "job-9"
    assert record.job_source == "callback"


@pytest.mark.parametrize("fmt,expected", [("json", "json"), ("text", "text"), ("yaml", "json")])
def test_logging_config_selects_formatter(fmt, expected):
    settings = build_logging_config(fmt, "DEBUG")
    assert settings["handlers"]["console"]["formatter"] == expected
    assert settings["handlers"]["console"]["filters"] == ["trace"]
    assert settings["root"]["level"] == "DEBUG"


def test_metrics_registry_counts_labelled_series():
    registry = MetricsRegistry()
    image = registry.counter("jobs.submitted_total", workflow="IMAGE")
    image.inc()
    image.inc(2)
    image.inc(-5)
    registry.counter("jobs.submitted_total", workflow="VIDEO").inc()
    registry.gauge("dispatch.queue_length").set(3)

    assert registry.counter("jobs.submitted_total", workflow="IMAGE") is image
    assert registry.snapshot() == {
        'jobs.submitted_total{workflow="IMAGE"}': 3.0,
        'jobs.submitted_total{workflow="VIDEO"}': 1.0,
        "dispatch.queue_length": 3.0,
    }
    assert registry.total("jobs.submitted_total") == 4.0
    assert registry.total("jobs.completed_total") == 0


def test_render_series_sorts_labels():
    assert render_series("callbacks_total", ()) == "callbacks_total"
    assert render_series("x", (("a", "1"), ("b", "2"))) == 'x{a="1",b="2"}'


def test_metric_name_bound_to_one_type():
    registry = MetricsRegistry()
    registry.counter("jobs.failed_total", source="dispatch")
    with pytest.raises(TypeError):
        registry.gauge("jobs.failed_total")
