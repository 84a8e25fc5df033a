"""In-process counters and gauges for the job gateway.

Series are identified by a metric name plus optional labels and rendered
Prometheus-style, e.g. ``jobs.submitted_total{workflow="IMAGE"}``.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, Tuple

LabelSet = Tuple[Tuple[str, str], ...]


def _label_set(labels: Dict[str, object]) -> LabelSet:
    return tuple(sorted((str(key), str(value)) for key, value in labels.items() if value is not None))


def render_series(name: str, labels: LabelSet) -> str:
    if not labels:
        return name
    rendered = ",".join(f'{key}="{value}"' for key, value in labels)
    return f"{name}{{{rendered}}}"


@dataclass
class _Series:
    name: str
    labels: LabelSet = ()
    _value: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock)

    @property
    def key(self) -> str:
        return render_series(self.name, self.labels)

    def value(self) -> float:
        with self._lock:
            return float(self._value)


class Counter(_Series):
    def inc(self, amount: float = 1.0) -> None:
        if amount <= 0:
            return
        with self._lock:
            self._value += amount


class Gauge(_Series):
    def set(self, value: float) -> None:
        with self._lock:
            self._value = float(value)


class MetricsRegistry:
    """Thread-safe series registry; a metric name is bound to one kind."""

    def __init__(self) -> None:
        self._series: Dict[Tuple[str, LabelSet], _Series] = {}
        self._kinds: Dict[str, type] = {}
        self._lock = threading.Lock()

    def _series_for(self, kind: type, name: str, labels: Dict[str, object]) -> _Series:
        label_set = _label_set(labels)
        with self._lock:
            bound = self._kinds.setdefault(name, kind)
            if bound is not kind:
                raise TypeError(f"metric {name!r} is already registered as {bound.__name__}")
            series = self._series.get((name, label_set))
            if series is None:
                series = kind(name=name, labels=label_set)
                self._series[(name, label_set)] = series
            return series

    def counter(self, name: str, **labels: object) -> Counter:
        return self._series_for(Counter, name, labels)  # type: ignore[return-value]

    def gauge(self, name: str, **labels: object) -> Gauge:
        return self._series_for(Gauge, name, labels)  # type: ignore[return-value]

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            series = list(self._series.values())
        return {item.key: item.value() for item in series}

    def total(self, name: str) -> float:
        """Sum of every labelled series sharing ``name``."""

        with self._lock:
            series = [item for (series_name, _), item in self._series.items() if series_name == name]
        return sum(item.value() for item in series)


_DEFAULT_REGISTRY = MetricsRegistry()


def get_registry() -> MetricsRegistry:
    return _DEFAULT_REGISTRY


__all__ = [
    "Counter",
    "Gauge",
    "MetricsRegistry",
    "get_registry",
    "render_series",
]
