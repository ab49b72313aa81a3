"""Metrics helpers that log every sample and optionally mirror it to Prometheus."""

from __future__ import annotations

import logging
import re
from typing import Any

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

_PROM_NAME_RE = re.compile(r"[^a-zA-Z0-9_]")

# (metric, label names) -> prometheus collector
_CollectorKey = tuple[str, tuple[str, ...]]


class MetricsRecorder:
    """Emit counters and timings as log lines, plus Prometheus when enabled."""

    def __init__(
        self,
        *,
        enabled: bool = True,
        namespace: str = "chatsearch",
        logger: logging.Logger | None = None,
        prometheus_enabled: bool = False,
        registry: CollectorRegistry | None = None,
    ) -> None:
        self._enabled = enabled
        self._namespace = namespace.strip() or "chatsearch"
        self._logger = logger or logging.getLogger("chatsearch.metrics")
        if prometheus_enabled and registry is None:
            registry = CollectorRegistry()
        self._registry = registry if prometheus_enabled else None
        self._counters: dict[_CollectorKey, Counter] = {}
        self._histograms: dict[_CollectorKey, Histogram] = {}

    @property
    def prometheus_enabled(self) -> bool:
        return self._registry is not None

    @property
    def prometheus_content_type(self) -> str:
        return CONTENT_TYPE_LATEST

    def render_prometheus(self) -> bytes:
        if self._registry is None:
            raise RuntimeError("Prometheus export is disabled")
        return generate_latest(self._registry)

    def increment(self, metric: str, *, value: int = 1, **tags: Any) -> None:
        """Increment a counter metric."""

        if not self._enabled:
            return
        value = int(value)
        clean_tags = _clean(tags)
        self._emit(metric, fields={"value": value}, tags=clean_tags)
        if self._registry is not None:
            counter = self._collector(self._counters, Counter, metric, "counter", clean_tags)
            counter.labels(**self._label_values(clean_tags)).inc(float(max(value, 0)))

    def record_timing(self, metric: str, duration_seconds: float, **tags: Any) -> None:
        """Emit a timing metric; logs carry milliseconds, Prometheus seconds."""

        if not self._enabled:
            return
        duration_seconds = max(duration_seconds, 0.0)
        clean_tags = _clean(tags)
        self._emit(metric, fields={"duration_ms": round(duration_seconds * 1000.0, 4)}, tags=clean_tags)
        if self._registry is not None:
            histogram = self._collector(self._histograms, Histogram, metric, "duration", clean_tags)
            histogram.labels(**self._label_values(clean_tags)).observe(duration_seconds)

    def _emit(self, metric: str, *, fields: dict[str, Any], tags: dict[str, Any]) -> None:
        segments = [f"{key}={_stringify(value)}" for key, value in sorted(fields.items())]
        segments.extend(f"{key}={_stringify(value)}" for key, value in sorted(tags.items()))
        message = f"{self._namespace}.{metric}"
        if segments:
            message = f"{message} {' '.join(segments)}"
        self._logger.info(message)

    def _collector(self, cache: dict, factory, metric: str, kind: str, tags: dict[str, Any]):
        label_names = tuple(_sanitize_label(name) for name in sorted(tags))
        key = (metric, label_names)
        collector = cache.get(key)
        if collector is None:
            collector = factory(
                self._prom_metric_name(metric),
                f"{metric} {kind}",
                labelnames=list(label_names),
                registry=self._registry,
            )
            cache[key] = collector
        return collector

    @staticmethod
    def _label_values(tags: dict[str, Any]) -> dict[str, str]:
        return {_sanitize_label(key): _stringify(value) for key, value in tags.items()}

    def _prom_metric_name(self, metric: str) -> str:
        cleaned = _PROM_NAME_RE.sub("_", metric)
        return f"{_PROM_NAME_RE.sub('_', self._namespace)}_{cleaned}".strip("_")


def _clean(tags: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in tags.items() if value is not None}


def _sanitize_label(label: str) -> str:
    return _PROM_NAME_RE.sub("_", label) or "label"


def _stringify(value: Any) -> str:
    if isinstance(value, float):
        return f"{int(value)}" if value.is_integer() else f"{value:.4f}"
    return str(value)
