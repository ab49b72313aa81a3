import io
import logging

import pytest

from chatsearch.observability import MetricsRecorder


def _capture_logger_output(logger_name: str):
    logger = logging.getLogger(logger_name)
    buffer = io.StringIO()
    handler = logging.StreamHandler(buffer)
    handler.setLevel(logging.INFO)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger, handler, buffer


def test_metrics_recorder_logs_when_enabled() -> None:
    metrics = MetricsRecorder(enabled=True, namespace="chatsearch.test")
    logger, handler, buffer = _capture_logger_output("chatsearch.metrics")

    try:
        metrics.increment("search.requests", kind="chats")
        metrics.record_timing("search.duration", 0.05, kind="chats")
    finally:
        logger.removeHandler(handler)

    output = buffer.getvalue()
    assert "chatsearch.test.search.requests value=1 kind=chats" in output
    assert "chatsearch.test.search.duration duration_ms=50 kind=chats" in output


def test_metrics_recorder_disabled_suppresses_logs() -> None:
    metrics = MetricsRecorder(enabled=False)
    logger, handler, buffer = _capture_logger_output("chatsearch.metrics")

    try:
        metrics.increment("search.requests", kind="messages")
        metrics.record_timing("search.duration", 0.1, kind="messages")
    finally:
        logger.removeHandler(handler)

    assert buffer.getvalue() == ""


def test_prometheus_export_renders_counters_and_histograms() -> None:
    metrics = MetricsRecorder(enabled=True, prometheus_enabled=True)

    metrics.increment("search.requests", kind="chats")
    metrics.increment("search.requests", kind="chats", value=2)
    metrics.record_timing("search.duration", 0.2, kind="chats")

    body = metrics.render_prometheus().decode("utf-8")
    assert metrics.prometheus_enabled is True
    assert 'chatsearch_search_requests_total{kind="chats"} 3.0' in body
    assert 'chatsearch_search_duration_count{kind="chats"} 1.0' in body


def test_prometheus_export_disabled_by_default() -> None:
    metrics = MetricsRecorder()

    assert metrics.prometheus_enabled is False
    with pytest.raises(RuntimeError):
        metrics.render_prometheus()
