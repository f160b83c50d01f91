"""
Unit tests for structured logging and Prometheus metrics.
"""

import json
import logging

import pytest

from mpimport.observability.logger import (
    CustomJsonFormatter,
    get_logger,
    log_operation,
    set_level,
)
from mpimport.observability.metrics import (
    REGISTRY,
    MetricsCollector,
    generate_metrics,
    get_content_type,
)


class TestLogger:
    """Tests for the JSON logger"""

    def test_module_loggers_share_package_handler(self):
        logger = get_logger("mpimport.some.module")
        assert logger.name == "mpimport.some.module"
        assert logging.getLogger("mpimport").handlers

    def test_json_formatter_fields(self):
        formatter = CustomJsonFormatter(fmt="%(timestamp)s %(level)s %(logger)s %(message)s")
        record = logging.LogRecord(
            "mpimport.test", logging.WARNING, __file__, 10, "hello %s", ("world",), None
        )
        payload = json.loads(formatter.format(record))
        assert payload["message"] == "hello world"
        assert payload["level"] == "WARNING"
        assert payload["logger"] == "mpimport.test"
        assert "thread" in payload

    def test_set_level(self):
        root = logging.getLogger("mpimport")
        previous = root.level
        try:
            set_level("debug")
            assert root.level == logging.DEBUG
        finally:
            root.setLevel(previous)
            for handler in root.handlers:
                handler.setLevel(previous)

    def test_log_operation_does_not_swallow(self):
        with pytest.raises(RuntimeError):
            with log_operation("failing step", logger=get_logger("mpimport.test")):
                raise RuntimeError("boom")


class TestMetrics:
    """Tests for the metrics collector"""

    def _value(self, name, **labels):
        return REGISTRY.get_sample_value(name, labels) or 0.0

    def test_batch_and_retry_metrics(self):
        collector = MetricsCollector("group")
        before = self._value("mpimport_batches_total", record_type="group", status="success")
        retries = self._value("mpimport_retries_total", record_type="group", reason="rate_limited")

        collector.record_batch_dispatched(10, 500, "success")
        collector.record_retry("rate_limited")

        assert self._value("mpimport_batches_total", record_type="group", status="success") == before + 1
        assert self._value("mpimport_retries_total", record_type="group", reason="rate_limited") == retries + 1

    def test_inflight_gauge(self):
        collector = MetricsCollector("table")
        collector.set_inflight(3)
        assert self._value("mpimport_inflight_batches", record_type="table") == 3

    def test_request_timer(self):
        collector = MetricsCollector("user")
        before = self._value("mpimport_request_duration_seconds_count", record_type="user")
        with collector.track_request():
            pass
        assert self._value("mpimport_request_duration_seconds_count", record_type="user") == before + 1

    def test_exposition(self):
        MetricsCollector("event").record_retry("server_error")
        assert b"mpimport_retries_total" in generate_metrics()
        assert get_content_type().startswith("text/plain")
