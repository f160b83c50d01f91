"""
Prometheus metrics collection for mp-import

This module provides metrics instrumentation for monitoring
import throughput, dispatch health and retry behavior.
"""
import os
from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
)
from typing import Optional


# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# PIPELINE METRICS
# =======================

# Records by terminal state
records_total = Counter(
    name="mpimport_records_total",
    documentation="Total number of records by terminal state",
    labelnames=["record_type", "status"],  # status: success, failed, empty, filtered, duplicate
    registry=REGISTRY,
)

# Transformed payload bytes
bytes_processed_total = Counter(
    name="mpimport_bytes_processed_total",
    documentation="UTF-8 bytes of transformed records",
    labelnames=["record_type"],
    registry=REGISTRY,
)

# Run duration
run_duration_seconds = Histogram(
    name="mpimport_run_duration_seconds",
    documentation="Wall-clock duration of import runs in seconds",
    labelnames=["record_type"],
    buckets=[1.0, 5.0, 15.0, 60.0, 300.0, 900.0, 3600.0],
    registry=REGISTRY,
)

# Throughput (records per second)
throughput_records_per_second = Gauge(
    name="mpimport_throughput_records_per_second",
    documentation="Throughput of the last finished run in records per second",
    labelnames=["record_type"],
    registry=REGISTRY,
)

# =======================
# BATCH METRICS
# =======================

# Batch size
batch_size_records = Histogram(
    name="mpimport_batch_size_records",
    documentation="Number of records in each dispatched batch",
    labelnames=["record_type"],
    buckets=[1, 10, 50, 100, 200, 500, 1000, 2000],
    registry=REGISTRY,
)

# Batch payload size
batch_size_bytes = Histogram(
    name="mpimport_batch_size_bytes",
    documentation="Serialized size of each dispatched batch in bytes",
    labelnames=["record_type"],
    buckets=[1_000, 10_000, 100_000, 500_000, 1_000_000, 2_000_000, 10_000_000],
    registry=REGISTRY,
)

# Batches by outcome
batches_total = Counter(
    name="mpimport_batches_total",
    documentation="Total number of batches dispatched by outcome",
    labelnames=["record_type", "status"],  # status: success, retry_exhausted, rejected
    registry=REGISTRY,
)

# In-flight dispatches
inflight_batches = Gauge(
    name="mpimport_inflight_batches",
    documentation="Number of batches currently being dispatched",
    labelnames=["record_type"],
    registry=REGISTRY,
)

# =======================
# HTTP METRICS
# =======================

# Request latency
request_duration_seconds = Histogram(
    name="mpimport_request_duration_seconds",
    documentation="Latency of individual ingestion API requests",
    labelnames=["record_type"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
    registry=REGISTRY,
)

# Retries counter
retries_total = Counter(
    name="mpimport_retries_total",
    documentation="Total number of retried requests",
    labelnames=["record_type", "reason"],  # reason: rate_limited, server_error, client_error
    registry=REGISTRY,
)


# =======================
# EXPOSITION
# =======================

def generate_metrics() -> bytes:
    """Render the registry in the Prometheus text format."""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Serve the registry over HTTP for scraping

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    # Imported here so nothing binds a port unless asked to
    from prometheus_client import start_http_server

    start_http_server(port or int(os.getenv("METRICS_PORT", "8000")), registry=REGISTRY)


# =======================
# RUN COLLECTOR
# =======================

class MetricsCollector:
    """
    Metrics for one import run

    Binds the record_type label once so the dispatcher and the job
    don't repeat label plumbing.
    """

    def __init__(self, record_type: str):
        """
        Args:
            record_type: Value of the record_type label on every metric
        """
        self.record_type = record_type

    def record_batch_dispatched(self, record_count: int, byte_length: int, status: str) -> None:
        """
        Record a finished batch

        Args:
            record_count: Records in the batch
            byte_length: Serialized size of the batch
            status: success, retry_exhausted or rejected
        """
        batches_total.labels(record_type=self.record_type, status=status).inc()
        batch_size_records.labels(record_type=self.record_type).observe(record_count)
        batch_size_bytes.labels(record_type=self.record_type).observe(byte_length)

    def record_retry(self, reason: str) -> None:
        retries_total.labels(record_type=self.record_type, reason=reason).inc()

    def track_request(self):
        """Timer context for one HTTP request."""
        return request_duration_seconds.labels(record_type=self.record_type).time()

    def set_inflight(self, count: int) -> None:
        inflight_batches.labels(record_type=self.record_type).set(count)

    def record_run(self, summary) -> None:
        """
        Record the final counters of a run

        Args:
            summary: JobSummary of the finished run
        """
        by_status = {
            "success": summary.success,
            "failed": summary.failed,
            "empty": summary.empty,
            "duplicate": summary.duplicates,
            "filtered": (
                summary.out_of_bounds + summary.whitelist_skipped + summary.blacklist_skipped
            ),
        }
        for status, count in by_status.items():
            if count > 0:
                records_total.labels(record_type=self.record_type, status=status).inc(count)

        if summary.bytes > 0:
            bytes_processed_total.labels(record_type=self.record_type).inc(summary.bytes)
        run_duration_seconds.labels(record_type=self.record_type).observe(summary.duration)
        throughput_records_per_second.labels(record_type=self.record_type).set(summary.eps)
