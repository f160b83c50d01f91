"""
Run-scoped accounting state.

A JobState is created once per run and passed by reference to every
pipeline stage. The transform chain and batcher update it from the
producer thread; dispatch outcomes are applied from worker threads.
Every mutation goes through a lock-protected increment or append.
"""

import threading
import time
from datetime import datetime, timezone
from typing import Any

from mpimport.core.constants import QUOTA_EVENTS_PER_MINUTE
from mpimport.core.models import Credentials, DispatchOutcome, ImportOptions, JobSummary
from mpimport.observability.logger import get_logger
from mpimport.observability.metrics import MetricsCollector

logger = get_logger(__name__)

COUNTERS = (
    "records_processed",
    "success",
    "failed",
    "empty",
    "retries",
    "requests",
    "batches",
    "rate_limited",
    "server_errors",
    "client_errors",
    "bytes_processed",
    "out_of_bounds",
    "duplicates",
    "whitelist_skipped",
    "blacklist_skipped",
    "unparsable",
)

_REASON_COUNTERS = {
    "rate_limited": "rate_limited",
    "server_error": "server_errors",
    "client_error": "client_errors",
}


class JobState:
    """
    Mutable state of one import run.

    Never reused across runs: build a new JobState per call.
    """

    def __init__(self, credentials: Credentials, options: ImportOptions):
        """
        Initialize run state.

        Args:
            credentials: Resolved credentials
            options: Validated options
        """
        self.credentials = credentials
        self.options = options
        self.metrics = MetricsCollector(options.record_type)

        self._lock = threading.Lock()
        for name in COUNTERS:
            setattr(self, name, 0)

        self.batch_lengths: list[int] = []
        self.responses: list[Any] = []
        self.errors: list[Any] = []
        self.dry_run_results: list[Any] = []
        self.was_stream: bool | None = None

        self.start_time = datetime.now(timezone.utc)
        self.end_time: datetime | None = None
        self._started = time.perf_counter()
        self._ended: float | None = None

    @property
    def record_type(self) -> str:
        return self.options.record_type

    def increment(self, counter: str, amount: int = 1) -> None:
        """
        Atomically add to a counter.

        Args:
            counter: One of COUNTERS
            amount: Non-negative amount to add

        Raises:
            ValueError: If the counter is unknown or the amount negative
        """
        if counter not in COUNTERS:
            raise ValueError(f"Unknown counter: {counter}")
        if amount < 0:
            raise ValueError("Counters only increase")
        with self._lock:
            setattr(self, counter, getattr(self, counter) + amount)

    def record_batch(self, record_count: int) -> None:
        """Count a batch emitted by the batcher."""
        with self._lock:
            self.batches += 1
            self.batch_lengths.append(record_count)

    def add_dry_run_results(self, records: list[Any]) -> None:
        with self._lock:
            self.dry_run_results.extend(records)

    def apply_outcome(self, outcome: DispatchOutcome) -> None:
        """
        Apply one dispatch outcome to the counters.

        Events use num_records_imported from the response body; anything
        not imported counts as failed. Profiles succeed or fail as a whole
        based on the error/status fields. A failed batch without parsable
        counts is counted failed in full, exactly once.

        Args:
            outcome: Result of dispatching one batch
        """
        succeeded, failed = self._split_counts(outcome)

        with self._lock:
            self.requests += outcome.attempts
            self.retries += outcome.retries
            for reason in outcome.retry_reasons:
                name = _REASON_COUNTERS[reason]
                setattr(self, name, getattr(self, name) + 1)

            self.success += succeeded
            self.failed += failed

            if outcome.succeeded and failed == 0:
                if not self.options.abridged:
                    self.responses.append(outcome.response)
            else:
                self.errors.append(
                    outcome.response
                    if outcome.response is not None
                    else {"status_code": outcome.status_code, "error": outcome.error}
                )

        for reason in outcome.retry_reasons:
            self.metrics.record_retry(reason)

        if failed:
            logger.debug(
                f"Batch {outcome.batch_index}: {succeeded} imported, {failed} failed",
                extra={"status": outcome.status, "status_code": outcome.status_code},
            )

    def _split_counts(self, outcome: DispatchOutcome) -> tuple[int, int]:
        """Return (succeeded, failed) record counts for an outcome."""
        count = outcome.record_count
        body = outcome.response if isinstance(outcome.response, dict) else {}

        if self.record_type == "event":
            imported = body.get("num_records_imported")
            if isinstance(imported, int) and 0 <= imported <= count:
                return imported, count - imported
            return (count, 0) if outcome.succeeded else (0, count)

        if self.record_type in ("user", "group") and outcome.succeeded:
            if body.get("error") and not body.get("status"):
                return 0, count
            return count, 0

        return (count, 0) if outcome.succeeded else (0, count)

    def finish(self) -> None:
        """Stamp the end of the run. Idempotent."""
        if self._ended is None:
            self._ended = time.perf_counter()
            self.end_time = datetime.now(timezone.utc)

    def summary(self) -> JobSummary:
        """
        Build an immutable snapshot of the run.

        Callable before finish() for a best-effort partial summary.

        Returns:
            JobSummary with derived throughput metrics
        """
        ended = self._ended if self._ended is not None else time.perf_counter()
        end_time = self.end_time or datetime.now(timezone.utc)
        duration = max(ended - self._started, 1e-9)

        with self._lock:
            counters = {name: getattr(self, name) for name in COUNTERS}
            batch_lengths = list(self.batch_lengths)
            errors = list(self.errors)
            responses = list(self.responses)
            dry_run = list(self.dry_run_results)

        total = counters["records_processed"]
        avg_batch = sum(batch_lengths) / len(batch_lengths) if batch_lengths else 0.0
        per_minute = total / (duration / 60)

        return JobSummary(
            record_type=self.record_type,
            total=total,
            success=counters["success"],
            failed=counters["failed"],
            empty=counters["empty"],
            out_of_bounds=counters["out_of_bounds"],
            duplicates=counters["duplicates"],
            whitelist_skipped=counters["whitelist_skipped"],
            blacklist_skipped=counters["blacklist_skipped"],
            unparsable=counters["unparsable"],
            start_time=self.start_time.isoformat(),
            end_time=end_time.isoformat(),
            duration=duration,
            duration_human=human_duration(duration),
            bytes=counters["bytes_processed"],
            bytes_human=human_bytes(counters["bytes_processed"]),
            requests=counters["requests"],
            batches=counters["batches"],
            retries=counters["retries"],
            rate_limited=counters["rate_limited"],
            server_errors=counters["server_errors"],
            client_errors=counters["client_errors"],
            workers=self.options.workers,
            was_stream=self.was_stream,
            avg_batch_length=round(avg_batch, 2),
            eps=round(total / duration, 2),
            rps=round(counters["requests"] / duration, 2),
            mbps=round(counters["bytes_processed"] / 1_000_000 / duration, 4),
            percent_quota=round(per_minute / QUOTA_EVENTS_PER_MINUTE * 100, 4),
            errors=errors,
            responses=responses,
            dry_run=dry_run,
        )


def human_duration(seconds: float) -> str:
    """
    Format a duration as e.g. "1h 2m 3.40s".

    >>> human_duration(3723.4)
    '1h 2m 3.40s'
    """
    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(int(minutes), 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if hours or minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{secs:.2f}s")
    return " ".join(parts)


def human_bytes(num: int) -> str:
    """
    Format a byte count with decimal units.

    >>> human_bytes(2_500_000)
    '2.50 MB'
    """
    value = float(num)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1000:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.2f} {unit}"
        value /= 1000
    return f"{value:.2f} TB"
