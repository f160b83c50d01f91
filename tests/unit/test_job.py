"""
Unit tests for run accounting: counters, outcome application and summaries.
"""

import threading

import pytest

from mpimport.core.job import human_bytes, human_duration
from mpimport.core.models import DispatchOutcome


def outcome(**values) -> DispatchOutcome:
    defaults = {"batch_index": 0, "record_count": 10, "status": "success", "status_code": 200}
    defaults.update(values)
    return DispatchOutcome(**defaults)


class TestCounters:
    """Tests for JobState counters"""

    def test_initial_state(self, make_job):
        job = make_job()
        assert job.records_processed == 0
        assert job.success == 0
        assert job.was_stream is None

    def test_unknown_counter(self, make_job):
        with pytest.raises(ValueError, match="Unknown counter"):
            make_job().increment("bogus")

    def test_negative_increment(self, make_job):
        with pytest.raises(ValueError):
            make_job().increment("success", -1)

    def test_concurrent_increments(self, make_job):
        job = make_job()

        def work():
            for _ in range(1000):
                job.increment("success")

        threads = [threading.Thread(target=work) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert job.success == 8000


class TestApplyOutcome:
    """Tests for JobState.apply_outcome"""

    def test_event_success(self, make_job):
        job = make_job()
        job.apply_outcome(outcome(response={"num_records_imported": 10, "status": "OK"}))
        assert (job.success, job.failed, job.requests, job.retries) == (10, 0, 1, 0)
        assert job.responses == [{"num_records_imported": 10, "status": "OK"}]

    def test_event_partial_import(self, make_job):
        job = make_job()
        body = {"num_records_imported": 7, "failed_records": [{"index": i} for i in range(3)]}
        job.apply_outcome(outcome(status="rejected", status_code=400, response=body))
        assert (job.success, job.failed) == (7, 3)
        assert job.errors == [body]

    def test_retry_exhausted_counts_failed_once(self, make_job):
        job = make_job()
        job.apply_outcome(
            outcome(
                status="retry_exhausted",
                status_code=429,
                attempts=11,
                retry_reasons=["rate_limited"] * 10,
                response={"error": "rate limited"},
            )
        )
        assert (job.success, job.failed) == (0, 10)
        assert job.retries == 10
        assert job.rate_limited == 10
        assert job.requests == 11

    def test_retry_reasons_are_split(self, make_job):
        job = make_job()
        job.apply_outcome(
            outcome(attempts=4, retry_reasons=["rate_limited", "server_error", "client_error"])
        )
        assert (job.rate_limited, job.server_errors, job.client_errors) == (1, 1, 1)

    def test_network_failure_without_body(self, make_job):
        job = make_job()
        job.apply_outcome(outcome(status="retry_exhausted", status_code=None, error="reset"))
        assert job.failed == 10
        assert job.errors == [{"status_code": None, "error": "reset"}]

    def test_profile_error_body(self, make_job):
        job = make_job({"token": "tok"}, record_type="user")
        job.apply_outcome(outcome(response={"error": "bad $set", "status": 0}))
        assert (job.success, job.failed) == (0, 10)

    def test_profile_success(self, make_job):
        job = make_job({"token": "tok"}, record_type="group")
        job.apply_outcome(outcome(response={"error": None, "status": 1}))
        assert (job.success, job.failed) == (10, 0)

    def test_abridged_skips_success_responses(self, make_job):
        job = make_job(abridged=True)
        job.apply_outcome(outcome(response={"num_records_imported": 10}))
        assert job.responses == []


class TestSummary:
    """Tests for JobState.summary"""

    def test_summary_fields(self, make_job):
        job = make_job(workers=4)
        job.increment("records_processed", 12)
        job.increment("empty", 2)
        job.increment("bytes_processed", 2_500_000)
        job.record_batch(6)
        job.record_batch(4)
        job.apply_outcome(outcome(record_count=10, response={"num_records_imported": 10}))
        job.finish()
        summary = job.summary()

        assert summary.record_type == "event"
        assert summary.total == 12
        assert summary.success == 10
        assert summary.accounted == 12
        assert summary.batches == 2
        assert summary.avg_batch_length == 5.0
        assert summary.workers == 4
        assert summary.bytes_human == "2.50 MB"
        assert summary.duration > 0
        assert summary.eps > 0
        assert summary.percent_quota > 0
        assert summary.start_time <= summary.end_time

    def test_instant_run_keeps_positive_duration(self, make_job):
        job = make_job()
        job.finish()
        summary = job.summary()
        assert summary.duration > 0
        assert summary.duration_human

    def test_finish_is_idempotent(self, make_job):
        job = make_job()
        job.finish()
        first = job.end_time
        job.finish()
        assert job.end_time == first

    def test_partial_summary_before_finish(self, make_job):
        job = make_job()
        job.increment("records_processed", 3)
        assert job.summary().total == 3
        assert job.end_time is None

    def test_dry_run_results(self, make_job, events):
        job = make_job()
        job.add_dry_run_results(events(2))
        assert job.summary().dry_run == events(2)


class TestHumanFormatting:
    """Tests for human-readable formatting helpers"""

    @pytest.mark.parametrize(
        "seconds,expected",
        [(3.4, "3.40s"), (65, "1m 5.00s"), (3723.4, "1h 2m 3.40s"), (3600, "1h 0m 0.00s")],
    )
    def test_human_duration(self, seconds, expected):
        assert human_duration(seconds) == expected

    @pytest.mark.parametrize(
        "num,expected",
        [(512, "512 B"), (2_500, "2.50 KB"), (2_500_000, "2.50 MB"), (3_000_000_000, "3.00 GB")],
    )
    def test_human_bytes(self, num, expected):
        assert human_bytes(num) == expected
