"""
Unit tests for the batcher.

Includes property-based testing with hypothesis for the batch bounds.
"""

import json

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from mpimport.batch.batcher import Batcher, batch_byte_length
from mpimport.utils.serialization import json_size, to_json


def sized(records):
    return [(record, json_size(record)) for record in records]


def padded_record(index: int, size: int) -> dict:
    """A record whose compact JSON is exactly `size` bytes (size >= 20)."""
    base = {"i": index, "p": ""}
    padding = size - json_size(base)
    return {"i": index, "p": "x" * padding}


class TestBatchByteLength:
    """Tests for batch_byte_length"""

    def test_empty(self):
        assert batch_byte_length([]) == 2

    def test_matches_serialized_array(self):
        records = [{"a": 1}, {"b": "é"}, [1, 2]]
        sizes = [json_size(r) for r in records]
        assert batch_byte_length(sizes) == len(to_json(records).encode("utf-8"))


class TestBatcher:
    """Tests for Batcher"""

    def test_count_bound(self, make_job, events):
        job = make_job(records_per_batch=3)
        batches = list(Batcher(job).batch_records(events(7)))
        assert [len(b) for b in batches] == [3, 3, 1]
        assert [b.index for b in batches] == [0, 1, 2]
        assert job.batches == 3
        assert job.batch_lengths == [3, 3, 1]

    def test_order_is_preserved(self, make_job, events):
        job = make_job(records_per_batch=4)
        records = events(10)
        batches = list(Batcher(job).batch_records(records))
        assert [r for b in batches for r in b.records] == records

    def test_byte_length_is_exact(self, make_job, events):
        job = make_job(records_per_batch=5)
        for batch in Batcher(job).batch_records(events(12)):
            assert batch.byte_length == len(to_json(batch.records).encode("utf-8"))

    def test_byte_bound_splits_greedily(self, make_job):
        # 10 records of 100 bytes; bound 500 bytes, split threshold 475
        job = make_job(bytes_per_batch=500)
        records = [padded_record(i, 100) for i in range(10)]
        batches = list(Batcher(job).batch_records(records))
        # 4 records = 2 + 400 + 3 = 405; a fifth would reach 506 > 475
        assert [len(b) for b in batches] == [4, 4, 2]
        assert all(b.byte_length <= 500 for b in batches)

    def test_oversized_record_is_a_singleton(self, make_job):
        job = make_job(bytes_per_batch=500)
        records = [padded_record(0, 100), padded_record(1, 800), padded_record(2, 100)]
        batches = list(Batcher(job).batch_records(records))
        assert [len(b) for b in batches] == [1, 1, 1]
        assert [b.oversized for b in batches] == [False, True, False]
        assert batches[1].records == [records[1]]
        assert batches[1].byte_length == 802

    def test_empty_input(self, make_job):
        job = make_job()
        assert list(Batcher(job).batch_records([])) == []
        assert job.batches == 0

    def test_lazy(self, make_job, events):
        job = make_job(records_per_batch=2)
        pulled = []

        def source():
            for record in events(100):
                pulled.append(record)
                yield record, json_size(record)

        first = next(Batcher(job).batches(source()))
        assert len(first) == 2
        assert len(pulled) == 2

    @settings(max_examples=60, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(
        sizes=st.lists(st.integers(min_value=20, max_value=400), max_size=60),
        records_per_batch=st.integers(min_value=1, max_value=20),
        bytes_per_batch=st.integers(min_value=100, max_value=2000),
    )
    def test_property_batch_bounds(self, make_job, sizes, records_per_batch, bytes_per_batch):
        """Every batch respects both bounds unless it is an oversized singleton"""
        job = make_job(records_per_batch=records_per_batch, bytes_per_batch=bytes_per_batch)
        records = [padded_record(i, size) for i, size in enumerate(sizes)]
        batches = list(Batcher(job).batches(sized(records)))

        assert [r for b in batches for r in b.records] == records
        for batch in batches:
            assert len(batch) <= records_per_batch
            assert batch.byte_length == len(json.dumps(batch.records, separators=(",", ":")))
            if batch.oversized:
                assert len(batch) == 1
                assert batch.byte_length > bytes_per_batch
            else:
                assert batch.byte_length <= bytes_per_batch
