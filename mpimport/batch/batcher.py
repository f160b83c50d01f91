"""
Batcher: groups the transformed record sequence into dual-bounded batches.
"""

from typing import Any, Iterable, Iterator

from mpimport.core.constants import BYTE_SPLIT_RATIO
from mpimport.core.job import JobState
from mpimport.core.models import Batch
from mpimport.observability.logger import get_logger
from mpimport.utils.serialization import json_size

logger = get_logger(__name__)


def batch_byte_length(sizes: list[int]) -> int:
    """
    Byte length of a compact JSON array whose elements have the given sizes.

    Brackets plus one comma between each pair of elements.

    >>> batch_byte_length([10, 20, 30])
    64
    """
    if not sizes:
        return 2
    return 2 + sum(sizes) + len(sizes) - 1


class Batcher:
    """
    Windows records into batches bounded by count and serialized size.

    The sequence is cut into chunks of records_per_batch. A chunk whose
    serialized size exceeds bytes_per_batch is re-partitioned greedily:
    records accumulate until the next one would take the sub-batch past
    95% of the byte bound, then a new sub-batch starts. A record that
    alone exceeds the bound is emitted as an unsplit singleton. Order is
    preserved across and within batches.
    """

    def __init__(self, job: JobState):
        """
        Initialize batcher.

        Args:
            job: Run state providing bounds and the batch counter
        """
        self.job = job
        self.records_per_batch = job.options.records_per_batch
        self.bytes_per_batch = job.options.bytes_per_batch
        self.split_threshold = int(self.bytes_per_batch * BYTE_SPLIT_RATIO)
        self._next_index = 0

    def batches(self, sized_records: Iterable[tuple[Any, int]]) -> Iterator[Batch]:
        """
        Group (record, byte_length) pairs into batches.

        Args:
            sized_records: Records with their compact JSON UTF-8 size

        Yields:
            Batches in input order
        """
        records: list[Any] = []
        sizes: list[int] = []
        for record, size in sized_records:
            records.append(record)
            sizes.append(size)
            if len(records) == self.records_per_batch:
                yield from self._emit_chunk(records, sizes)
                records, sizes = [], []
        if records:
            yield from self._emit_chunk(records, sizes)

    def batch_records(self, records: Iterable[Any]) -> Iterator[Batch]:
        """Group plain records, measuring each one."""
        return self.batches((record, json_size(record)) for record in records)

    def _emit_chunk(self, records: list[Any], sizes: list[int]) -> Iterator[Batch]:
        if batch_byte_length(sizes) <= self.bytes_per_batch:
            yield self._make_batch(records, sizes)
            return

        logger.debug(
            f"Chunk of {len(records)} records exceeds {self.bytes_per_batch} bytes; splitting"
        )
        current: list[Any] = []
        current_sizes: list[int] = []
        current_bytes = 2
        for record, size in zip(records, sizes):
            if size + 2 > self.bytes_per_batch:
                if current:
                    yield self._make_batch(current, current_sizes)
                    current, current_sizes, current_bytes = [], [], 2
                yield self._make_batch([record], [size], oversized=True)
                continue

            if current and current_bytes + size + 1 > self.split_threshold:
                yield self._make_batch(current, current_sizes)
                current, current_sizes, current_bytes = [], [], 2
            current_bytes += size + (1 if current else 0)
            current.append(record)
            current_sizes.append(size)

        if current:
            yield self._make_batch(current, current_sizes)

    def _make_batch(self, records: list[Any], sizes: list[int], oversized: bool = False) -> Batch:
        batch = Batch(
            index=self._next_index,
            records=records,
            byte_length=batch_byte_length(sizes),
            oversized=oversized,
        )
        if oversized:
            logger.warning(
                f"Record of {batch.byte_length} bytes exceeds bytes_per_batch="
                f"{self.bytes_per_batch}; sending it alone"
            )
        self._next_index += 1
        self.job.record_batch(len(records))
        return batch
