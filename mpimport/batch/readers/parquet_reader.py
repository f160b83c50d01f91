"""
Parquet reader backed by the optional pyarrow dependency.
"""

from typing import Any, Iterator

from mpimport.core.errors import SourceError


def _parquet_module():
    try:
        import pyarrow.parquet as pq
    except ImportError as error:
        raise SourceError(
            "Reading parquet files requires pyarrow; install mp-import[parquet]"
        ) from error
    return pq


class ParquetReader:
    """Reads parquet files as dictionaries, eagerly or one row group batch at a time."""

    def __init__(self, batch_size: int = 10_000):
        """
        Initialize parquet reader.

        Args:
            batch_size: Rows materialized per step when streaming
        """
        self.batch_size = batch_size

    def read(self, path: str) -> list[dict[str, Any]]:
        """Load every row of a parquet file."""
        pq = _parquet_module()
        return pq.read_table(path).to_pylist()

    def stream(self, path: str) -> Iterator[dict[str, Any]]:
        """Yield rows of a parquet file with bounded memory."""
        pq = _parquet_module()
        parquet_file = pq.ParquetFile(path)
        for record_batch in parquet_file.iter_batches(batch_size=self.batch_size):
            yield from record_batch.to_pylist()
