"""
Batch sinks: destinations that receive batches instead of, or alongside,
remote dispatch.
"""

import gzip
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import IO

from mpimport.core.models import Batch
from mpimport.observability.logger import get_logger
from mpimport.utils.serialization import to_json

logger = get_logger(__name__)


class BatchSink(ABC):
    """
    A writable destination for batches.

    Cloud storage adapters implement this interface and are passed as
    the tee_sink option.
    """

    @abstractmethod
    def write(self, batch: Batch) -> None:
        """Persist one batch. May be called from several threads."""
        pass

    def close(self) -> None:
        """Flush and release resources."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class NDJSONFileSink(BatchSink):
    """
    Appends records as newline-delimited JSON to a local file.

    Paths ending in .gz are gzip-compressed. The file is truncated when
    the sink is opened.
    """

    def __init__(self, path: str | Path, compression_level: int = 6):
        """
        Initialize file sink.

        Args:
            path: Output file path; parent directories are created
            compression_level: gzip level for .gz paths
        """
        self.path = Path(path)
        self.compression_level = compression_level
        self._lock = threading.Lock()
        self._handle: IO[str] | None = None
        self.records_written = 0

    def _open(self) -> IO[str]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.path.suffix == ".gz":
            return gzip.open(
                self.path, "wt", encoding="utf-8", compresslevel=self.compression_level
            )
        return open(self.path, "w", encoding="utf-8")

    def write(self, batch: Batch) -> None:
        lines = "".join(to_json(record) + "\n" for record in batch.records)
        with self._lock:
            if self._handle is None:
                self._handle = self._open()
                logger.info(f"Writing records to {self.path}")
            self._handle.write(lines)
            self.records_written += len(batch)

    def close(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.close()
                self._handle = None
