"""
Generic file reader for multiple formats (JSONL, JSON, CSV/TSV, Parquet).

Decides per file whether to load it fully into memory or stream it.
"""

import csv
import gzip
import os
from pathlib import Path
from typing import IO, Any, Iterable, Iterator

import psutil

from mpimport.core.constants import (
    JSON_EXTENSIONS,
    LINE_DELIMITED_EXTENSIONS,
    MEMORY_LOAD_RATIO,
    PARQUET_EXTENSIONS,
    SUPPORTED_EXTENSIONS,
    TABLE_EXTENSIONS,
)
from mpimport.core.errors import SourceError
from mpimport.core.job import JobState
from mpimport.observability.logger import get_logger

from .csv_reader import CSVReader
from .json_reader import JSONLReader, JSONReader, ParseErrorHandler
from .parquet_reader import ParquetReader

logger = get_logger(__name__)

# Decoding, I/O (including bad gzip) and CSV syntax failures while reading
READ_ERRORS = (UnicodeDecodeError, OSError, csv.Error)


def detect_format(path: str | Path, stream_format: str | None = None) -> str:
    """
    Pick the parsing format for a file.

    An explicit stream_format wins; otherwise the extension decides
    (a trailing .gz is ignored).

    Args:
        path: File path
        stream_format: Explicit format option

    Returns:
        One of "jsonl", "json", "csv", "parquet"

    Raises:
        SourceError: If the extension is not supported
    """
    if stream_format:
        return stream_format

    suffix = bare_suffix(path)
    if suffix in LINE_DELIMITED_EXTENSIONS:
        return "jsonl"
    if suffix in JSON_EXTENSIONS:
        return "json"
    if suffix in TABLE_EXTENSIONS:
        return "csv"
    if suffix in PARQUET_EXTENSIONS:
        return "parquet"
    raise SourceError(f"Unsupported file extension: {path}", reference=str(path))


def bare_suffix(path: str | Path) -> str:
    """Lower-cased extension, ignoring a trailing .gz."""
    name = Path(path).name.lower()
    if name.endswith(".gz"):
        name = name[: -len(".gz")]
    return Path(name).suffix


def is_supported_file(path: str | Path) -> bool:
    return bare_suffix(path) in SUPPORTED_EXTENSIONS


def unreadable(path: str | Path, error: Exception) -> SourceError:
    return SourceError(f"Cannot read {path}: {type(error).__name__}: {error}", reference=str(path))


def open_text(path: str | Path) -> IO[str]:
    """Open a (possibly gzipped) file for text reading."""
    if str(path).lower().endswith(".gz"):
        return gzip.open(path, "rt", encoding="utf-8", newline="")
    return open(path, "r", encoding="utf-8", newline="")


def available_memory() -> int:
    """Bytes of memory currently available to the process."""
    return psutil.virtual_memory().available


class FileReader:
    """
    Reads records from files, choosing between eager and streaming parses.

    A file is loaded fully when its size is under 75% of currently
    available memory and force_stream is off; otherwise it is streamed
    with constant memory. An eager load that hits MemoryError falls back
    to streaming.
    """

    def __init__(self, job: JobState, on_parse_error: ParseErrorHandler):
        """
        Initialize file reader.

        Args:
            job: Run state (options, was_stream flag)
            on_parse_error: Handler for malformed JSONL lines
        """
        self.job = job
        self.options = job.options
        self.jsonl_reader = JSONLReader(on_parse_error)
        self.json_reader = JSONReader()
        self.parquet_reader = ParquetReader()

    def csv_reader(self, path: str | Path) -> CSVReader:
        delimiter = "\t" if ".tsv" in Path(path).name.lower() else ","
        return CSVReader(
            aliases=self.options.aliases,
            record_type=self.options.record_type,
            delimiter=delimiter,
        )

    def should_load(self, path: str | Path) -> bool:
        """Return True when the file should be parsed fully in memory."""
        if self.options.force_stream:
            return False
        size = os.path.getsize(path)
        return size < available_memory() * MEMORY_LOAD_RATIO

    def read(self, path: str | Path) -> Iterator[Any]:
        """
        Read one file.

        Sets job.was_stream according to the memory-vs-stream decision.

        Args:
            path: File path

        Returns:
            Iterator over the file's records

        Raises:
            SourceError: If the file is missing or its format unsupported
        """
        if not os.path.isfile(path):
            raise SourceError(f"File not found: {path}", reference=str(path))
        file_format = detect_format(path, self.options.stream_format)

        if self.should_load(path):
            try:
                records = self.load(path, file_format)
            except MemoryError:
                logger.warning(f"Ran out of memory loading {path}; streaming instead")
            else:
                self.job.was_stream = False
                logger.debug(f"Loaded {len(records)} records from {path} into memory")
                return iter(records)

        self.job.was_stream = True
        return self.stream(path, file_format)

    def read_many(self, paths: Iterable[str | Path]) -> Iterator[Any]:
        """
        Concatenate the records of several files, in the given order.

        Files are streamed one after another.
        """
        self.job.was_stream = True
        for path in paths:
            if not os.path.isfile(path):
                raise SourceError(f"File not found: {path}", reference=str(path))
            logger.debug(f"Reading {path}")
            yield from self.stream(path, detect_format(path, self.options.stream_format))

    def load(self, path: str | Path, file_format: str) -> list[Any]:
        """
        Parse a whole file in memory.

        Raises:
            SourceError: If the file cannot be read or decoded
        """
        try:
            return self._load(path, file_format)
        except READ_ERRORS as e:
            raise unreadable(path, e) from e

    def stream(self, path: str | Path, file_format: str) -> Iterator[Any]:
        """Parse a file lazily with bounded memory. Read errors raise SourceError."""
        try:
            yield from self._stream(path, file_format)
        except READ_ERRORS as e:
            raise unreadable(path, e) from e

    def _load(self, path: str | Path, file_format: str) -> list[Any]:
        if file_format == "parquet":
            return self.parquet_reader.read(str(path))

        with open_text(path) as handle:
            text = handle.read()

        if file_format == "jsonl":
            return self.jsonl_reader.read_text(text)
        if file_format == "json":
            try:
                return self.json_reader.read_text(text)
            except ValueError as e:
                raise SourceError(f"Malformed JSON in {path}: {e}", reference=str(path)) from e
        return self.csv_reader(path).read_text(text)

    def _stream(self, path: str | Path, file_format: str) -> Iterator[Any]:
        if file_format == "parquet":
            yield from self.parquet_reader.stream(str(path))
            return

        with open_text(path) as handle:
            if file_format == "jsonl":
                yield from self.jsonl_reader.parse_lines(handle)
            elif file_format == "json":
                yield from self.json_reader.stream(handle)
            else:
                yield from self.csv_reader(path).stream(handle)
