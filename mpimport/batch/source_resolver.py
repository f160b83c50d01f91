"""
Source resolution: classify an input reference, then produce its records.

classify_source() is the only place that inspects the shape of the input.
resolve_source() dispatches on the resulting kind.
"""

import json
import os
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from typing import Any, Callable

from mpimport.batch.readers.csv_reader import CSVReader, sniff_delimiter
from mpimport.batch.readers.file_reader import FileReader, is_supported_file
from mpimport.batch.readers.json_reader import JSONLReader
from mpimport.core.constants import CLOUD_SCHEMES
from mpimport.core.errors import SourceError
from mpimport.core.job import JobState
from mpimport.core.models import ClassifiedSource
from mpimport.observability.logger import get_logger
from mpimport.streaming.sources.stream_source import StreamSource, is_file_like

logger = get_logger(__name__)

CloudReaderFactory = Callable[[str, JobState], Iterable[Any]]

# scheme ("gs://", "s3://") -> factory(reference, job) returning records
CLOUD_READER_REGISTRY: dict[str, CloudReaderFactory] = {}


def register_cloud_reader(scheme: str, factory: CloudReaderFactory) -> None:
    """
    Register a reader for a cloud storage scheme.

    Args:
        scheme: URL prefix such as "gs://" or "s3://"
        factory: Called as factory(reference, job); returns an iterable of records
    """
    if not scheme.endswith("://"):
        scheme = f"{scheme}://"
    CLOUD_READER_REGISTRY[scheme] = factory


def unregister_cloud_reader(scheme: str) -> None:
    if not scheme.endswith("://"):
        scheme = f"{scheme}://"
    CLOUD_READER_REGISTRY.pop(scheme, None)


def _is_cloud_path(value: str) -> bool:
    return value.startswith(CLOUD_SCHEMES) or value.split("://", 1)[0] + "://" in CLOUD_READER_REGISTRY


def _list_directory(path: str) -> list[str]:
    return sorted(
        str(entry)
        for entry in Path(path).iterdir()
        if entry.is_file() and is_supported_file(entry)
    )


def _names_files(items: Iterable[Any], paths: list[str], missing: list[str]) -> bool:
    """
    True when a list of strings is meant as a list of files rather than
    records: it holds path objects, some of it exists on disk, or every
    entry carries a supported file extension.
    """
    if any(isinstance(item, os.PathLike) for item in items):
        return True
    if len(missing) < len(paths):
        return True
    return all("\n" not in p and is_supported_file(p) for p in paths)


def classify_source(data: Any) -> ClassifiedSource:
    """
    Classify an input reference.

    Args:
        data: Path, list of paths, list of records, iterator, file-like
            object, cloud URL or raw JSON/JSONL/CSV text

    Returns:
        ClassifiedSource tagged with its kind

    Raises:
        SourceError: If the reference matches no kind
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8")

    if isinstance(data, os.PathLike):
        path = os.fspath(data)
        if os.path.isdir(path):
            return ClassifiedSource(kind="directory", reference=data, paths=_list_directory(path))
        if os.path.isfile(path):
            return ClassifiedSource(kind="file", reference=data, paths=[path])
        raise SourceError(f"Path does not exist: {path}", reference=data)

    if isinstance(data, str):
        if _is_cloud_path(data):
            return ClassifiedSource(kind="cloud", reference=data)
        if len(data) < 4096 and "\n" not in data:
            if os.path.isdir(data):
                return ClassifiedSource(kind="directory", reference=data, paths=_list_directory(data))
            if os.path.isfile(data):
                return ClassifiedSource(kind="file", reference=data, paths=[data])
        return ClassifiedSource(kind="raw_string", reference=data)

    if isinstance(data, Mapping):
        return ClassifiedSource(kind="in_memory", reference=[data])

    if isinstance(data, (list, tuple)):
        if data and all(isinstance(item, (str, os.PathLike)) for item in data):
            paths = [os.fspath(item) for item in data]
            missing = [p for p in paths if not os.path.isfile(p)]
            if not missing:
                return ClassifiedSource(kind="file_list", reference=data, paths=paths)
            if _names_files(data, paths, missing):
                raise SourceError(
                    f"{len(missing)} of {len(paths)} input files not found: {', '.join(missing)}",
                    reference=data,
                )
        return ClassifiedSource(kind="in_memory", reference=data)

    if is_file_like(data) or isinstance(data, (Iterator, Iterable)):
        return ClassifiedSource(kind="external_stream", reference=data)

    raise SourceError(
        f"Cannot import from {type(data).__name__}: expected a file, folder, list, "
        "stream or JSON/JSONL/CSV string",
        reference=data,
    )


class SourceResolver:
    """
    Produces a lazy record sequence for a classified input.

    Malformed JSONL lines increment the unparsable counter; the record
    yielded in their place comes from the parse_error_handler option
    (default: an empty record, later counted as empty).
    """

    def __init__(self, job: JobState):
        """
        Initialize source resolver.

        Args:
            job: Run state
        """
        self.job = job
        self.options = job.options
        self.file_reader = FileReader(job, self.handle_parse_error)

    def handle_parse_error(self, line: str, error: Exception) -> Any:
        self.job.increment("unparsable")
        logger.debug(f"Unparsable line ({error}): {line[:200]}")
        handler = self.options.parse_error_handler
        if handler is not None:
            return handler(line, error)
        return {}

    def resolve(self, data: Any) -> Iterator[Any]:
        """
        Classify the input and return an iterator over its raw records.

        Args:
            data: Input reference

        Returns:
            Iterator of raw records

        Raises:
            SourceError: If the input cannot be classified or read
        """
        source = classify_source(data)
        logger.info(f"Resolved source as {source.kind}")

        if source.kind == "external_stream":
            self.job.was_stream = True
            return iter(StreamSource(source.reference, self.options, self.handle_parse_error))

        if source.kind == "in_memory":
            self.job.was_stream = False
            return iter(source.reference)

        if source.kind == "file":
            return self.file_reader.read(source.paths[0])

        if source.kind in ("directory", "file_list"):
            if not source.paths:
                raise SourceError(f"No supported files found in {source.reference}", reference=source.reference)
            logger.info(f"Reading {len(source.paths)} files")
            self.job.was_stream = True
            return self.file_reader.read_many(source.paths)

        if source.kind == "cloud":
            return self._read_cloud(source.reference)

        self.job.was_stream = False
        return iter(self.parse_raw_string(source.reference))

    def _read_cloud(self, reference: str) -> Iterator[Any]:
        scheme = reference.split("://", 1)[0] + "://"
        factory = CLOUD_READER_REGISTRY.get(scheme)
        if factory is None:
            raise SourceError(
                f"No reader registered for {scheme} paths; call register_cloud_reader() first",
                reference=reference,
            )
        self.job.was_stream = True
        return iter(factory(reference, self.job))

    def parse_raw_string(self, text: str) -> list[Any]:
        """
        Parse raw text: JSON first, then JSONL, then CSV.

        Raises:
            SourceError: If no format parses
        """
        stripped = text.strip()
        if not stripped:
            raise SourceError("Input string is empty", reference=text)

        try:
            value = json.loads(stripped)
        except json.JSONDecodeError:
            pass
        else:
            if isinstance(value, list):
                return value
            if isinstance(value, dict):
                return [value]

        try:
            return JSONLReader().read_text(stripped)
        except json.JSONDecodeError:
            pass

        lines = stripped.splitlines()
        delimiter = sniff_delimiter(lines[0])
        if delimiter and len(lines) > 1:
            reader = CSVReader(
                aliases=self.options.aliases,
                record_type=self.options.record_type,
                delimiter=delimiter,
            )
            rows = reader.read_text(stripped)
            if rows:
                return rows

        raise SourceError(
            f"{stripped[:80]!r} is not a file, folder, list, stream or JSON/JSONL/CSV string",
            reference=text,
        )


def resolve_source(data: Any, job: JobState) -> Iterator[Any]:
    """Classify data and return its raw records; see SourceResolver."""
    return SourceResolver(job).resolve(data)
