"""
External stream source.

Wraps caller-supplied streams: iterators or generators of records, and
file-like objects producing raw text or bytes.
"""

import io
from typing import Any, Iterator

from mpimport.batch.readers.csv_reader import CSVReader
from mpimport.batch.readers.json_reader import JSONLReader, JSONReader, ParseErrorHandler
from mpimport.core.errors import SourceError
from mpimport.core.models import ImportOptions
from mpimport.observability.logger import get_logger

logger = get_logger(__name__)


def is_file_like(value: Any) -> bool:
    return callable(getattr(value, "read", None))


def as_text_stream(handle: Any) -> io.TextIOBase:
    """Wrap a binary handle for text reading; text handles pass through."""
    if isinstance(handle, io.TextIOBase):
        return handle
    if isinstance(handle, (io.BufferedIOBase, io.RawIOBase)) or "b" in getattr(handle, "mode", ""):
        return io.TextIOWrapper(handle, encoding="utf-8", newline="")
    return handle


class StreamSource:
    """
    Record iterator over an externally supplied stream.

    Iterators yielding dicts (or lists) are passed through untouched.
    Iterators yielding str/bytes are treated as JSONL lines. File-like
    objects are parsed according to stream_format (JSONL by default).
    """

    def __init__(
        self,
        stream: Any,
        options: ImportOptions,
        on_parse_error: ParseErrorHandler,
    ):
        """
        Initialize stream source.

        Args:
            stream: Iterator, generator or file-like object
            options: Run options (stream_format, aliases, record_type)
            on_parse_error: Handler for malformed JSONL lines
        """
        self.stream = stream
        self.options = options
        self.jsonl_reader = JSONLReader(on_parse_error)

    def __iter__(self) -> Iterator[Any]:
        if is_file_like(self.stream):
            return self._read_handle()
        return self._read_iterator()

    def _read_handle(self) -> Iterator[Any]:
        stream_format = self.options.stream_format or "jsonl"
        handle = as_text_stream(self.stream)
        logger.debug(f"Reading external {stream_format} stream")

        if stream_format == "jsonl":
            yield from self.jsonl_reader.parse_lines(handle)
        elif stream_format == "json":
            yield from JSONReader().stream(handle)
        elif stream_format == "csv":
            reader = CSVReader(
                aliases=self.options.aliases, record_type=self.options.record_type
            )
            yield from reader.stream(handle)
        else:
            raise SourceError(f"Stream format {stream_format!r} cannot be read from a stream")

    def _read_iterator(self) -> Iterator[Any]:
        for item in self.stream:
            if isinstance(item, (str, bytes)):
                yield from self.jsonl_reader.parse_lines([item])
            else:
                yield item
