"""
JSON readers: line-delimited JSON and JSON arrays.

Both readers can parse a fully-loaded text or stream from an open text
handle with constant memory.
"""

import json
import re
from typing import IO, Any, Callable, Iterable, Iterator

from mpimport.core.errors import SourceError

ParseErrorHandler = Callable[[str, Exception], Any]

_WHITESPACE = re.compile(r"\s*")
_NUMBER_TAIL = re.compile(r"[0-9.eE+\-]*")


def _raise_on_error(line: str, error: Exception) -> Any:
    raise error


class JSONLReader:
    """
    Reader for line-delimited JSON (.jsonl, .ndjson, .txt).

    Malformed lines are handed to the parse error handler; whatever it
    returns is yielded in place of the line.
    """

    def __init__(self, on_error: ParseErrorHandler | None = None):
        """
        Initialize JSONL reader.

        Args:
            on_error: Called as on_error(line, error) for malformed lines.
                Defaults to re-raising the JSONDecodeError.
        """
        self.on_error = on_error or _raise_on_error

    def parse_lines(self, lines: Iterable[str | bytes]) -> Iterator[Any]:
        """
        Parse lines lazily, skipping blank ones.

        Args:
            lines: Text or bytes lines

        Yields:
            Parsed JSON values
        """
        for line in lines:
            if isinstance(line, bytes):
                line = line.decode("utf-8")
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as e:
                yield self.on_error(line, e)

    def read_text(self, text: str) -> list[Any]:
        """Parse a fully-loaded JSONL document."""
        return list(self.parse_lines(text.splitlines()))


class JSONReader:
    """
    Reader for JSON documents holding an array of records.

    A top-level object is treated as a single record.
    """

    def __init__(self, chunk_size: int = 1 << 16):
        """
        Initialize JSON reader.

        Args:
            chunk_size: Characters read per refill when streaming
        """
        self.chunk_size = chunk_size

    def read_text(self, text: str) -> list[Any]:
        """
        Parse a fully-loaded JSON document.

        Raises:
            json.JSONDecodeError: If the text is not valid JSON
        """
        value = json.loads(text)
        if isinstance(value, list):
            return value
        return [value]

    def stream(self, handle: IO[str]) -> Iterator[Any]:
        """
        Incrementally parse a JSON array from a text handle.

        Only one array element (plus one read chunk) is held in memory.

        Args:
            handle: Open text handle positioned at the document start

        Yields:
            Array elements in order

        Raises:
            SourceError: If the document is truncated or malformed
        """
        decoder = json.JSONDecoder()
        state = {"buffer": "", "eof": False}

        def refill(pos: int) -> bool:
            chunk = handle.read(self.chunk_size)
            if not chunk:
                state["eof"] = True
                return False
            state["buffer"] = state["buffer"][pos:] + chunk
            return True

        pos = 0
        while True:
            pos = _WHITESPACE.match(state["buffer"], pos).end()
            if pos < len(state["buffer"]):
                break
            if not refill(pos):
                return
            pos = 0

        if state["buffer"][pos] != "[":
            rest = state["buffer"][pos:] + handle.read()
            try:
                yield json.loads(rest)
            except json.JSONDecodeError as e:
                raise SourceError(f"Malformed JSON document: {e}") from e
            return

        pos += 1
        while True:
            buffer = state["buffer"]
            pos = _WHITESPACE.match(buffer, pos).end()
            if pos >= len(buffer):
                if not refill(pos):
                    raise SourceError("Unterminated JSON array")
                pos = 0
                continue

            char = buffer[pos]
            if char == "]":
                return
            if char == ",":
                pos += 1
                continue

            try:
                value, end = decoder.raw_decode(buffer, pos)
            except json.JSONDecodeError as e:
                if not refill(pos):
                    raise SourceError(f"Malformed JSON array element: {e}") from e
                pos = 0
                continue

            # A number at the buffer edge may continue in the next chunk
            if not state["eof"] and _NUMBER_TAIL.match(buffer, end).end() >= len(buffer):
                if refill(pos):
                    pos = 0
                    continue

            yield value
            pos = end
