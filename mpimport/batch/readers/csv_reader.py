"""
CSV reader with alias remapping into event shape.
"""

import csv
import io
from typing import Any, Iterable, Iterator

from mpimport.core.transforms.base_transform import to_epoch_millis

# Columns lifted out of the row into their event positions
_LIFTED = ("event", "distinct_id", "$insert_id", "time")


class CSVReader:
    """
    Header-based CSV/TSV reader.

    Header names are renamed through the aliases mapping before rows are
    built. For event imports each row becomes
    {"event": ..., "properties": {"distinct_id", "$insert_id", "time", ...}}
    with time coerced to epoch milliseconds and empty lifted columns
    removed. Other record types get the flat (aliased) row.
    """

    def __init__(
        self,
        aliases: dict[str, str] | None = None,
        record_type: str = "event",
        delimiter: str = ",",
    ):
        """
        Initialize CSV reader.

        Args:
            aliases: Header renames, {"source_header": "target_header"}
            record_type: Record type being imported
            delimiter: Field delimiter ("," for CSV, "\\t" for TSV)
        """
        self.aliases = aliases or {}
        self.record_type = record_type
        self.delimiter = delimiter

    def stream(self, lines: Iterable[str]) -> Iterator[dict[str, Any]]:
        """
        Parse rows lazily from an iterable of text lines (or an open handle).

        Args:
            lines: Text lines, header first

        Yields:
            One record per non-empty data row
        """
        reader = csv.reader(lines, delimiter=self.delimiter)
        header = None
        for row in reader:
            if not any(cell.strip() for cell in row):
                continue
            if header is None:
                header = [self.aliases.get(name.strip(), name.strip()) for name in row]
                continue
            yield self.to_record(dict(zip(header, row)))

    def read_text(self, text: str) -> list[dict[str, Any]]:
        """Parse a fully-loaded CSV document."""
        return list(self.stream(io.StringIO(text, newline="")))

    def to_record(self, row: dict[str, Any]) -> dict[str, Any]:
        """
        Build a record from an aliased row.

        Args:
            row: Header -> cell value

        Returns:
            Event-shaped record for events, the row itself otherwise
        """
        if self.record_type != "event":
            return row

        values = dict(row)
        event = values.pop("event", None)
        properties: dict[str, Any] = {}
        for key in _LIFTED[1:]:
            value = values.pop(key, None)
            if value in (None, ""):
                continue
            properties[key] = to_epoch_millis(value) if key == "time" else value
        properties.update(values)
        return {"event": event, "properties": properties}


def sniff_delimiter(header_line: str) -> str | None:
    """Return the delimiter used by a header line, or None if it has none."""
    if "\t" in header_line:
        return "\t"
    if "," in header_line:
        return ","
    return None
