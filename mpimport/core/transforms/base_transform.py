"""
Base transform interface for all built-in record transforms.

All transforms inherit from BaseTransform and implement apply().
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from mpimport.core.constants import PROFILE_OPERATIONS
from mpimport.core.job import JobState
from mpimport.core.models import ImportOptions


class _Dropped:
    """Marker for a record that was filtered and already counted."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DROPPED"


DROPPED = _Dropped()


class BaseTransform(ABC):
    """
    Abstract base class for built-in record transforms.

    A transform receives one non-empty record and returns the (possibly
    mutated) record, an empty value to have it counted as empty, or
    DROPPED when it filtered the record and counted it itself.
    """

    def __init__(self, job: JobState):
        """
        Initialize transform.

        Args:
            job: Run state (options and counters)
        """
        self.job = job
        self.options = job.options

    @classmethod
    @abstractmethod
    def is_enabled(cls, options: ImportOptions) -> bool:
        """Return True when the options turn this transform on."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the stage identifier."""
        pass

    @abstractmethod
    def apply(self, record: Any) -> Any:
        """
        Transform one record.

        Args:
            record: A non-empty record

        Returns:
            The transformed record, an empty value, or DROPPED
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(record_type={self.options.record_type})"


def operation_key(record: dict[str, Any]) -> str | None:
    """Return the first profile operation key present on a record."""
    for key in record:
        if key in PROFILE_OPERATIONS:
            return key
    return None


def property_bag(record: Any, record_type: str) -> dict[str, Any] | None:
    """
    Return the dict holding a record's properties.

    Events keep them under "properties"; profiles under their operation key.
    """
    if not isinstance(record, dict):
        return None
    if record_type == "event":
        props = record.get("properties")
        return props if isinstance(props, dict) else None
    op = operation_key(record)
    if op and isinstance(record[op], dict):
        return record[op]
    return None


def to_epoch_millis(value: Any) -> Any:
    """
    Coerce a time value to epoch milliseconds where possible.

    Numbers pass through unchanged. Numeric strings become numbers.
    ISO-8601 strings (naive ones read as UTC) become epoch milliseconds.
    Anything unparseable is returned untouched.

    >>> to_epoch_millis("2024-01-01T00:00:00Z")
    1704067200000
    >>> to_epoch_millis("1704067200")
    1704067200
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return value
        try:
            number = float(text)
        except ValueError:
            number = None
        if number is not None:
            return int(number) if number.is_integer() else number
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return value
    else:
        return value

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def as_millis(value: Any) -> float | None:
    """
    Interpret a numeric time as epoch milliseconds.

    Ten-digit (or shorter) values are read as seconds.
    """
    value = to_epoch_millis(value)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if abs(value) < 1e11:
        return value * 1000
    return value
