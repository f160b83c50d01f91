"""
Time transforms: UTC offset shifting and epoch window filtering.
"""

from typing import Any

from mpimport.core.models import ImportOptions

from .base_transform import DROPPED, BaseTransform, as_millis, to_epoch_millis

_HOUR_SECONDS = 3600


class TimeOffsetTransform(BaseTransform):
    """
    Shifts properties.time by time_offset hours.

    The unit of the stored time (seconds or milliseconds) is preserved.
    """

    @classmethod
    def is_enabled(cls, options: ImportOptions) -> bool:
        return bool(options.time_offset)

    @property
    def name(self) -> str:
        return "time_offset"

    def apply(self, record: Any) -> Any:
        if not isinstance(record, dict):
            return record
        props = record.get("properties")
        if not isinstance(props, dict) or not props.get("time"):
            return record

        value = to_epoch_millis(props["time"])
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return record

        shift = self.options.time_offset * _HOUR_SECONDS
        if abs(value) >= 1e11:
            shift *= 1000
        shifted = value + shift
        props["time"] = int(shifted) if float(shifted).is_integer() else shifted
        return record


class EpochFilterTransform(BaseTransform):
    """
    Drops events whose time falls outside [epoch_start, epoch_end].

    Bounds are unix seconds. Dropped events count as out_of_bounds.
    Events without a parseable time pass through.
    """

    @classmethod
    def is_enabled(cls, options: ImportOptions) -> bool:
        return options.record_type == "event" and options.filters_by_epoch

    @property
    def name(self) -> str:
        return "epoch_filter"

    def __init__(self, job):
        super().__init__(job)
        start, end = self.options.epoch_start, self.options.epoch_end
        self.start_ms = start * 1000 if start is not None else None
        self.end_ms = end * 1000 if end is not None else None

    def apply(self, record: Any) -> Any:
        if not isinstance(record, dict):
            return record
        props = record.get("properties")
        if not isinstance(props, dict) or not props.get("time"):
            return record

        event_ms = as_millis(props["time"])
        if event_ms is None:
            return record

        if (self.start_ms is not None and event_ms < self.start_ms) or (
            self.end_ms is not None and event_ms > self.end_ms
        ):
            self.job.increment("out_of_bounds")
            return DROPPED
        return record
