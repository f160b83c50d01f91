"""
Transform chain for orchestrating per-record transforms.

The chain counts every record, applies the user transform, explodes list
results, runs the enabled built-in transforms in a fixed order and
accounts the UTF-8 size of every surviving record.
"""

from typing import Any, Callable, Iterable, Iterator

from mpimport.core.errors import MpImportError, TransformError
from mpimport.core.job import JobState
from mpimport.observability.logger import get_logger
from mpimport.utils.serialization import json_size

from .alias_transform import AliasTransform
from .base_transform import DROPPED, BaseTransform
from .dedupe_transform import DedupeTransform
from .filter_transform import WhiteBlackListTransform
from .normalize_transform import NormalizeTransform
from .null_transform import RemoveNullsTransform
from .property_transforms import (
    FlattenPropertiesTransform,
    InsertIdTupleTransform,
    ScrubPropertiesTransform,
)
from .tag_transform import TagTransform
from .time_transform import EpochFilterTransform, TimeOffsetTransform

logger = get_logger(__name__)

TransformFunction = Callable[[Any], Any]


def is_empty(record: Any) -> bool:
    """
    True for records that must be dropped: None, scalars, "" and empty containers.

    >>> is_empty({}), is_empty([]), is_empty(None), is_empty(""), is_empty({"a": 1})
    (True, True, True, True, False)
    """
    if not record:
        return True
    return not isinstance(record, (dict, list, tuple))


class TransformChain:
    """
    Applies the ordered transform stages to a record sequence.

    Stage order:
    1. count processed, drop empties
    2. user transform (exceptions become TransformError)
    3. explode list results into independent records
    4. dedupe
    5. drop empties
    6. built-in fixups, in FIXUP_STAGES order
    7. drop empties, account bytes
    """

    # Ordered (name, transform class) list; disabled stages are skipped
    FIXUP_STAGES: list[tuple[str, type[BaseTransform]]] = [
        ("aliases", AliasTransform),
        ("normalize", NormalizeTransform),
        ("remove_nulls", RemoveNullsTransform),
        ("time_offset", TimeOffsetTransform),
        ("tags", TagTransform),
        ("white_black_list", WhiteBlackListTransform),
        ("epoch_filter", EpochFilterTransform),
        ("scrub_props", ScrubPropertiesTransform),
        ("flatten_data", FlattenPropertiesTransform),
        ("insert_id_tuple", InsertIdTupleTransform),
    ]

    def __init__(self, job: JobState):
        """
        Initialize the chain for one run.

        Args:
            job: Run state providing options and counters
        """
        self.job = job
        self.transform_func: TransformFunction | None = job.options.transform_func
        self.deduper = DedupeTransform(job) if DedupeTransform.is_enabled(job.options) else None
        self.stages: list[BaseTransform] = []
        self._build_stages()

    def _build_stages(self) -> None:
        """Instantiate the enabled fixup stages."""
        for _, transform_class in self.FIXUP_STAGES:
            if transform_class.is_enabled(self.job.options):
                self.stages.append(transform_class(self.job))

    @property
    def stage_names(self) -> list[str]:
        names = []
        if self.transform_func is not None:
            names.append("transform_func")
        if self.deduper is not None:
            names.append(self.deduper.name)
        names.extend(stage.name for stage in self.stages)
        return names

    def process(self, records: Iterable[Any]) -> Iterator[tuple[Any, int]]:
        """
        Lazily transform a record sequence.

        Args:
            records: Raw records in input order

        Yields:
            (record, byte_length) for every surviving record, in order

        Raises:
            TransformError: If the user transform raises
        """
        for raw in records:
            self.job.increment("records_processed")
            if is_empty(raw):
                self.job.increment("empty")
                continue

            exploded = self._explode(self._apply_transform_func(raw))
            if not exploded:
                self.job.increment("empty")
                continue
            if len(exploded) > 1:
                self.job.increment("records_processed", len(exploded) - 1)

            for record in exploded:
                result = self.process_one(record)
                if result is not None:
                    yield result

    def process_one(self, record: Any) -> tuple[Any, int] | None:
        """
        Run one already-exploded record through dedupe, fixups and accounting.

        Returns:
            (record, byte_length), or None when the record was dropped
        """
        if self.deduper is not None and not is_empty(record):
            record = self.deduper.apply(record)
            if record is DROPPED:
                return None

        if is_empty(record):
            self.job.increment("empty")
            return None

        for stage in self.stages:
            record = stage.apply(record)
            if record is DROPPED:
                return None
            if is_empty(record):
                break

        if is_empty(record):
            self.job.increment("empty")
            return None

        nbytes = json_size(record)
        self.job.increment("bytes_processed", nbytes)
        return record, nbytes

    def _apply_transform_func(self, record: Any) -> Any:
        if self.transform_func is None:
            return record
        try:
            return self.transform_func(record)
        except MpImportError:
            raise
        except Exception as e:
            raise TransformError(
                f"Transform function raised {type(e).__name__}: {e}", record=record
            ) from e

    @staticmethod
    def _explode(result: Any) -> list[Any]:
        if isinstance(result, (list, tuple)):
            return list(result)
        if is_empty(result):
            return []
        return [result]
