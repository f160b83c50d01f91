"""
ImportOptions model: every tunable knob of an import run.
"""

from typing import Any, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from mpimport.core.constants import (
    DEFAULT_BYTES_PER_BATCH,
    DEFAULT_COMPRESSION_LEVEL,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RECORDS_PER_BATCH,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_WORKERS,
    MAX_RECORDS_PER_BATCH,
    RECORD_TYPE_ALIASES,
)
from mpimport.observability.logger import get_logger
from mpimport.utils.validation import (
    parse_bool_option,
    parse_list_option,
    parse_mapping_option,
)

logger = get_logger(__name__)

RecordType = Literal["event", "user", "group", "table"]
Region = Literal["US", "EU", "IN"]
StreamFormat = Literal["jsonl", "json", "csv", "parquet"]

_MAPPING_FIELDS = ("tags", "aliases")
_LIST_FIELDS = (
    "event_whitelist",
    "event_blacklist",
    "prop_key_whitelist",
    "prop_key_blacklist",
    "prop_val_whitelist",
    "prop_val_blacklist",
    "scrub_props",
    "insert_id_tuple",
)
_BOOL_FIELDS = (
    "compress",
    "strict",
    "force_stream",
    "fix_data",
    "remove_nulls",
    "flatten_data",
    "dedupe",
    "dry_run",
    "abridged",
    "write_to_file",
    "logs",
    "verbose",
)


class ImportOptions(BaseModel):
    """
    Validated options for one import run.

    Loosely-typed values (JSON strings for tags, comma-separated lists,
    "true"/"false" strings, plural record types) are normalized before
    validation so the same model accepts Python callers, CLI flags, YAML
    files and environment variables.

    Attributes:
        record_type: "event", "user", "group" or "table"
        region: API residency region, "US", "EU" or "IN"
        records_per_batch: Count bound per batch (clamped per record type)
        bytes_per_batch: Serialized byte bound per batch
        workers: Maximum concurrent dispatches
        concurrency: Alias for workers; wins when both are given
        max_retries: Retries per batch on retryable failures
        transform_func: User transform applied to every record
        dry_run: Transform and batch without sending anything
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        extra="ignore",
        json_schema_extra={
            "example": {
                "record_type": "event",
                "region": "US",
                "records_per_batch": 2000,
                "workers": 10,
                "fix_data": True,
                "tags": {"import_source": "backfill"},
            }
        },
    )

    # Routing
    record_type: RecordType = "event"
    region: Region = "US"

    # Batching
    records_per_batch: int = Field(default=DEFAULT_RECORDS_PER_BATCH, ge=1)
    bytes_per_batch: int = Field(default=DEFAULT_BYTES_PER_BATCH, ge=1)

    # Dispatch
    workers: int = Field(default=DEFAULT_WORKERS, ge=1)
    concurrency: int | None = Field(default=None, ge=1)
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    retry_backoff_base: float = Field(default=1.0, ge=0)
    retry_backoff_max: float = Field(default=60.0, ge=0)
    timeout: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    compress: bool = True
    compression_level: int = Field(default=DEFAULT_COMPRESSION_LEVEL, ge=0, le=9)
    strict: bool = True

    # Source
    stream_format: StreamFormat | None = None
    force_stream: bool = False
    max_records: int | None = Field(default=None, ge=1)
    parse_error_handler: Callable[[str, Exception], Any] | None = None

    # Transforms
    transform_func: Callable[[Any], Any] | None = None
    fix_data: bool = False
    remove_nulls: bool = False
    flatten_data: bool = False
    dedupe: bool = False
    time_offset: float = 0
    epoch_start: int | None = None
    epoch_end: int | None = None
    tags: dict[str, Any] = Field(default_factory=dict)
    aliases: dict[str, str] = Field(default_factory=dict)
    event_whitelist: list[Any] = Field(default_factory=list)
    event_blacklist: list[Any] = Field(default_factory=list)
    prop_key_whitelist: list[Any] = Field(default_factory=list)
    prop_key_blacklist: list[Any] = Field(default_factory=list)
    prop_val_whitelist: list[Any] = Field(default_factory=list)
    prop_val_blacklist: list[Any] = Field(default_factory=list)
    scrub_props: list[str] = Field(default_factory=list)
    insert_id_tuple: list[str] = Field(default_factory=list)

    # Output
    dry_run: bool = False
    abridged: bool = False
    write_to_file: bool = False
    output_file_path: str = "./mixpanel-transform.json"
    tee_sink: Any = None
    logs: bool = False
    where: str = "./logs"
    verbose: bool = False
    progress_interval: int = Field(default=100, ge=1)

    @field_validator("record_type", mode="before")
    @classmethod
    def normalize_record_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return RECORD_TYPE_ALIASES.get(value.strip().lower(), value)
        return value

    @field_validator("region", mode="before")
    @classmethod
    def normalize_region(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("stream_format", mode="before")
    @classmethod
    def normalize_stream_format(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            if value in ("ndjson", "txt"):
                return "jsonl"
            return value or None
        return value

    @field_validator(*_MAPPING_FIELDS, mode="before")
    @classmethod
    def parse_mappings(cls, value: Any, info) -> dict[str, Any]:
        return parse_mapping_option(value, info.field_name)

    @field_validator(*_LIST_FIELDS, mode="before")
    @classmethod
    def parse_lists(cls, value: Any, info) -> list[Any]:
        return parse_list_option(value, info.field_name)

    @field_validator(*_BOOL_FIELDS, mode="before")
    @classmethod
    def parse_bools(cls, value: Any, info) -> bool:
        return parse_bool_option(value, info.field_name)

    @model_validator(mode="after")
    def resolve_limits(self) -> "ImportOptions":
        """Apply the workers/concurrency alias and per-type batch caps."""
        if self.concurrency is not None:
            if "workers" in self.model_fields_set and self.workers != self.concurrency:
                logger.warning(
                    f"Both workers={self.workers} and concurrency={self.concurrency} given; "
                    f"using concurrency={self.concurrency}"
                )
            self.workers = self.concurrency

        cap = MAX_RECORDS_PER_BATCH[self.record_type]
        if self.records_per_batch > cap:
            self.records_per_batch = cap

        if (
            self.epoch_start is not None
            and self.epoch_end is not None
            and self.epoch_start > self.epoch_end
        ):
            raise ValueError("epoch_start must not be after epoch_end")
        return self

    @property
    def filters_by_epoch(self) -> bool:
        return self.epoch_start is not None or self.epoch_end is not None

    @property
    def filters_by_list(self) -> bool:
        return any(
            (
                self.event_whitelist,
                self.event_blacklist,
                self.prop_key_whitelist,
                self.prop_key_blacklist,
                self.prop_val_whitelist,
                self.prop_val_blacklist,
            )
        )
