"""
JobSummary model: immutable snapshot of a finished (or aborted) run.
"""

from typing import Any

from pydantic import BaseModel, Field


class JobSummary(BaseModel):
    """
    Final accounting for one import run.

    Counter identity for dispatching runs:
        success + failed + empty + out_of_bounds + duplicates
        + whitelist_skipped + blacklist_skipped == total

    Attributes:
        total: Records that entered the transform chain
        duration: Wall-clock seconds between start and end
        eps: Records per second
        rps: Requests per second
        mbps: Megabytes of transformed payload per second
        percent_quota: Estimated share of the per-minute ingestion quota
        dry_run: Transformed records collected instead of being sent
    """

    record_type: str
    total: int = 0
    success: int = 0
    failed: int = 0
    empty: int = 0
    out_of_bounds: int = 0
    duplicates: int = 0
    whitelist_skipped: int = 0
    blacklist_skipped: int = 0
    unparsable: int = 0

    start_time: str
    end_time: str
    duration: float = 0.0
    duration_human: str = ""

    bytes: int = 0
    bytes_human: str = ""
    requests: int = 0
    batches: int = 0
    retries: int = 0
    rate_limited: int = 0
    server_errors: int = 0
    client_errors: int = 0

    workers: int = 0
    was_stream: bool | None = None
    avg_batch_length: float = 0.0
    eps: float = 0.0
    rps: float = 0.0
    mbps: float = 0.0
    percent_quota: float = 0.0

    errors: list[Any] = Field(default_factory=list)
    responses: list[Any] = Field(default_factory=list)
    dry_run: list[Any] = Field(default_factory=list)

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "record_type": "event",
                "total": 10000,
                "success": 10000,
                "failed": 0,
                "empty": 0,
                "start_time": "2025-11-17T10:00:00+00:00",
                "end_time": "2025-11-17T10:00:04+00:00",
                "duration": 4.02,
                "duration_human": "4.02s",
                "batches": 5,
                "requests": 5,
                "eps": 2487.0,
            }
        }

    @property
    def accounted(self) -> int:
        """Records that reached a terminal state."""
        return (
            self.success
            + self.failed
            + self.empty
            + self.out_of_bounds
            + self.duplicates
            + self.whitelist_skipped
            + self.blacklist_skipped
        )
