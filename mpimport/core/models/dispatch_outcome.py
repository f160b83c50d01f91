"""
DispatchOutcome model: the result of sending one batch, applied to the
job counters in a separate accounting step.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

OutcomeStatus = Literal["success", "retry_exhausted", "rejected"]
RetryReason = Literal["rate_limited", "server_error", "client_error"]


class DispatchOutcome(BaseModel):
    """
    Result of dispatching one batch.

    Attributes:
        batch_index: Index of the dispatched batch
        record_count: Number of records in the batch
        status: "success" (2xx), "retry_exhausted" (every attempt was
            retryable and every retry was used) or "rejected" (non-retryable
            response)
        status_code: HTTP status of the final attempt, None on network failure
        response: Parsed JSON body of the final attempt, if any
        attempts: Total requests made for this batch
        retry_reasons: Classification of each retried attempt, in order
        error: Message of the final failure, if any
    """

    batch_index: int = Field(..., ge=0)
    record_count: int = Field(..., ge=0)
    status: OutcomeStatus
    status_code: int | None = None
    response: Any = None
    attempts: int = Field(default=1, ge=1)
    retry_reasons: list[RetryReason] = Field(default_factory=list)
    error: str | None = None

    class Config:
        json_schema_extra = {
            "example": {
                "batch_index": 3,
                "record_count": 2000,
                "status": "success",
                "status_code": 200,
                "response": {"code": 200, "num_records_imported": 2000, "status": "OK"},
                "attempts": 2,
                "retry_reasons": ["rate_limited"],
            }
        }

    @property
    def retries(self) -> int:
        return len(self.retry_reasons)

    @property
    def succeeded(self) -> bool:
        return self.status == "success"
