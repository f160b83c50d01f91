"""
Batch model: an ordered group of records sent in one API call.
"""

from typing import Any

from pydantic import BaseModel, Field


class Batch(BaseModel):
    """
    An ordered group of records plus its serialized size.

    Invariant: len(records) <= records_per_batch and byte_length <=
    bytes_per_batch, except a singleton whose only record alone exceeds
    the byte bound.

    Attributes:
        index: Zero-based creation order of the batch within the run
        records: The records, in input order
        byte_length: UTF-8 length of the compact JSON array of records
        oversized: True when a single record exceeds the byte bound
    """

    index: int = Field(..., ge=0)
    records: list[Any]
    byte_length: int = Field(..., ge=2)
    oversized: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "index": 0,
                "records": [
                    {"event": "page view", "properties": {"distinct_id": "u1", "time": 1700000000000}}
                ],
                "byte_length": 81,
                "oversized": False,
            }
        }

    def __len__(self) -> int:
        return len(self.records)
