"""
Dedupe transform: drops records identical to one already seen in this run.
"""

from typing import Any

from mpimport.core.models import ImportOptions
from mpimport.utils.serialization import stable_hash

from .base_transform import DROPPED, BaseTransform


class DedupeTransform(BaseTransform):
    """Drops exact duplicates (key-order independent). Counts them as duplicates."""

    @classmethod
    def is_enabled(cls, options: ImportOptions) -> bool:
        return options.dedupe

    @property
    def name(self) -> str:
        return "dedupe"

    def __init__(self, job):
        super().__init__(job)
        self.seen: set[str] = set()

    def apply(self, record: Any) -> Any:
        digest = stable_hash(record)
        if digest in self.seen:
            self.job.increment("duplicates")
            return DROPPED
        self.seen.add(digest)
        return record
