"""
Core data models for the import pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .batch import Batch
from .classified_source import ClassifiedSource, SourceKind
from .credentials import Credentials
from .dispatch_outcome import DispatchOutcome, OutcomeStatus, RetryReason
from .import_options import ImportOptions, RecordType, Region, StreamFormat
from .job_summary import JobSummary

__all__ = [
    "Batch",
    "ClassifiedSource",
    "SourceKind",
    "Credentials",
    "DispatchOutcome",
    "OutcomeStatus",
    "RetryReason",
    "ImportOptions",
    "RecordType",
    "Region",
    "StreamFormat",
    "JobSummary",
]
