"""
mp-import: bulk ingestion of events, profiles and lookup tables.
"""

from mpimport.batch.pipeline import ImportPipeline, import_data
from mpimport.batch.source_resolver import register_cloud_reader
from mpimport.core.errors import (
    ConfigurationError,
    DispatchError,
    DispatchRejectedError,
    DispatchRetryableError,
    FatalAuthError,
    FatalDispatchError,
    MpImportError,
    SourceError,
    TransformError,
)
from mpimport.core.models import Credentials, ImportOptions, JobSummary

__version__ = "0.1.0"

__all__ = [
    "import_data",
    "ImportPipeline",
    "register_cloud_reader",
    "Credentials",
    "ImportOptions",
    "JobSummary",
    "MpImportError",
    "ConfigurationError",
    "SourceError",
    "TransformError",
    "DispatchError",
    "DispatchRetryableError",
    "DispatchRejectedError",
    "FatalDispatchError",
    "FatalAuthError",
]
