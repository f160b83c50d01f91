"""
Batch sinks.
"""

from .file_writer import BatchSink, NDJSONFileSink

__all__ = [
    "BatchSink",
    "NDJSONFileSink",
]
