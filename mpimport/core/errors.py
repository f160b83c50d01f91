"""
Exception taxonomy for the import pipeline.

Fatal errors (SourceError, TransformError, FatalDispatchError and its
subclasses) unwind the whole run. Per-batch dispatch errors are absorbed
into the job counters and never reach the caller.
"""

from typing import Any


class MpImportError(Exception):
    """Base class for every error raised by the import pipeline."""

    # Partial run summary attached by the pipeline when a run aborts
    summary: Any = None


class ConfigurationError(MpImportError):
    """Raised when options or credentials fail validation."""


class SourceError(MpImportError):
    """Raised when an input reference cannot be classified or read."""

    def __init__(self, message: str, reference: Any = None):
        self.reference = reference
        super().__init__(message)


class TransformError(MpImportError):
    """Raised when a user or vendor transform throws. Never retried."""

    def __init__(self, message: str, record: Any = None):
        self.record = record
        super().__init__(message)


class DispatchError(MpImportError):
    """Base class for errors raised while sending a batch."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: Any = None,
    ):
        self.status_code = status_code
        self.response = response
        super().__init__(message)


class DispatchRetryableError(DispatchError):
    """429, 5xx or a transient network fault. Retried up to max_retries."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: Any = None,
        reason: str = "client_error",
    ):
        # rate_limited, server_error or client_error
        self.reason = reason
        super().__init__(message, status_code=status_code, response=response)


class DispatchRejectedError(DispatchError):
    """Non-retryable 4xx or API-level rejection of a single batch."""


class FatalDispatchError(DispatchError):
    """Unrecoverable dispatch condition such as a malformed URL."""


class FatalAuthError(FatalDispatchError):
    """No usable credentials, or the API refused the ones supplied."""
