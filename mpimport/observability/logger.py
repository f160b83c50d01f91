"""
Structured JSON logging for mp-import

Every module logs through a child of the "mpimport" logger, which owns a
single stderr handler. Records are rendered as JSON by python-json-logger
(or as plain text when LOG_FORMAT=text) so runs can be shipped to a log
store and queried by batch, record type or status.
"""
import logging
import os
import sys
import time

from pythonjsonlogger import jsonlogger

DEFAULT_LOGGER_NAME = "mpimport"

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

JSON_FORMAT = "%(timestamp)s %(level)s %(logger)s %(module)s %(function)s %(message)s"
TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(threadName)s] %(name)s: %(message)s"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter with the fields every mp-import log line carries

    Adds: timestamp, level, logger, module, function, thread
    """

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        """
        Fill in the standard fields

        Args:
            log_record: Output dictionary being built
            record: Source LogRecord
            message_dict: Fields parsed from a dict message
        """
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = log_record.get("timestamp") or self.formatTime(record, self.datefmt)
        log_record["level"] = (log_record.get("level") or record.levelname).upper()
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName

        # Batches are dispatched from pool threads
        log_record["thread"] = record.threadName


def _make_formatter(format_type: str) -> logging.Formatter:
    if format_type == "text":
        return logging.Formatter(fmt=TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    return CustomJsonFormatter(fmt=JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: str | None = None,
    format_type: str | None = None,
) -> logging.Logger:
    """
    Attach a fresh stderr handler to a logger

    Args:
        name: Logger name
        level: Level name; defaults to LOG_LEVEL or INFO
        format_type: "json" or "text"; defaults to LOG_FORMAT or "json"

    Returns:
        The configured logger
    """
    log_level = LOG_LEVELS.get((level or os.getenv("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    format_type = (format_type or os.getenv("LOG_FORMAT", "json")).lower()

    # stdout is reserved for the run summary
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(_make_formatter(format_type))

    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(log_level)
    logger.propagate = False
    return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger, configuring the package logger on first use

    Names under "mpimport." propagate to the package logger and share its
    handler; any other name gets a handler of its own.

    Args:
        name: Logger name, usually __name__

    Returns:
        Logger instance
    """
    if not logging.getLogger(DEFAULT_LOGGER_NAME).handlers:
        setup_logger(DEFAULT_LOGGER_NAME)

    logger = logging.getLogger(name)
    if name == DEFAULT_LOGGER_NAME or name.startswith(DEFAULT_LOGGER_NAME + "."):
        return logger
    return logger if logger.handlers else setup_logger(name)


def set_level(level: str) -> None:
    """Change the level of the package logger and its handlers."""
    log_level = LOG_LEVELS.get(level.upper(), logging.INFO)
    package_logger = get_logger(DEFAULT_LOGGER_NAME)
    package_logger.setLevel(log_level)
    for handler in package_logger.handlers:
        handler.setLevel(log_level)


class log_operation:
    """
    Context manager that logs the start, end and duration of a step

    Exceptions are logged and re-raised. The elapsed time stays available
    as .duration after the block exits.

    Usage:
        with log_operation("Importing event records", logger=logger, dry_run=True):
            pipeline.run(data)
    """

    def __init__(self, operation_name: str, logger: logging.Logger | None = None, **extra_fields):
        """
        Args:
            operation_name: Human-readable step name
            logger: Logger to write to (package logger if None)
            **extra_fields: Fields added to both log lines
        """
        self.operation_name = operation_name
        self.logger = logger or get_logger()
        self.extra_fields = extra_fields
        self.duration: float | None = None
        self._started = 0.0

    def _fields(self, **values) -> dict:
        return {"operation": self.operation_name, **self.extra_fields, **values}

    def __enter__(self):
        self._started = time.perf_counter()
        self.logger.info(f"Starting: {self.operation_name}", extra=self._fields())
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.perf_counter() - self._started
        elapsed = round(self.duration, 3)

        if exc_type is None:
            self.logger.info(
                f"Completed: {self.operation_name} in {elapsed}s",
                extra=self._fields(duration_seconds=elapsed, status="success"),
            )
        else:
            self.logger.error(
                f"Failed: {self.operation_name} after {elapsed}s ({exc_type.__name__}: {exc_val})",
                extra=self._fields(
                    duration_seconds=elapsed,
                    status="error",
                    error_type=exc_type.__name__,
                ),
            )
        return False
