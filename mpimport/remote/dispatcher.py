"""
Dispatcher: sends batches under bounded concurrency with retry and backoff.

Network mechanics live here; bookkeeping does not. Every batch ends as a
DispatchOutcome that JobState.apply_outcome() turns into counters.
"""

import gzip
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

import requests
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from mpimport.core.constants import AUTH_FAILURE_STATUS_CODES, RETRYABLE_STATUS_CODES
from mpimport.core.errors import (
    DispatchRejectedError,
    DispatchRetryableError,
    FatalAuthError,
    FatalDispatchError,
)
from mpimport.core.job import JobState
from mpimport.core.models import Batch, DispatchOutcome
from mpimport.observability.logger import get_logger
from mpimport.utils.serialization import to_json

from .connection import ApiConnection

logger = get_logger(__name__)

# Transport faults worth retrying: resets, refusals, DNS failures, timeouts
TRANSIENT_NETWORK_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    requests.exceptions.ChunkedEncodingError,
)

MALFORMED_REQUEST_ERRORS = (
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.InvalidURL,
)


def classify_status(status_code: int | None) -> str:
    """
    Map the status of a retried request to its retry reason.

    >>> classify_status(429), classify_status(502), classify_status(408)
    ('rate_limited', 'server_error', 'client_error')
    """
    if status_code == 429:
        return "rate_limited"
    if status_code is not None and status_code >= 500:
        return "server_error"
    return "client_error"


def parse_body(response: requests.Response) -> Any:
    """JSON body of a response, or its text when it isn't JSON."""
    try:
        return response.json()
    except ValueError:
        return response.text


class Dispatcher:
    """
    Sends batches to the ingestion API.

    At most `workers` batches are in flight. submit() blocks while every
    slot is busy, which keeps the producer from running ahead of the
    network. Retryable failures (429, 5xx, transient network faults) are
    retried with exponential backoff and jitter up to max_retries times.
    Non-retryable responses are recorded as rejected. Fatal errors (bad
    credentials, malformed URL) stop new submissions and are re-raised
    once in-flight work has drained.
    """

    def __init__(self, job: JobState, connection: ApiConnection | None = None, session: Any = None):
        """
        Initialize dispatcher.

        Args:
            job: Run state
            connection: Prepared connection (built from the job by default)
            session: requests-compatible session for the default connection

        Raises:
            FatalAuthError: If no usable credentials exist
        """
        self.job = job
        self.options = job.options
        self.connection = connection or ApiConnection(job.credentials, job.options, session=session)
        self.workers = self.options.workers

        self._executor = ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="mpimport-dispatch"
        )
        self._slots = threading.BoundedSemaphore(self.workers)
        self._lock = threading.Lock()
        self._futures: set[Future] = set()
        self._inflight = 0
        self._completed = 0
        self._fatal: Exception | None = None
        self._stopped = threading.Event()

    # ------------------------------------------------------------------
    # Concurrency
    # ------------------------------------------------------------------

    def submit(self, batch: Batch) -> None:
        """
        Queue a batch for dispatch, blocking while all workers are busy.

        Raises:
            FatalDispatchError: The fatal error of an earlier batch, if any
        """
        self._raise_if_fatal()
        self._slots.acquire()
        if self._stopped.is_set():
            self._slots.release()
            self._raise_if_fatal()

        with self._lock:
            self._inflight += 1
            self.job.metrics.set_inflight(self._inflight)
        future = self._executor.submit(self._run, batch)
        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._forget)

    def drain(self) -> None:
        """
        Wait for every submitted batch, then shut the pool down.

        Raises:
            FatalDispatchError: The first fatal error raised by any batch
        """
        with self._lock:
            pending = list(self._futures)
        wait(pending)
        self._executor.shutdown(wait=True)
        self.connection.close()
        self._raise_if_fatal()

    def close(self) -> None:
        """Shut down without raising; used when the run already failed."""
        self._stopped.set()
        self._executor.shutdown(wait=True)
        self.connection.close()

    def _raise_if_fatal(self) -> None:
        if self._fatal is not None:
            raise self._fatal

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)

    def _run(self, batch: Batch) -> None:
        try:
            if self._stopped.is_set():
                return
            outcome = self.dispatch(batch)
            self.job.apply_outcome(outcome)
            self.job.metrics.record_batch_dispatched(len(batch), batch.byte_length, outcome.status)
            self._log_progress(outcome)
        except Exception as e:
            with self._lock:
                if self._fatal is None:
                    self._fatal = e
            self._stopped.set()
            logger.error(f"Fatal error dispatching batch {batch.index}: {e}")
        finally:
            with self._lock:
                self._inflight -= 1
                self.job.metrics.set_inflight(self._inflight)
            self._slots.release()

    def _log_progress(self, outcome: DispatchOutcome) -> None:
        with self._lock:
            self._completed += 1
            completed = self._completed
        if self.options.verbose and completed % self.options.progress_interval == 0:
            logger.info(
                f"Dispatched {completed} batches",
                extra={
                    "success": self.job.success,
                    "failed": self.job.failed,
                    "retries": self.job.retries,
                },
            )

    # ------------------------------------------------------------------
    # Single batch
    # ------------------------------------------------------------------

    def encode(self, batch: Batch) -> tuple[bytes, dict[str, str]]:
        """
        Serialize a batch to a request body.

        Events are gzipped when compression is on.

        Returns:
            (body, extra_headers)
        """
        body = to_json(batch.records).encode("utf-8")
        if self.options.record_type == "event" and self.options.compress:
            compressed = gzip.compress(body, compresslevel=self.options.compression_level)
            return compressed, {"Content-Encoding": "gzip"}
        return body, {}

    def dispatch(self, batch: Batch) -> DispatchOutcome:
        """
        Send one batch synchronously, retrying as configured.

        Raises:
            FatalDispatchError: On auth failure or a malformed request
        """
        body, headers = self.encode(batch)
        return self.send_payload(body, headers, batch_index=batch.index, record_count=len(batch))

    def send_payload(
        self,
        body: bytes,
        headers: dict[str, str],
        batch_index: int,
        record_count: int,
    ) -> DispatchOutcome:
        """
        Send a prepared body with retries and classify the result.

        Args:
            body: Request body
            headers: Extra headers for this body
            batch_index: Index reported on the outcome
            record_count: Records carried by the body

        Returns:
            DispatchOutcome of the final attempt

        Raises:
            FatalDispatchError: On auth failure or a malformed request
        """
        failures: list[DispatchRetryableError] = []
        attempts = 0

        retrying = Retrying(
            stop=stop_after_attempt(self.options.max_retries + 1),
            wait=wait_exponential_jitter(
                initial=self.options.retry_backoff_base,
                max=self.options.retry_backoff_max,
                jitter=self.options.retry_backoff_base,
            ),
            retry=retry_if_exception_type(DispatchRetryableError),
            reraise=False,
        )

        try:
            for attempt_state in retrying:
                with attempt_state:
                    attempts = attempt_state.retry_state.attempt_number
                    try:
                        status_code, payload = self._attempt(body, headers)
                    except DispatchRetryableError as e:
                        failures.append(e)
                        logger.debug(
                            f"Batch {batch_index} attempt {attempts} failed ({e.reason}): {e}"
                        )
                        raise
        except RetryError:
            last = failures[-1]
            logger.warning(
                f"Batch {batch_index} failed after {attempts} attempts: {last}",
                extra={"status_code": last.status_code},
            )
            return DispatchOutcome(
                batch_index=batch_index,
                record_count=record_count,
                status="retry_exhausted",
                status_code=last.status_code,
                response=last.response,
                attempts=attempts,
                retry_reasons=[f.reason for f in failures[:-1]],
                error=str(last),
            )
        except DispatchRejectedError as e:
            logger.warning(
                f"Batch {batch_index} rejected with status {e.status_code}",
                extra={"status_code": e.status_code},
            )
            return DispatchOutcome(
                batch_index=batch_index,
                record_count=record_count,
                status="rejected",
                status_code=e.status_code,
                response=e.response,
                attempts=attempts,
                retry_reasons=[f.reason for f in failures],
                error=str(e),
            )

        return DispatchOutcome(
            batch_index=batch_index,
            record_count=record_count,
            status="success",
            status_code=status_code,
            response=payload,
            attempts=attempts,
            retry_reasons=[f.reason for f in failures],
        )

    def _attempt(self, body: bytes, headers: dict[str, str]) -> tuple[int, Any]:
        """
        Make exactly one request and classify its result.

        Returns:
            (status_code, parsed body) for 2xx responses

        Raises:
            DispatchRetryableError: 429/5xx or a transient network fault
            DispatchRejectedError: Any other non-2xx response
            FatalAuthError: 401/403
            FatalDispatchError: Malformed request URL
        """
        try:
            with self.job.metrics.track_request():
                response = self.connection.send(body, headers)
        except MALFORMED_REQUEST_ERRORS as e:
            raise FatalDispatchError(f"Malformed request URL {self.connection.url}: {e}") from e
        except TRANSIENT_NETWORK_ERRORS as e:
            raise DispatchRetryableError(
                f"{type(e).__name__}: {e}", reason=classify_status(None)
            ) from e

        status = response.status_code
        payload = parse_body(response)

        if 200 <= status < 300:
            return status, payload
        if status in AUTH_FAILURE_STATUS_CODES:
            raise FatalAuthError(
                f"Authentication failed with status {status}", status_code=status, response=payload
            )
        if status in RETRYABLE_STATUS_CODES:
            raise DispatchRetryableError(
                f"Retryable status {status}",
                status_code=status,
                response=payload,
                reason=classify_status(status),
            )
        raise DispatchRejectedError(
            f"Rejected with status {status}", status_code=status, response=payload
        )
