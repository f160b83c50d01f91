"""
Import pipeline orchestration.

Coordinates the flow: resolve source → transform → batch → dispatch
"""

import itertools
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Mapping

from mpimport.batch.batcher import Batcher
from mpimport.batch.source_resolver import SourceResolver
from mpimport.batch.writers import BatchSink, NDJSONFileSink
from mpimport.core.config import build_config
from mpimport.core.errors import MpImportError, SourceError
from mpimport.core.job import JobState
from mpimport.core.models import Batch, Credentials, ImportOptions, JobSummary
from mpimport.core.transforms import TransformChain
from mpimport.observability.logger import get_logger, log_operation
from mpimport.remote.dispatcher import Dispatcher

logger = get_logger(__name__)


class ImportPipeline:
    """
    Orchestrates one import run.

    Flow:
    1. Resolve the input into a lazy record sequence (capped at max_records)
    2. Apply the transform chain
    3. Group records into dual-bounded batches
    4. Dispatch batches concurrently, or collect them (dry run), or write
       them to a file
    5. Finalize the job into an immutable summary
    """

    def __init__(self, job: JobState, session: Any = None):
        """
        Initialize pipeline.

        Args:
            job: Fresh run state
            session: Optional requests-compatible session for dispatch
        """
        self.job = job
        self.options = job.options
        self.session = session
        self.resolver = SourceResolver(job)
        self.chain = TransformChain(job)
        self.batcher = Batcher(job)

    def run(self, data: Any) -> JobSummary:
        """
        Run the import.

        Args:
            data: Input reference (see classify_source)

        Returns:
            JobSummary of the run

        Raises:
            MpImportError: On any fatal error; the partial summary is
                attached as error.summary
        """
        with log_operation(
            f"Importing {self.options.record_type} records",
            logger=logger,
            record_type=self.options.record_type,
            dry_run=self.options.dry_run,
        ):
            try:
                if self.options.record_type == "table":
                    self._run_table(data)
                else:
                    self._run_records(data)
            except MpImportError as e:
                self.job.finish()
                e.summary = self.job.summary()
                raise

        self.job.finish()
        summary = self.job.summary()
        self.job.metrics.record_run(summary)
        logger.info(
            f"Imported {summary.success} of {summary.total} records "
            f"in {summary.duration_human} ({summary.eps} records/s)",
            extra={
                "failed": summary.failed,
                "empty": summary.empty,
                "batches": summary.batches,
                "retries": summary.retries,
            },
        )
        if self.options.logs:
            write_summary_log(summary, self.options.where)
        return summary

    def records(self, data: Any) -> Iterator[Any]:
        """Raw records of the input, capped at max_records."""
        records = self.resolver.resolve(data)
        if self.options.max_records is not None:
            records = itertools.islice(records, self.options.max_records)
        return records

    def _run_records(self, data: Any) -> None:
        batches = self.batcher.batches(self.chain.process(self.records(data)))

        if self.options.dry_run:
            for batch in batches:
                self.job.add_dry_run_results(batch.records)
            return

        if self.options.write_to_file:
            with NDJSONFileSink(self.options.output_file_path) as sink:
                for batch in batches:
                    sink.write(batch)
                    self._tee(batch)
                    self.job.increment("success", len(batch))
            return

        dispatcher = Dispatcher(self.job, session=self.session)
        try:
            for batch in batches:
                self._tee(batch)
                dispatcher.submit(batch)
        except BaseException:
            dispatcher.close()
            raise
        dispatcher.drain()

    def _tee(self, batch: Batch) -> None:
        sink: BatchSink | None = self.options.tee_sink
        if sink is not None:
            sink.write(batch)

    def _run_table(self, data: Any) -> None:
        """Lookup tables are sent whole, as CSV text, in a single PUT."""
        text = read_table_text(data)
        rows = max(len([line for line in text.splitlines() if line.strip()]) - 1, 0)
        self.job.increment("records_processed", rows)
        self.job.increment("bytes_processed", len(text.encode("utf-8")))
        self.job.record_batch(rows)
        self.job.was_stream = False

        if self.options.dry_run:
            self.job.add_dry_run_results([text])
            return

        dispatcher = Dispatcher(self.job, session=self.session)
        try:
            outcome = dispatcher.send_payload(
                text.encode("utf-8"), {}, batch_index=0, record_count=rows
            )
            self.job.apply_outcome(outcome)
        finally:
            dispatcher.close()


def read_table_text(data: Any) -> str:
    """
    Load lookup-table CSV text from a path or a raw string.

    Raises:
        SourceError: If data is neither an existing file nor CSV text
    """
    if isinstance(data, (str, Path)):
        path = Path(data)
        if len(str(data)) < 4096 and path.is_file():
            return path.read_text(encoding="utf-8")
        if isinstance(data, str) and "\n" in data.strip():
            return data
    raise SourceError("Lookup table imports need a CSV file path or CSV text", reference=data)


def write_summary_log(summary: JobSummary, where: str | Path) -> Path:
    """
    Write the summary as JSON to <where>/import-log-<type>-<timestamp>.json.

    Returns:
        Path of the written log
    """
    folder = Path(where)
    folder.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    path = folder / f"import-log-{summary.record_type}-{stamp}.json"
    with open(path, "w", encoding="utf-8") as f:
        json.dump(summary.model_dump(), f, indent=2, default=str)
    logger.info(f"Wrote import log to {path}")
    return path


def import_data(
    creds: Mapping[str, Any] | Credentials | None = None,
    data: Any = None,
    opts: Mapping[str, Any] | ImportOptions | None = None,
    *,
    cli_args: Mapping[str, Any] | None = None,
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    session: Any = None,
) -> JobSummary:
    """
    Import records into the ingestion API.

    Args:
        creds: Credentials (acct/pass/project, secret, token or bearer)
        data: Input: path, folder, list of paths, list of records,
            iterator, file-like object, cloud URL or raw JSON/JSONL/CSV text
        opts: Import options (snake_case or camelCase keys)
        cli_args: Option values from CLI flags (below explicit options)
        config_path: YAML job file (below CLI flags)
        environ: Environment for MP_* variables (defaults to os.environ)
        session: requests-compatible session to send through

    Returns:
        JobSummary of the run

    Raises:
        ConfigurationError: Invalid options
        SourceError: Unreadable input
        TransformError: The transform function raised
        FatalDispatchError: Unusable credentials or endpoint
    """
    credentials, options = build_config(
        creds, opts, cli_args=cli_args, config_path=config_path, environ=environ
    )
    job = JobState(credentials, options)
    return ImportPipeline(job, session=session).run(data)
