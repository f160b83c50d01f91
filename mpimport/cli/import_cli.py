"""
Command-line interface for bulk imports.

Usage:
    mp-import import --input <path> [options]
    python -m mpimport.cli.import_cli import --input <path> [options]
"""

import argparse
import json
import sys
from typing import Any

from dotenv import load_dotenv

from mpimport.batch.pipeline import import_data
from mpimport.core.errors import MpImportError
from mpimport.observability.logger import get_logger, set_level
from mpimport.observability.metrics import start_metrics_server

logger = get_logger(__name__)

# argparse dest -> option key understood by build_config
OPTION_ARGS = (
    "project",
    "acct",
    "password",
    "secret",
    "token",
    "bearer",
    "lookup_table_id",
    "group_key",
    "record_type",
    "region",
    "stream_format",
    "records_per_batch",
    "bytes_per_batch",
    "workers",
    "max_retries",
    "timeout",
    "compress",
    "compression_level",
    "strict",
    "force_stream",
    "max_records",
    "fix_data",
    "remove_nulls",
    "flatten_data",
    "dedupe",
    "time_offset",
    "start",
    "end",
    "tags",
    "aliases",
    "event_whitelist",
    "event_blacklist",
    "prop_key_whitelist",
    "prop_key_blacklist",
    "scrub_props",
    "insert_id_tuple",
    "dry_run",
    "abridged",
    "write_to_file",
    "output_file_path",
    "logs",
    "where",
    "verbose",
)


def collect_cli_args(args: argparse.Namespace) -> dict[str, Any]:
    """
    Gather the option flags that were actually given.

    Args:
        args: Parsed arguments

    Returns:
        Dictionary of option keys to values, without unset flags
    """
    return {
        name: getattr(args, name)
        for name in OPTION_ARGS
        if getattr(args, name, None) is not None
    }


def import_command(args: argparse.Namespace) -> None:
    """
    Execute the import command.

    Args:
        args: Command-line arguments
    """
    if args.log_level:
        set_level(args.log_level)
    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    cli_args = collect_cli_args(args)
    logger.info(f"Starting import of {args.input}")

    try:
        summary = import_data(None, args.input, None, cli_args=cli_args, config_path=args.config)
    except MpImportError as e:
        logger.error(f"Import failed: {e}", exc_info=args.log_level == "DEBUG")
        if e.summary is not None:
            print(json.dumps(e.summary.model_dump(), indent=2, default=str))
        sys.exit(1)

    print(json.dumps(summary.model_dump(), indent=2, default=str))


def _add_flag(parser: argparse.ArgumentParser, flag: str, help_text: str, dest: str | None = None) -> None:
    """Boolean flag that stays None unless given, so lower config layers still apply."""
    parser.add_argument(flag, dest=dest, action="store_true", default=None, help=help_text)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="mp-import",
        description="Bulk import of events, user profiles, group profiles and lookup tables",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import a folder of JSONL event files with a service account
  mp-import import --input data/events/ --project 2943452 \\
      --acct import-bot --pass s3cr3t

  # Import user profiles from a CSV file, repairing their shape
  mp-import import --input users.csv --type user --token abc123 --fix-data

  # Transform and batch without sending anything
  mp-import import --input data/events.jsonl --secret s3cr3t --dry-run

  # Use a YAML job file; flags override its values
  mp-import import --input data/events.json --config jobs/backfill.yaml --workers 20
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    import_parser = subparsers.add_parser("import", help="Import records from a file, folder or URL")
    import_parser.add_argument("--input", required=True, help="File, folder, cloud URL or raw JSON text")
    import_parser.add_argument("--config", default=None, help="Path to a YAML job file")

    # Credentials
    creds = import_parser.add_argument_group("credentials")
    creds.add_argument("--project", help="Project id (required with a service account)")
    creds.add_argument("--acct", help="Service account username")
    creds.add_argument("--pass", dest="password", help="Service account secret")
    creds.add_argument("--secret", help="Project API secret")
    creds.add_argument("--token", help="Project token")
    creds.add_argument("--bearer", help="OAuth bearer token")
    creds.add_argument("--table-id", dest="lookup_table_id", help="Lookup table id (--type table)")
    creds.add_argument("--group-key", dest="group_key", help="Group key (--type group)")

    # Routing and source
    source = import_parser.add_argument_group("source")
    source.add_argument(
        "--type",
        dest="record_type",
        help="Record type: event, user, group or table (default: event)",
    )
    source.add_argument("--region", choices=["US", "EU", "IN"], help="Data residency region (default: US)")
    source.add_argument(
        "--format",
        dest="stream_format",
        choices=["jsonl", "json", "csv", "parquet"],
        help="Input format (default: from the file extension)",
    )
    _add_flag(source, "--force-stream", "Always stream files instead of loading them", "force_stream")
    source.add_argument("--max-records", dest="max_records", type=int, help="Stop after this many records")

    # Batching and dispatch
    tuning = import_parser.add_argument_group("tuning")
    tuning.add_argument("--records-per-batch", dest="records_per_batch", type=int, help="Records per request (max 2000)")
    tuning.add_argument("--bytes-per-batch", dest="bytes_per_batch", type=int, help="Bytes per request (default: 2000000)")
    tuning.add_argument("--workers", type=int, help="Concurrent requests (default: 10)")
    tuning.add_argument("--max-retries", dest="max_retries", type=int, help="Retries per batch (default: 10)")
    tuning.add_argument("--timeout", type=float, help="Request timeout in seconds (default: 60)")
    tuning.add_argument(
        "--no-compress", dest="compress", action="store_false", default=None, help="Send events uncompressed"
    )
    tuning.add_argument("--compression-level", dest="compression_level", type=int, help="gzip level 0-9")
    tuning.add_argument(
        "--no-strict", dest="strict", action="store_false", default=None, help="Let the API accept invalid events"
    )

    # Transforms
    transforms = import_parser.add_argument_group("transforms")
    _add_flag(transforms, "--fix-data", "Repair record shape, time and insert ids", "fix_data")
    _add_flag(transforms, "--remove-nulls", "Drop null and empty property values", "remove_nulls")
    _add_flag(transforms, "--flatten", "Flatten nested properties into dotted keys", "flatten_data")
    _add_flag(transforms, "--dedupe", "Drop exact duplicate records", "dedupe")
    transforms.add_argument("--offset", dest="time_offset", type=float, help="Shift event times by N hours")
    transforms.add_argument("--start", help="Skip events before this date (YYYY-MM-DD)")
    transforms.add_argument("--end", help="Skip events after this date (YYYY-MM-DD)")
    transforms.add_argument("--tags", help='JSON object merged into every record, e.g. \'{"source": "backfill"}\'')
    transforms.add_argument("--aliases", help="JSON object of key renames")
    transforms.add_argument("--event-whitelist", dest="event_whitelist", help="Comma-separated event names to keep")
    transforms.add_argument("--event-blacklist", dest="event_blacklist", help="Comma-separated event names to drop")
    transforms.add_argument("--prop-key-whitelist", dest="prop_key_whitelist", help="Keep events with any of these keys")
    transforms.add_argument("--prop-key-blacklist", dest="prop_key_blacklist", help="Drop events with any of these keys")
    transforms.add_argument("--scrub-props", dest="scrub_props", help="Comma-separated property keys to remove")
    transforms.add_argument("--insert-id-tuple", dest="insert_id_tuple", help="Comma-separated keys hashed into $insert_id")

    # Output
    output = import_parser.add_argument_group("output")
    _add_flag(output, "--dry-run", "Transform and batch without sending", "dry_run")
    _add_flag(output, "--abridged", "Omit successful responses from the summary", "abridged")
    _add_flag(output, "--write-to-file", "Write transformed records to a file instead of sending", "write_to_file")
    output.add_argument("--output-file", dest="output_file_path", help="Path for --write-to-file")
    _add_flag(output, "--logs", "Write the summary as JSON to the --where folder", "logs")
    output.add_argument("--where", help="Folder for summary logs (default: ./logs)")
    _add_flag(output, "--verbose", "Log progress while dispatching", "verbose")
    output.add_argument(
        "--log-level",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: LOG_LEVEL env var or INFO)",
    )
    output.add_argument("--metrics-port", dest="metrics_port", type=int, help="Expose Prometheus metrics on this port")

    return parser


def main(argv: list[str] | None = None):
    """Main CLI entry point."""
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "import":
        import_command(args)


if __name__ == "__main__":
    main()
