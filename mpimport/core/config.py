"""
Configuration loading and merging.

Options come from four layers, highest precedence first:

1. explicit arguments passed to import_data()
2. CLI flags
3. a YAML job file
4. MP_* environment variables

Keys may be snake_case or camelCase. Credential keys and option keys can
be mixed freely in every layer; they are split before validation.
"""

import os
import re
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from mpimport.core.constants import ENV_OPTION_MAP
from mpimport.core.errors import ConfigurationError
from mpimport.core.models import Credentials, ImportOptions

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")

# Keys whose snake_case form differs from the camelCase original
_KEY_ALIASES = {
    "pass": "password",
    "type": "record_type",
    "format": "stream_format",
    "transform": "transform_func",
    "scrub_properties": "scrub_props",
    "white_list": "event_whitelist",
    "black_list": "event_blacklist",
    "concurrent": "concurrency",
}

CREDENTIAL_KEYS = frozenset(Credentials.model_fields)


def normalize_key(key: str) -> str:
    """
    Convert an option key to its snake_case model name.

    >>> normalize_key("recordsPerBatch")
    'records_per_batch'
    >>> normalize_key("pass")
    'password'
    """
    snake = _CAMEL_BOUNDARY.sub(r"_\1", key.replace("-", "_")).lower()
    return _KEY_ALIASES.get(snake, snake)


def normalize_keys(values: Mapping[str, Any] | None) -> dict[str, Any]:
    """Normalize every key of a mapping, dropping None values."""
    if not values:
        return {}
    return {normalize_key(k): v for k, v in values.items() if v is not None}


def load_config_file(config_path: str | Path) -> dict[str, Any]:
    """
    Load options from a YAML job file.

    Expected YAML format:
    ```yaml
    credentials:
      project: 2943452
      acct: import-bot
      pass: s3cr3t
    options:
      recordType: event
      workers: 20
      tags:
        import_source: backfill
    ```

    A flat mapping (no credentials/options sections) is accepted as well.

    Args:
        config_path: Path to the YAML file

    Returns:
        Flat dictionary of normalized keys

    Raises:
        ConfigurationError: If the file is missing or not a mapping
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    with open(path) as f:
        try:
            config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError("Configuration file must contain a mapping")

    merged: dict[str, Any] = {}
    for section in ("credentials", "options"):
        section_values = config.pop(section, None) or {}
        if not isinstance(section_values, dict):
            raise ConfigurationError(f"'{section}' section must be a mapping")
        merged.update(normalize_keys(section_values))
    merged.update(normalize_keys(config))
    return merged


def options_from_env(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """
    Read MP_* environment variables.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Dictionary of normalized keys for every variable that is set
    """
    environ = os.environ if environ is None else environ
    values = {}
    for var, key in ENV_OPTION_MAP.items():
        value = environ.get(var)
        if value:
            values[key] = value
    return values


def date_to_epoch(value: Any, end_of_day: bool = False, field_name: str = "date") -> int:
    """
    Convert a date or datetime to unix seconds (UTC).

    Date-only values resolve to the first second of the day, or the last
    one when end_of_day is set.

    >>> date_to_epoch("2024-01-01")
    1704067200
    >>> date_to_epoch("2024-01-01", end_of_day=True)
    1704153599

    Raises:
        ConfigurationError: If the value is not a recognizable date
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, datetime.min.time())
        if end_of_day:
            parsed = parsed.replace(hour=23, minute=59, second=59)
    else:
        text = str(value).strip()
        if text.isdigit():
            return int(text)
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as e:
            raise ConfigurationError(f"{field_name} is not a valid date: {value!r}") from e
        if end_of_day and len(text) == 10:
            parsed = parsed.replace(hour=23, minute=59, second=59)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def merge_layers(*layers: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Merge option layers, highest precedence first.

    Args:
        *layers: Mappings ordered from highest to lowest precedence

    Returns:
        Single flat dictionary
    """
    merged: dict[str, Any] = {}
    for layer in reversed(layers):
        merged.update(normalize_keys(layer))
    return merged


def build_config(
    credentials: Mapping[str, Any] | Credentials | None = None,
    options: Mapping[str, Any] | ImportOptions | None = None,
    cli_args: Mapping[str, Any] | None = None,
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> tuple[Credentials, ImportOptions]:
    """
    Resolve and validate credentials and options for one run.

    Args:
        credentials: Explicit credentials (mapping or model)
        options: Explicit options (mapping or model)
        cli_args: Values parsed from CLI flags
        config_path: Optional YAML job file
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Tuple of (Credentials, ImportOptions)

    Raises:
        ConfigurationError: If any value fails validation
    """
    if isinstance(credentials, Credentials):
        credentials = {k: getattr(credentials, k) for k in credentials.model_fields_set}
    if isinstance(options, ImportOptions):
        options = {k: getattr(options, k) for k in options.model_fields_set}

    explicit = {**normalize_keys(credentials), **normalize_keys(options)}
    file_values = load_config_file(config_path) if config_path else {}
    merged = merge_layers(explicit, cli_args, file_values, options_from_env(environ))

    # start/end dates fill in the epoch window when it isn't given directly
    start = merged.pop("start", None)
    end = merged.pop("end", None)
    if start is not None and merged.get("epoch_start") is None:
        merged["epoch_start"] = date_to_epoch(start, field_name="start")
    if end is not None and merged.get("epoch_end") is None:
        merged["epoch_end"] = date_to_epoch(end, end_of_day=True, field_name="end")

    cred_values = {k: v for k, v in merged.items() if k in CREDENTIAL_KEYS}
    option_values = {k: v for k, v in merged.items() if k not in CREDENTIAL_KEYS}

    try:
        return Credentials(**cred_values), ImportOptions(**option_values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid import configuration: {e}") from e
