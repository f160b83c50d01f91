"""
Input validation utilities for import options.

Options arrive from Python callers, CLI flags, YAML files and environment
variables. The helpers here normalize the loosely-typed string forms
(JSON, single-quoted pseudo-JSON, comma-separated lists) into Python
values before the option models validate them.
"""

import json
from typing import Any


class OptionParseError(ValueError):
    """Raised when an option value cannot be parsed."""
    pass


def parse_json_option(value: Any, field_name: str = "option") -> Any:
    """
    Parse a JSON-ish option value.

    Non-string values are returned untouched. Strings are parsed as JSON,
    retrying once with single quotes swapped for double quotes.

    Args:
        value: Raw option value
        field_name: Name of the option (for error messages)

    Returns:
        The parsed value

    Raises:
        OptionParseError: If a string value is not valid JSON

    Examples:
        >>> parse_json_option('{"foo": "bar"}')
        {'foo': 'bar'}
        >>> parse_json_option("{'foo': 'bar'}")
        {'foo': 'bar'}
    """
    if not isinstance(value, str):
        return value

    text = value.strip()
    if not text:
        return None

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    try:
        return json.loads(text.replace("'", '"'))
    except json.JSONDecodeError as e:
        raise OptionParseError(f"{field_name} is not valid JSON: {value!r}") from e


def parse_mapping_option(value: Any, field_name: str = "option") -> dict[str, Any]:
    """
    Parse an option that must resolve to a mapping (tags, aliases).

    Args:
        value: Raw option value (dict, JSON string or None)
        field_name: Name of the option (for error messages)

    Returns:
        A dictionary, empty when the value is missing

    Raises:
        OptionParseError: If the value is not a mapping
    """
    parsed = parse_json_option(value, field_name)
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise OptionParseError(f"{field_name} must be a mapping, got {type(parsed).__name__}")
    return parsed


def parse_list_option(value: Any, field_name: str = "option") -> list[Any]:
    """
    Parse an option that must resolve to a list (white/black lists,
    scrubbed properties, insert id tuples).

    JSON arrays are parsed; any other string is split on commas.

    Args:
        value: Raw option value (list, tuple, JSON string, CSV string or None)
        field_name: Name of the option (for error messages)

    Returns:
        A list, empty when the value is missing

    Raises:
        OptionParseError: If the value cannot be turned into a list

    Examples:
        >>> parse_list_option("foo,bar")
        ['foo', 'bar']
        >>> parse_list_option('["foo", "bar"]')
        ['foo', 'bar']
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            parsed = parse_json_option(text, field_name)
            if isinstance(parsed, list):
                return parsed
        return [part.strip() for part in text.split(",") if part.strip()]
    raise OptionParseError(f"{field_name} must be a list, got {type(value).__name__}")


def parse_bool_option(value: Any, field_name: str = "option") -> bool:
    """
    Parse a boolean option from its string forms.

    Args:
        value: Raw option value
        field_name: Name of the option (for error messages)

    Returns:
        The boolean value

    Raises:
        OptionParseError: If the string is not a recognized boolean
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "y", "on"):
            return True
        if lowered in ("false", "0", "no", "n", "off", ""):
            return False
    raise OptionParseError(f"{field_name} must be a boolean, got {value!r}")
