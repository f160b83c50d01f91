"""
Compact JSON serialization shared by byte accounting, batching and dispatch.

All three must agree on the exact bytes, so they all go through here.
"""

import hashlib
import json
from typing import Any


def to_json(value: Any) -> str:
    """Serialize without whitespace; non-JSON values (dates, decimals) become strings."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def json_size(value: Any) -> int:
    """UTF-8 byte length of the compact JSON form of a value."""
    return len(to_json(value).encode("utf-8"))


def stable_hash(value: Any) -> str:
    """
    Deterministic hash of a value, independent of dict key order.

    >>> stable_hash({"b": 1, "a": 2}) == stable_hash({"a": 2, "b": 1})
    True
    """
    payload = json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


def hash_parts(*parts: Any) -> str:
    """Hash of the dash-joined string form of the parts."""
    joined = "-".join("" if part is None else str(part) for part in parts)
    return hashlib.md5(joined.encode("utf-8")).hexdigest()
