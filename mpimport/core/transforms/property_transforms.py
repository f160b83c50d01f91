"""
Property transforms: scrubbing, nested flattening and tuple-based insert ids.
"""

from typing import Any

from mpimport.core.models import ImportOptions
from mpimport.utils.serialization import hash_parts

from .base_transform import BaseTransform, property_bag


def scrub(values: dict[str, Any], keys: set[str]) -> dict[str, Any]:
    """Remove keys at any depth of a nested dict."""
    cleaned = {}
    for key, value in values.items():
        if key in keys:
            continue
        cleaned[key] = scrub(value, keys) if isinstance(value, dict) else value
    return cleaned


def flatten(values: dict[str, Any], separator: str = ".", prefix: str = "") -> dict[str, Any]:
    """
    Flatten nested dicts into separator-joined keys. Lists are left as-is.

    >>> flatten({"a": {"b": 1, "c": {"d": 2}}, "e": [1]})
    {'a.b': 1, 'a.c.d': 2, 'e': [1]}
    """
    flat: dict[str, Any] = {}
    for key, value in values.items():
        full_key = f"{prefix}{separator}{key}" if prefix else str(key)
        if isinstance(value, dict) and value:
            flat.update(flatten(value, separator, full_key))
        else:
            flat[full_key] = value
    return flat


class ScrubPropertiesTransform(BaseTransform):
    """Removes the scrub_props keys from properties or the profile operation."""

    @classmethod
    def is_enabled(cls, options: ImportOptions) -> bool:
        return bool(options.scrub_props)

    @property
    def name(self) -> str:
        return "scrub_props"

    def __init__(self, job):
        super().__init__(job)
        self.keys = set(self.options.scrub_props)

    def apply(self, record: Any) -> Any:
        if not isinstance(record, dict):
            return record
        if self.options.record_type == "event":
            if isinstance(record.get("properties"), dict):
                record["properties"] = scrub(record["properties"], self.keys)
            return record
        return scrub(record, self.keys)


class FlattenPropertiesTransform(BaseTransform):
    """Flattens nested objects in properties into dotted keys."""

    @classmethod
    def is_enabled(cls, options: ImportOptions) -> bool:
        return options.flatten_data

    @property
    def name(self) -> str:
        return "flatten_data"

    def apply(self, record: Any) -> Any:
        bag = property_bag(record, self.options.record_type)
        if bag is None:
            return record
        flat = flatten(bag)
        bag.clear()
        bag.update(flat)
        return record


class InsertIdTupleTransform(BaseTransform):
    """
    Sets $insert_id from a hash of the insert_id_tuple property values.

    Values are looked up in properties first, then at the top level.
    Records with none of the keys are left untouched.
    """

    @classmethod
    def is_enabled(cls, options: ImportOptions) -> bool:
        return options.record_type == "event" and bool(options.insert_id_tuple)

    @property
    def name(self) -> str:
        return "insert_id_tuple"

    def apply(self, record: Any) -> Any:
        props = property_bag(record, "event")
        if props is None:
            return record

        parts = []
        for key in self.options.insert_id_tuple:
            parts.append(props.get(key, record.get(key)))
        if all(part is None for part in parts):
            return record

        props["$insert_id"] = hash_parts(*parts)
        return record
