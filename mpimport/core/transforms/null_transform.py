"""
Null transform: strips null and empty values from record properties.
"""

from typing import Any

from mpimport.core.constants import PROFILE_OPERATIONS
from mpimport.core.models import ImportOptions

from .base_transform import BaseTransform

_CONTAINER_KEYS = ("properties",) + PROFILE_OPERATIONS


def is_blank(value: Any) -> bool:
    """True for None, "", {} and []."""
    if value is None:
        return True
    if isinstance(value, (str, dict, list)) and len(value) == 0:
        return True
    return False


class RemoveNullsTransform(BaseTransform):
    """Removes None, "", {} and [] values from properties and profile operations."""

    @classmethod
    def is_enabled(cls, options: ImportOptions) -> bool:
        return options.remove_nulls

    @property
    def name(self) -> str:
        return "remove_nulls"

    def apply(self, record: Any) -> Any:
        if not isinstance(record, dict):
            return record
        for key in _CONTAINER_KEYS:
            values = record.get(key)
            if isinstance(values, dict):
                record[key] = {k: v for k, v in values.items() if not is_blank(v)}
        return record
