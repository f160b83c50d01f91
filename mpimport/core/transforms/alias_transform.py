"""
Alias transform: renames record keys according to the aliases option.
"""

from typing import Any

from mpimport.core.models import ImportOptions

from .base_transform import BaseTransform, operation_key


def rename_keys(values: dict[str, Any], aliases: dict[str, str]) -> dict[str, Any]:
    """Return a copy of values with aliased keys renamed, preserving order."""
    return {aliases.get(key, key): value for key, value in values.items()}


class AliasTransform(BaseTransform):
    """
    Renames keys using the aliases mapping.

    Events: keys inside properties, or top-level keys when the record has
    no properties yet. Profiles: keys inside the operation, or top-level
    keys when no operation is present.

    Parameters (from options):
        aliases: {"source_key": "target_key", ...}
    """

    @classmethod
    def is_enabled(cls, options: ImportOptions) -> bool:
        return bool(options.aliases)

    @property
    def name(self) -> str:
        return "aliases"

    def apply(self, record: Any) -> Any:
        if not isinstance(record, dict):
            return record
        aliases = self.options.aliases

        if self.options.record_type == "event":
            if isinstance(record.get("properties"), dict):
                record["properties"] = rename_keys(record["properties"], aliases)
                return record
            return rename_keys(record, aliases)

        if self.options.record_type in ("user", "group"):
            op = operation_key(record)
            if op and isinstance(record[op], dict):
                record[op] = rename_keys(record[op], aliases)
                return record
            return rename_keys(record, aliases)

        return record
