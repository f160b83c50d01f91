"""
Tag transform: merges static tags into every record.
"""

from typing import Any

from mpimport.core.models import ImportOptions

from .base_transform import BaseTransform, property_bag


class TagTransform(BaseTransform):
    """
    Merges the tags mapping into event properties or the profile operation.

    Tags win over existing keys of the same name.
    """

    @classmethod
    def is_enabled(cls, options: ImportOptions) -> bool:
        return bool(options.tags) and options.record_type in ("event", "user", "group")

    @property
    def name(self) -> str:
        return "tags"

    def apply(self, record: Any) -> Any:
        bag = property_bag(record, self.options.record_type)
        if bag is not None:
            bag.update(self.options.tags)
        return record
