"""
White/black list transform: drops events by name, property key or value.
"""

from typing import Any

from mpimport.core.models import ImportOptions

from .base_transform import DROPPED, BaseTransform


class WhiteBlackListTransform(BaseTransform):
    """
    Filters records against the configured white and black lists.

    Checks run in a fixed order: event whitelist, event blacklist,
    property-key whitelist, property-key blacklist, property-value
    whitelist, property-value blacklist. The first failing check drops
    the record and counts it once under whitelist_skipped or
    blacklist_skipped.
    """

    @classmethod
    def is_enabled(cls, options: ImportOptions) -> bool:
        return options.filters_by_list

    @property
    def name(self) -> str:
        return "white_black_list"

    def __init__(self, job):
        super().__init__(job)
        opts = self.options
        self.event_whitelist = set(map(str, opts.event_whitelist))
        self.event_blacklist = set(map(str, opts.event_blacklist))
        self.key_whitelist = set(map(str, opts.prop_key_whitelist))
        self.key_blacklist = set(map(str, opts.prop_key_blacklist))
        self.val_whitelist = list(opts.prop_val_whitelist)
        self.val_blacklist = list(opts.prop_val_blacklist)

    def apply(self, record: Any) -> Any:
        if not isinstance(record, dict):
            return record
        event = record.get("event")
        props = record.get("properties")
        if not isinstance(props, dict):
            props = {}

        if self.event_whitelist and str(event) not in self.event_whitelist:
            return self._skip("whitelist_skipped")
        if self.event_blacklist and str(event) in self.event_blacklist:
            return self._skip("blacklist_skipped")
        if self.key_whitelist and not self.key_whitelist.intersection(props):
            return self._skip("whitelist_skipped")
        if self.key_blacklist and self.key_blacklist.intersection(props):
            return self._skip("blacklist_skipped")
        if self.val_whitelist and not any(v in self.val_whitelist for v in props.values()):
            return self._skip("whitelist_skipped")
        if self.val_blacklist and any(v in self.val_blacklist for v in props.values()):
            return self._skip("blacklist_skipped")
        return record

    def _skip(self, counter: str):
        self.job.increment(counter)
        return DROPPED
