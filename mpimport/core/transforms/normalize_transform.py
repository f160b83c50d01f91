"""
Normalize transform: repairs record shape for the target record type.

Enabled by the fix_data option.
"""

from typing import Any

from mpimport.core.models import ImportOptions
from mpimport.observability.logger import get_logger
from mpimport.utils.serialization import hash_parts

from .base_transform import BaseTransform, operation_key, to_epoch_millis

logger = get_logger(__name__)

_USER_ID_KEYS = ("$distinct_id", "distinct_id")
_GROUP_ID_KEYS = ("$distinct_id", "distinct_id", "$group_id", "group_id")


class NormalizeTransform(BaseTransform):
    """
    Generic shape repair.

    Events:
        - flat records get their non-"event" keys moved into properties
        - a non-numeric time is coerced to epoch milliseconds
        - a missing $insert_id is derived from hash(event, distinct_id, time)

    Users and groups:
        - flat records are wrapped in $set with the id lifted out
        - $token (and $group_key for groups) are filled from credentials
        - records without any id become empty
    """

    @classmethod
    def is_enabled(cls, options: ImportOptions) -> bool:
        return options.fix_data and options.record_type in ("event", "user", "group")

    @property
    def name(self) -> str:
        return "normalize"

    def apply(self, record: Any) -> Any:
        if not isinstance(record, dict):
            return record
        record_type = self.options.record_type
        if record_type == "event":
            return self._fix_event(record)
        if record_type == "user":
            return self._fix_profile(record, _USER_ID_KEYS, "$distinct_id")
        return self._fix_profile(record, _GROUP_ID_KEYS, "$group_id")

    def _fix_event(self, record: dict[str, Any]) -> dict[str, Any]:
        if not isinstance(record.get("properties"), dict):
            properties = {k: v for k, v in record.items() if k not in ("event", "properties")}
            record = {"event": record.get("event"), "properties": properties}

        props = record["properties"]
        if "time" in props:
            props["time"] = to_epoch_millis(props["time"])

        if not props.get("$insert_id"):
            props["$insert_id"] = hash_parts(
                record.get("event"), props.get("distinct_id") or "", props.get("time")
            )
        return record

    def _fix_profile(
        self, record: dict[str, Any], id_keys: tuple[str, ...], target_id: str
    ) -> dict[str, Any]:
        if operation_key(record) is None:
            id_key = next((k for k in id_keys if record.get(k)), None)
            if id_key is None:
                logger.debug(f"{self.options.record_type} record has no id; skipping")
                return {}

            values = dict(record)
            identifier = values.pop(id_key)
            for key in id_keys + ("$token",):
                values.pop(key, None)

            # engage query export shape nests everything under $properties
            if isinstance(values.get("$properties"), dict):
                values = dict(values["$properties"])

            record = {target_id: identifier, "$set": values}

        credentials = self.job.credentials
        if not record.get("$token") and credentials.token:
            record["$token"] = credentials.token
        if (
            self.options.record_type == "group"
            and not record.get("$group_key")
            and credentials.group_key
        ):
            record["$group_key"] = credentials.group_key
        return record
