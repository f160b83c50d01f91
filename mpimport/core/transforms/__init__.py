"""
Per-record transforms applied between the source and the batcher.
"""

from .alias_transform import AliasTransform
from .base_transform import DROPPED, BaseTransform, to_epoch_millis
from .chain import TransformChain, TransformFunction, is_empty
from .dedupe_transform import DedupeTransform
from .filter_transform import WhiteBlackListTransform
from .normalize_transform import NormalizeTransform
from .null_transform import RemoveNullsTransform
from .property_transforms import (
    FlattenPropertiesTransform,
    InsertIdTupleTransform,
    ScrubPropertiesTransform,
)
from .tag_transform import TagTransform
from .time_transform import EpochFilterTransform, TimeOffsetTransform

__all__ = [
    "DROPPED",
    "BaseTransform",
    "TransformChain",
    "TransformFunction",
    "is_empty",
    "to_epoch_millis",
    "AliasTransform",
    "NormalizeTransform",
    "RemoveNullsTransform",
    "TimeOffsetTransform",
    "TagTransform",
    "WhiteBlackListTransform",
    "EpochFilterTransform",
    "DedupeTransform",
    "ScrubPropertiesTransform",
    "FlattenPropertiesTransform",
    "InsertIdTupleTransform",
]
