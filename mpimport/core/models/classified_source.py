"""
ClassifiedSource model: the tagged result of classifying an input reference.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

SourceKind = Literal[
    "external_stream",
    "in_memory",
    "file",
    "directory",
    "file_list",
    "cloud",
    "raw_string",
]


class ClassifiedSource(BaseModel):
    """
    An input reference tagged with the kind of source it is.

    Attributes:
        kind: Source kind the reference was classified as
        reference: The original reference (path, collection, stream, string)
        paths: Resolved file paths for file, directory and file_list kinds
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: SourceKind
    reference: Any
    paths: list[str] = []
