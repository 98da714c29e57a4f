"""Decoded element layer for the Stream Importer.

Re-exports the record and element schemas, the decoder protocol, and
the JSON decoder so that downstream code can import everything from
:mod:`streamimporter.elements`.
"""

from streamimporter.elements.base import RecordDecoder
from streamimporter.elements.json_decoder import JsonRecordDecoder
from streamimporter.elements.schemas import (
    METADATA_STREAM_NAME,
    DecodedElement,
    DependencyEntry,
    MatchMetadataElement,
    Position,
    RawRecord,
    StreamCategory,
)

__all__ = [
    "METADATA_STREAM_NAME",
    "DecodedElement",
    "DependencyEntry",
    "JsonRecordDecoder",
    "MatchMetadataElement",
    "Position",
    "RawRecord",
    "RecordDecoder",
    "StreamCategory",
]
