"""Destination documents for the Stream Importer.

Provides the conversion of data elements into normalized documents and
of match metadata elements into match documents.
"""

from streamimporter.documents.metadata import (
    MatchDocument,
    TeamRoster,
    build_match_document,
    parse_embedded_map,
    parse_roster,
)
from streamimporter.documents.transformer import (
    COORDINATE_MAX,
    COORDINATE_MIN,
    NormalizedDocument,
    compute_ts,
    compute_video_ts,
    transform_element,
)

__all__ = [
    "COORDINATE_MAX",
    "COORDINATE_MIN",
    "MatchDocument",
    "NormalizedDocument",
    "TeamRoster",
    "build_match_document",
    "compute_ts",
    "compute_video_ts",
    "parse_embedded_map",
    "parse_roster",
    "transform_element",
]
