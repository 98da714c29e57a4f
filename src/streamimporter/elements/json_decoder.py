"""JSON record decoder.

Implements the :class:`~streamimporter.elements.base.RecordDecoder`
protocol for records whose payload is a UTF-8 JSON object::

    {
        "streamName": "kickEvent",
        "category": "EVENT",
        "atomic": true,
        "generationTimestamp": 1510916436123,
        "objectIdentifiers": ["A1"],
        "groupIdentifiers": ["A"],
        "positions": [[10.5, -3.2, 0.0]],
        "payload": {"velocity": 12.3},
        "eventIdentifier": "kick_17",
        "phase": "START",
        "sequenceNumber": 0
    }

Elements of the metadata stream carry their match metadata inside
``payload`` (see :data:`METADATA_PAYLOAD_KEYS`).
"""

from __future__ import annotations

import math
from typing import Any

import orjson

from streamimporter.elements.schemas import (
    METADATA_STREAM_NAME,
    DecodedElement,
    MatchMetadataElement,
    Position,
    RawRecord,
    StreamCategory,
)
from streamimporter.exceptions import DecodeError

METADATA_PAYLOAD_KEYS: dict[str, str] = {
    "generationTimestampFirstElement": "reference_timestamp",
    "matchStartVideoOffset": "video_offset",
    "sport": "sport",
    "fieldLength": "field_length",
    "fieldWidth": "field_width",
    "matchStartUnixTs": "match_start_unix_ts",
    "competition": "competition",
    "venue": "venue",
    "videoPath": "video_path",
    "teamRenameMap": "team_rename_map",
    "objectRenameMap": "object_rename_map",
    "teamColorMap": "team_color_map",
}

_INT_METADATA_FIELDS: frozenset[str] = frozenset(
    {"reference_timestamp", "video_offset", "match_start_unix_ts"}
)
_FLOAT_METADATA_FIELDS: frozenset[str] = frozenset({"field_length", "field_width"})


def _optional_int(value: object, name: str) -> int | None:
    """Return *value* as int, ``None`` when absent."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        msg = f"{name} must be a number, got {value!r}"
        raise DecodeError(msg)
    if isinstance(value, float) and not math.isfinite(value):
        msg = f"{name} must be finite, got {value!r}"
        raise DecodeError(msg)
    return int(value)


def _optional_float(value: object, name: str) -> float | None:
    """Return *value* as float, ``None`` when absent."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        msg = f"{name} must be a number, got {value!r}"
        raise DecodeError(msg)
    return float(value)


def _optional_str(value: object, name: str) -> str | None:
    """Return *value* as str, ``None`` when absent."""
    if value is None:
        return None
    if not isinstance(value, str):
        msg = f"{name} must be a string, got {value!r}"
        raise DecodeError(msg)
    return value


def _string_list(value: object, name: str) -> tuple[str, ...]:
    """Return a list of identifiers as a tuple of strings."""
    if value is None:
        return ()
    if not isinstance(value, list):
        msg = f"{name} must be a list, got {value!r}"
        raise DecodeError(msg)
    return tuple(str(v) for v in value)


def _parse_positions(value: object) -> tuple[Position, ...]:
    """Convert ``[[x, y, z], ...]`` into :class:`Position` tuples.

    The z coordinate is optional and defaults to ``0.0``.
    """
    if value is None:
        return ()
    if not isinstance(value, list):
        msg = f"positions must be a list, got {value!r}"
        raise DecodeError(msg)

    positions: list[Position] = []
    for raw in value:
        if not isinstance(raw, list) or len(raw) not in (2, 3):
            msg = f"position must be a list of 2 or 3 numbers, got {raw!r}"
            raise DecodeError(msg)
        coords = [_optional_float(c, "position coordinate") for c in raw]
        if any(c is None for c in coords):
            msg = f"position coordinates must not be null, got {raw!r}"
            raise DecodeError(msg)
        x, y = coords[0], coords[1]
        z = coords[2] if len(coords) == 3 else 0.0
        positions.append(Position(x=x, y=y, z=z))  # type: ignore[arg-type]
    return tuple(positions)


def _parse_category(value: object) -> StreamCategory | None:
    """Map a category label onto :class:`StreamCategory`."""
    if value is None:
        return None
    try:
        return StreamCategory(value)
    except ValueError as exc:
        msg = f"Unknown stream category {value!r}"
        raise DecodeError(msg) from exc


class JsonRecordDecoder:
    """Decoder for JSON-encoded data stream elements.

    Satisfies the :class:`~streamimporter.elements.base.RecordDecoder`
    protocol.

    Attributes:
        _metadata_stream: Stream name whose elements are decoded as
            :class:`MatchMetadataElement`.
    """

    __slots__ = ("_metadata_stream",)

    def __init__(self, metadata_stream: str = METADATA_STREAM_NAME) -> None:
        self._metadata_stream = metadata_stream

    def decode(self, record: RawRecord) -> DecodedElement:
        """Decode a JSON record into a typed element.

        Args:
            record: Raw Kafka record.

        Returns:
            A :class:`DecodedElement`, or a :class:`MatchMetadataElement`
            for the metadata stream.

        Raises:
            DecodeError: If the payload is not a JSON object or any
                field has the wrong type.
        """
        try:
            raw = orjson.loads(record.payload)
        except orjson.JSONDecodeError as exc:
            msg = f"Record {record.topic}@{record.sequence} is not valid JSON: {exc}"
            raise DecodeError(msg) from exc

        if not isinstance(raw, dict):
            msg = f"Record {record.topic}@{record.sequence} must be a JSON object"
            raise DecodeError(msg)

        stream_name = raw.get("streamName")
        if not isinstance(stream_name, str):
            msg = f"Record {record.topic}@{record.sequence} has no streamName"
            raise DecodeError(msg)

        payload = raw.get("payload")
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            msg = f"payload must be an object, got {payload!r}"
            raise DecodeError(msg)

        atomic = raw.get("atomic", True)
        if not isinstance(atomic, bool):
            msg = f"atomic must be a boolean, got {atomic!r}"
            raise DecodeError(msg)

        common: dict[str, Any] = {
            "stream_name": stream_name,
            "entity_id": record.key,
            "category": _parse_category(raw.get("category")),
            "atomic": atomic,
            "generation_timestamp": _optional_int(
                raw.get("generationTimestamp"), "generationTimestamp"
            ),
            "object_ids": _string_list(raw.get("objectIdentifiers"), "objectIdentifiers"),
            "group_ids": _string_list(raw.get("groupIdentifiers"), "groupIdentifiers"),
            "positions": _parse_positions(raw.get("positions")),
            "payload": payload,
            "event_id": _optional_str(raw.get("eventIdentifier"), "eventIdentifier"),
            "phase": _optional_str(raw.get("phase"), "phase"),
            "sequence_number": _optional_int(raw.get("sequenceNumber"), "sequenceNumber"),
            "offset": record.sequence,
        }

        if stream_name == self._metadata_stream:
            return MatchMetadataElement(**common, **self._metadata_fields(payload))
        return DecodedElement(**common)

    @staticmethod
    def _metadata_fields(payload: dict[str, Any]) -> dict[str, Any]:
        """Extract the match metadata attributes from a payload.

        Args:
            payload: The ``payload`` object of a metadata element.

        Returns:
            Keyword arguments for :class:`MatchMetadataElement`.
        """
        result: dict[str, Any] = {}
        for key, attr in METADATA_PAYLOAD_KEYS.items():
            value = payload.get(key)
            if attr in _INT_METADATA_FIELDS:
                result[attr] = _optional_int(value, key)
            elif attr in _FLOAT_METADATA_FIELDS:
                result[attr] = _optional_float(value, key)
            else:
                result[attr] = _optional_str(value, key)
        return result
