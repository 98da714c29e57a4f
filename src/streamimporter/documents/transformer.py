"""Conversion of decoded data elements into normalized documents.

A data element becomes a :class:`NormalizedDocument` once the reference
values of its match are known. Timestamps are made relative to the
first element of the match and aligned with the match video; every
planar position must lie inside ``[-180.0, 180.0)`` on both axes, the
range MongoDB accepts for 2d indexes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

from streamimporter.exceptions import MissingFieldError, PositionOutOfRangeError

if TYPE_CHECKING:
    from streamimporter.elements.schemas import DecodedElement, DependencyEntry

COORDINATE_MIN: float = -180.0
COORDINATE_MAX: float = 180.0

_INT32_RANGE: int = 1 << 32
_INT32_OFFSET: int = 1 << 31


def compute_ts(generation_timestamp: int, reference_timestamp: int) -> int:
    """Return the ms since the start of the match, wrapped to 32 bits.

    Negative values (clock skew between producers) are kept as they are.

    Args:
        generation_timestamp: Generation timestamp of the element (ms).
        reference_timestamp: Generation timestamp of the first element
            of the match (ms).

    Returns:
        Signed 32-bit difference.
    """
    delta = generation_timestamp - reference_timestamp
    return (delta + _INT32_OFFSET) % _INT32_RANGE - _INT32_OFFSET


def compute_video_ts(
    generation_timestamp: int,
    reference_timestamp: int,
    video_offset: int,
) -> int:
    """Return the position of the element in the match video (s).

    Args:
        generation_timestamp: Generation timestamp of the element (ms).
        reference_timestamp: Generation timestamp of the first element
            of the match (ms).
        video_offset: Video offset of the start of the match (s).

    Returns:
        ``video_offset + floor((generation - reference) / 1000)``.
    """
    return video_offset + (generation_timestamp - reference_timestamp) // 1000


@dataclass(frozen=True, slots=True)
class NormalizedDocument:
    """Destination document for a statistics, state, or event element.

    Attributes:
        type: Stream name of the source element.
        match_id: Identifier of the match.
        ts: Milliseconds since the start of the match.
        video_ts: Seconds since the start of the match video.
        xy_coords: Planar positions as ``[x, y]`` pairs.
        z_coords: Heights of the positions.
        player_ids: Object identifiers of the source element.
        team_ids: Group identifiers of the source element.
        additional_info: Payload fields of the source element.
        event_id: Non-atomic event identifier, ``None`` otherwise.
        phase: Non-atomic event phase, ``None`` otherwise.
        seq_no: Non-atomic event step number, ``None`` otherwise.
    """

    type: str
    match_id: str
    ts: int
    video_ts: int
    xy_coords: list[list[float]]
    z_coords: list[float]
    player_ids: list[str]
    team_ids: list[str]
    additional_info: dict[str, Any] = field(default_factory=dict)
    event_id: str | None = None
    phase: str | None = None
    seq_no: int | None = None

    def to_document(self) -> dict[str, Any]:
        """Return the document as inserted into MongoDB.

        The non-atomic event keys are only present when all three
        values are set.
        """
        document: dict[str, Any] = {
            "type": self.type,
            "matchId": self.match_id,
            "ts": self.ts,
            "videoTs": self.video_ts,
            "xyCoords": self.xy_coords,
            "zCoords": self.z_coords,
            "playerIds": self.player_ids,
            "teamIds": self.team_ids,
            "additionalInfo": dict(self.additional_info),
        }
        if self.event_id is not None and self.phase is not None and self.seq_no is not None:
            document["eventId"] = self.event_id
            document["phase"] = self.phase
            document["seqNo"] = self.seq_no
        return document


def _split_positions(
    element: DecodedElement,
) -> tuple[list[list[float]], list[float]]:
    """Validate the positions of *element* and split them into xy and z.

    Args:
        element: Decoded element.

    Returns:
        ``(xy_coords, z_coords)`` as plain Python lists.

    Raises:
        PositionOutOfRangeError: On the first position whose x or y
            coordinate lies outside ``[-180.0, 180.0)``.
    """
    coords = np.asarray(
        [(p.x, p.y, p.z) for p in element.positions], dtype=np.float64
    ).reshape(-1, 3)
    xy = coords[:, :2]

    out_of_range = np.flatnonzero(
        ((xy < COORDINATE_MIN) | (xy >= COORDINATE_MAX)).any(axis=1)
    )
    if out_of_range.size:
        bad = element.positions[int(out_of_range[0])]
        msg = (
            f"X or Y coordinate of ({bad.x}, {bad.y}, {bad.z}) is not in "
            f"interval [{COORDINATE_MIN}, {COORDINATE_MAX})."
        )
        raise PositionOutOfRangeError(msg)

    return xy.tolist(), coords[:, 2].tolist()


def transform_element(
    element: DecodedElement,
    entry: DependencyEntry,
) -> NormalizedDocument:
    """Convert a data element into its destination document.

    Args:
        element: Decoded statistics, state, or event element.
        entry: Reference values of the element's match.

    Returns:
        The normalized document. ``event_id``, ``phase`` and ``seq_no``
        are only set for non-atomic events.

    Raises:
        MissingFieldError: If the entity id, generation timestamp, or
            (for non-atomic events) event id, phase, or sequence number
            is absent.
        PositionOutOfRangeError: If any position is out of range. No
            partial document is produced.
    """
    if element.entity_id is None:
        msg = f"{element.stream_name} element has no entity id"
        raise MissingFieldError(msg)
    if element.generation_timestamp is None:
        msg = f"{element.stream_name} element of {element.entity_id!r} has no generation timestamp"
        raise MissingFieldError(msg)

    xy_coords, z_coords = _split_positions(element)

    event_id: str | None = None
    phase: str | None = None
    seq_no: int | None = None
    if element.is_nonatomic_event:
        if element.event_id is None or element.phase is None or element.sequence_number is None:
            msg = (
                f"Non-atomic {element.stream_name} element of {element.entity_id!r} "
                f"lacks event id, phase, or sequence number"
            )
            raise MissingFieldError(msg)
        event_id = element.event_id
        phase = element.phase
        seq_no = element.sequence_number

    return NormalizedDocument(
        type=element.stream_name,
        match_id=element.entity_id,
        ts=compute_ts(element.generation_timestamp, entry.reference_timestamp),
        video_ts=compute_video_ts(
            element.generation_timestamp,
            entry.reference_timestamp,
            entry.video_offset,
        ),
        xy_coords=xy_coords,
        z_coords=z_coords,
        player_ids=list(element.object_ids),
        team_ids=list(element.group_ids),
        additional_info=dict(element.payload),
        event_id=event_id,
        phase=phase,
        seq_no=seq_no,
    )
