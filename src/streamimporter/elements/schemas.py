"""Data schemas for consumed records and decoded stream elements.

Every schema is a frozen, slotted dataclass. Fields a decoder may fail
to supply are optional and default to ``None``; consumers check them
before use and raise :class:`~streamimporter.exceptions.MissingFieldError`
when a required value is absent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from streamimporter.exceptions import MissingFieldError

METADATA_STREAM_NAME: str = "matchMetadata"


class StreamCategory(str, Enum):
    """Classification of a data stream element."""

    STATISTICS = "STATISTICS"
    STATE = "STATE"
    EVENT = "EVENT"


@dataclass(frozen=True, slots=True)
class RawRecord:
    """A single record as consumed from a Kafka topic.

    Attributes:
        topic: Topic the record was read from.
        key: Record key (entity id), or ``None`` for unkeyed records.
        sequence: Offset of the record within its partition.
        payload: Encoded element.
    """

    topic: str
    key: str | None
    sequence: int
    payload: bytes


@dataclass(frozen=True, slots=True)
class Position:
    """A position in the coordinate system of the data source."""

    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True, slots=True)
class DecodedElement:
    """Typed in-memory form of one consumed data stream element.

    Attributes:
        stream_name: Name of the stream the element declares. Must
            match the topic it was read from.
        entity_id: Identifier of the match the element belongs to.
        category: Stream category, or ``None`` if the decoder could
            not determine it.
        atomic: Whether an event stands alone. Only meaningful for
            ``EVENT`` elements.
        generation_timestamp: Generation time in ms on the source clock.
        object_ids: Identifiers of the involved objects (players).
        group_ids: Identifiers of the involved groups (teams).
        positions: Positions carried by the element.
        payload: Ordered payload fields.
        event_id: Identifier of the non-atomic event this step
            belongs to.
        phase: Phase of the non-atomic event (e.g. ``"START"``).
        sequence_number: Step number within the non-atomic event.
        offset: Partition offset of the originating record.
    """

    stream_name: str
    entity_id: str | None
    category: StreamCategory | None = None
    atomic: bool = True
    generation_timestamp: int | None = None
    object_ids: tuple[str, ...] = ()
    group_ids: tuple[str, ...] = ()
    positions: tuple[Position, ...] = ()
    payload: dict[str, Any] = field(default_factory=dict)
    event_id: str | None = None
    phase: str | None = None
    sequence_number: int | None = None
    offset: int | None = None

    @property
    def is_nonatomic_event(self) -> bool:
        """Return True for events that are one step of a larger event."""
        return self.category is StreamCategory.EVENT and not self.atomic


@dataclass(frozen=True, slots=True)
class DependencyEntry:
    """Reference values of a match that data elements are timed against.

    Attributes:
        entity_id: Identifier of the match.
        reference_timestamp: Generation timestamp (ms) of the first
            element of the match.
        video_offset: Video offset (s) of the start of the match.
    """

    entity_id: str
    reference_timestamp: int
    video_offset: int


@dataclass(frozen=True, slots=True)
class MatchMetadataElement(DecodedElement):
    """Decoded ``matchMetadata`` element.

    The three ``*_map`` attributes hold the raw embedded map strings;
    they are parsed by :mod:`streamimporter.documents.metadata`.

    Attributes:
        reference_timestamp: Generation timestamp (ms) of the first
            element of the match.
        video_offset: Video offset (s) of the start of the match.
        sport: Sport discipline.
        field_length: Length of the field.
        field_width: Width of the field.
        match_start_unix_ts: Start of the match in ms since the epoch.
        competition: Competition name.
        venue: Venue name.
        video_path: Location of the match video.
        team_rename_map: Embedded ``home``/``away`` team map.
        object_rename_map: Embedded player map.
        team_color_map: Embedded team color map.
    """

    reference_timestamp: int | None = None
    video_offset: int | None = None
    sport: str | None = None
    field_length: float | None = None
    field_width: float | None = None
    match_start_unix_ts: int | None = None
    competition: str | None = None
    venue: str | None = None
    video_path: str | None = None
    team_rename_map: str | None = None
    object_rename_map: str | None = None
    team_color_map: str | None = None

    def dependency_entry(self) -> DependencyEntry:
        """Return the reference values this metadata registers.

        Raises:
            MissingFieldError: If the entity id, reference timestamp,
                or video offset is absent.
        """
        if self.entity_id is None:
            msg = "matchMetadata element has no entity id"
            raise MissingFieldError(msg)
        if self.reference_timestamp is None or self.video_offset is None:
            msg = (
                f"matchMetadata element for {self.entity_id!r} lacks the "
                f"reference timestamp or video offset"
            )
            raise MissingFieldError(msg)
        return DependencyEntry(
            entity_id=self.entity_id,
            reference_timestamp=self.reference_timestamp,
            video_offset=self.video_offset,
        )
