"""Decoder protocol for raw Kafka records.

Defines the :class:`RecordDecoder` structural interface. A decoder owns
the wire format of a stream: it turns the encoded payload of a
:class:`~streamimporter.elements.schemas.RawRecord` into a typed
:class:`~streamimporter.elements.schemas.DecodedElement` and decides
its category and atomicity. Metadata elements are returned as
:class:`~streamimporter.elements.schemas.MatchMetadataElement`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from streamimporter.elements.schemas import DecodedElement, RawRecord


@runtime_checkable
class RecordDecoder(Protocol):
    """Structural interface for record decoders."""

    def decode(self, record: RawRecord) -> DecodedElement:
        """Decode a single raw record.

        Args:
            record: The record as consumed from Kafka.

        Returns:
            The decoded element. Its ``entity_id`` is the record key.

        Raises:
            DecodeError: If the payload cannot be decoded.
        """
        ...
