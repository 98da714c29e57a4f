"""Shared test fixtures for the Stream Importer.

Provides element factories and in-memory stand-ins for the external
collaborators:

* :func:`make_element` -- factory for data :class:`DecodedElement` s.
* :func:`make_metadata` -- factory for :class:`MatchMetadataElement` s.
* :class:`StubDecoder` -- decoder returning pre-registered elements.
* :class:`StubConsumer` -- shared-consumer stand-in replaying batches.
* :class:`FakeDatabase` -- MongoDB database stand-in recording inserts.
"""

from __future__ import annotations

import threading
from types import SimpleNamespace
from typing import Any, Callable

import pytest

from streamimporter.elements.schemas import (
    METADATA_STREAM_NAME,
    DecodedElement,
    MatchMetadataElement,
    Position,
    RawRecord,
    StreamCategory,
)
from streamimporter.exceptions import DecodeError, NoSubscriptionError

# ------------------------------------------------------------------
# Element factories
# ------------------------------------------------------------------


@pytest.fixture()
def make_element() -> Callable[..., DecodedElement]:
    """Return a factory for data elements with sensible defaults."""

    def _make(
        stream_name: str = "kickEvent",
        entity_id: str | None = "M1",
        category: StreamCategory | None = StreamCategory.EVENT,
        atomic: bool = True,
        generation_timestamp: int | None = 2500,
        positions: tuple[tuple[float, float, float], ...] = ((10.0, 20.0, 0.0),),
        **kwargs: Any,
    ) -> DecodedElement:
        return DecodedElement(
            stream_name=stream_name,
            entity_id=entity_id,
            category=category,
            atomic=atomic,
            generation_timestamp=generation_timestamp,
            positions=tuple(Position(x, y, z) for x, y, z in positions),
            **kwargs,
        )

    return _make


@pytest.fixture()
def make_metadata() -> Callable[..., MatchMetadataElement]:
    """Return a factory for match metadata elements."""

    def _make(
        entity_id: str = "M1",
        reference_timestamp: int | None = 1000,
        video_offset: int | None = 5,
        **kwargs: Any,
    ) -> MatchMetadataElement:
        defaults: dict[str, Any] = {
            "category": StreamCategory.STATE,
            "generation_timestamp": 1000,
            "sport": "football",
            "field_length": 105.0,
            "field_width": 68.0,
            "match_start_unix_ts": 1510916400000,
            "competition": "Friendly",
            "venue": "Stadium",
            "video_path": "/videos/m1.mp4",
            "team_rename_map": "[home:A:FC Home]%[away:B:FC Away]",
            "object_rename_map": "[1:A1:Alice]%[2:B7:Bob]%[0:BALL:Ball]",
            "team_color_map": "[A:#ff0000]%[B:#0000ff]",
        }
        defaults.update(kwargs)
        return MatchMetadataElement(
            stream_name=METADATA_STREAM_NAME,
            entity_id=entity_id,
            reference_timestamp=reference_timestamp,
            video_offset=video_offset,
            **defaults,
        )

    return _make


# ------------------------------------------------------------------
# Collaborator stand-ins
# ------------------------------------------------------------------


class StubDecoder:
    """Decoder that returns the element registered for a payload."""

    def __init__(self) -> None:
        self._elements: dict[bytes, DecodedElement] = {}

    def record(self, element: DecodedElement, topic: str | None = None) -> RawRecord:
        """Register *element* and return a record that decodes to it."""
        payload = f"payload-{len(self._elements)}".encode()
        self._elements[payload] = element
        return RawRecord(
            topic=topic if topic is not None else element.stream_name,
            key=element.entity_id,
            sequence=len(self._elements),
            payload=payload,
        )

    def decode(self, record: RawRecord) -> DecodedElement:
        try:
            return self._elements[record.payload]
        except KeyError:
            msg = f"Cannot decode {record.payload!r}"
            raise DecodeError(msg) from None


class StubConsumer:
    """Stand-in for SharedConsumer replaying queued poll results.

    A queued exception is raised by the poll that reaches it. An empty
    queue yields empty batches.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.batches: list[list[RawRecord] | Exception] = []
        self.poll_timeouts: list[float] = []
        self.closed = False

    def poll(self, timeout: float) -> list[RawRecord]:
        self.poll_timeouts.append(timeout)
        if not self.batches:
            return []
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return batch

    def close(self) -> None:
        self.closed = True


class FakeCollection:
    """Collection stand-in recording ``insert_many`` calls."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.inserted: list[dict[str, Any]] = []
        self.calls = 0
        self.error: Exception | None = None

    def insert_many(self, documents: list[dict[str, Any]], ordered: bool = True) -> Any:
        self.calls += 1
        if self.error is not None:
            raise self.error
        self.inserted.extend(documents)
        return SimpleNamespace(inserted_ids=list(range(len(documents))))


class FakeDatabase:
    """Database stand-in handing out one FakeCollection per name."""

    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


@pytest.fixture()
def stub_decoder() -> StubDecoder:
    return StubDecoder()


@pytest.fixture()
def stub_consumer() -> StubConsumer:
    return StubConsumer()


@pytest.fixture()
def fake_database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture()
def no_subscription() -> NoSubscriptionError:
    """A fresh pre-subscription error to queue on a StubConsumer."""
    return NoSubscriptionError("Consumer has no subscription yet")
