"""Tests for the batch writer.

Validates one bulk insert per non-empty group, collection naming,
containment of write failures to their own group, and the absence of
retries.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest
from pymongo.errors import BulkWriteError, ServerSelectionTimeoutError, WriteError

from streamimporter.writer import BatchWriter, DocumentBatch, DocumentGroup

if TYPE_CHECKING:
    from tests.conftest import FakeDatabase


def _batch(**groups: int) -> DocumentBatch:
    """Build a batch with ``n`` numbered documents per group name."""
    batch = DocumentBatch()
    for name, count in groups.items():
        group = DocumentGroup[name.upper()]
        for i in range(count):
            batch.add(group, {"n": i, "group": group.value})
    return batch


class TestDocumentGroup:
    def test_collection_names(self) -> None:
        assert [g.value for g in DocumentGroup] == [
            "matches",
            "events",
            "nonatomicEvents",
            "statistics",
            "states",
        ]


class TestDocumentBatch:
    def test_starts_empty(self) -> None:
        batch = DocumentBatch()
        assert len(batch) == 0
        assert all(batch.documents(g) == [] for g in DocumentGroup)

    def test_add_keeps_order(self) -> None:
        batch = _batch(events=3)
        assert [d["n"] for d in batch.documents(DocumentGroup.EVENTS)] == [0, 1, 2]
        assert len(batch) == 3


class TestBatchWriter:
    """One insert_many per non-empty group per flush."""

    def test_flush_writes_each_group_once(self, fake_database: FakeDatabase) -> None:
        writer = BatchWriter(fake_database)
        inserted = writer.flush(_batch(matches=1, events=2, states=3))

        assert inserted == {
            DocumentGroup.MATCHES: 1,
            DocumentGroup.EVENTS: 2,
            DocumentGroup.STATES: 3,
        }
        assert fake_database["matches"].calls == 1
        assert fake_database["events"].calls == 1
        assert fake_database["states"].calls == 1
        assert len(fake_database["states"].inserted) == 3

    def test_empty_groups_not_written(self, fake_database: FakeDatabase) -> None:
        writer = BatchWriter(fake_database)
        writer.flush(_batch(events=1))
        assert fake_database["statistics"].calls == 0
        assert fake_database["nonatomicEvents"].calls == 0

    def test_write_empty_list(self, fake_database: FakeDatabase) -> None:
        assert BatchWriter(fake_database).write(DocumentGroup.EVENTS, []) == 0
        assert fake_database["events"].calls == 0

    @pytest.mark.parametrize(
        "error",
        [
            BulkWriteError({"nInserted": 1, "writeErrors": []}),
            WriteError("duplicate key", code=11000),
            ServerSelectionTimeoutError("no servers"),
        ],
    )
    def test_failure_contained_to_group(
        self,
        fake_database: FakeDatabase,
        error: Exception,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        fake_database["events"].error = error
        writer = BatchWriter(fake_database)

        with caplog.at_level(logging.INFO):
            inserted = writer.flush(_batch(matches=1, events=2, statistics=1))

        assert fake_database["events"].calls == 1
        assert len(fake_database["matches"].inserted) == 1
        assert len(fake_database["statistics"].inserted) == 1
        assert inserted[DocumentGroup.MATCHES] == 1
        assert inserted[DocumentGroup.STATISTICS] == 1
        assert any("events" in rec.getMessage() for rec in caplog.records)

    def test_bulk_write_error_reports_partial_count(self, fake_database: FakeDatabase) -> None:
        fake_database["events"].error = BulkWriteError({"nInserted": 1, "writeErrors": []})
        assert BatchWriter(fake_database).write(DocumentGroup.EVENTS, [{"a": 1}, {"a": 2}]) == 1

    def test_failed_documents_not_retried(self, fake_database: FakeDatabase) -> None:
        fake_database["states"].error = WriteError("rejected", code=2)
        writer = BatchWriter(fake_database)
        writer.flush(_batch(states=2))
        fake_database["states"].error = None
        writer.flush(DocumentBatch())
        assert fake_database["states"].calls == 1
        assert fake_database["states"].inserted == []
