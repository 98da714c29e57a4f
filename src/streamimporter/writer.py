"""Bulk writing of documents into the five destination collections.

Documents of one consumption-loop iteration are collected in a
:class:`DocumentBatch` and flushed with one ``insert_many`` per
non-empty collection. Write failures are logged and the affected
documents are dropped; no write is retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from pymongo.errors import BulkWriteError, PyMongoError, WriteError

if TYPE_CHECKING:
    from pymongo.database import Database

logger = logging.getLogger(__name__)


class DocumentGroup(str, Enum):
    """Destination collections, valued by collection name."""

    MATCHES = "matches"
    EVENTS = "events"
    NONATOMIC_EVENTS = "nonatomicEvents"
    STATISTICS = "statistics"
    STATES = "states"


def _empty_groups() -> dict[DocumentGroup, list[dict[str, Any]]]:
    return {group: [] for group in DocumentGroup}


@dataclass(slots=True)
class DocumentBatch:
    """Documents accumulated during one loop iteration, per group."""

    groups: dict[DocumentGroup, list[dict[str, Any]]] = field(default_factory=_empty_groups)

    def add(self, group: DocumentGroup, document: dict[str, Any]) -> None:
        """Append *document* to *group*."""
        self.groups[group].append(document)

    def documents(self, group: DocumentGroup) -> list[dict[str, Any]]:
        """Return the documents of *group* in insertion order."""
        return self.groups[group]

    def __len__(self) -> int:
        return sum(len(docs) for docs in self.groups.values())


class BatchWriter:
    """Writes document batches into MongoDB collections.

    Attributes:
        _collections: Collection handle per document group.
        _ordered: Whether ``insert_many`` stops at the first error.
    """

    __slots__ = ("_collections", "_ordered")

    def __init__(self, database: Database[Any], ordered: bool = True) -> None:
        """Bind the writer to the destination database.

        Args:
            database: Database holding the five collections.
            ordered: Passed through to ``insert_many``.
        """
        self._collections = {group: database[group.value] for group in DocumentGroup}
        self._ordered = ordered

    def write(self, group: DocumentGroup, documents: list[dict[str, Any]]) -> int:
        """Insert *documents* into the collection of *group*.

        Args:
            group: Destination group.
            documents: Documents to insert. Nothing is written for an
                empty list.

        Returns:
            Number of documents inserted. On a failed write this is the
            number the server reports as inserted before the failure.
        """
        if not documents:
            return 0

        try:
            result = self._collections[group].insert_many(documents, ordered=self._ordered)
        except BulkWriteError as exc:
            inserted = int(exc.details.get("nInserted", 0))
            logger.info(
                "Cannot insert into %s due to BulkWriteError (%d of %d inserted): %s",
                group.value,
                inserted,
                len(documents),
                exc,
            )
            return inserted
        except WriteError as exc:
            logger.info("Cannot insert into %s due to WriteError: %s", group.value, exc)
            return 0
        except PyMongoError:
            logger.exception(
                "Cannot insert %d documents into %s", len(documents), group.value
            )
            return 0

        return len(result.inserted_ids)

    def flush(self, batch: DocumentBatch) -> dict[DocumentGroup, int]:
        """Write every non-empty group of *batch*, one bulk write each.

        A failing group does not prevent the other groups from being
        written.

        Args:
            batch: Documents collected during one iteration.

        Returns:
            Number of inserted documents per written group.
        """
        inserted: dict[DocumentGroup, int] = {}
        for group in DocumentGroup:
            documents = batch.documents(group)
            if documents:
                inserted[group] = self.write(group, documents)
        return inserted
