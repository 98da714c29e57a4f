"""The consumption loop: poll, decode, dispatch, drain, flush.

Each iteration polls one batch of records from the shared consumer,
turns every record into a document (or defers it on the wait list until
its match metadata is known), retries the wait list once, and writes
the collected documents with one bulk insert per collection.

Failures are contained to the record, element, or collection that
caused them; none of them stops the loop.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from confluent_kafka import KafkaException

from streamimporter.dependencies import DependencyIndex, WaitList
from streamimporter.documents.metadata import build_match_document
from streamimporter.documents.transformer import transform_element
from streamimporter.elements.schemas import MatchMetadataElement, StreamCategory
from streamimporter.exceptions import (
    DecodeError,
    MetadataFormatError,
    MissingFieldError,
    NoSubscriptionError,
    PositionOutOfRangeError,
)
from streamimporter.writer import DocumentBatch, DocumentGroup

if TYPE_CHECKING:
    from streamimporter.consumer import SharedConsumer
    from streamimporter.elements.base import RecordDecoder
    from streamimporter.elements.schemas import DecodedElement, RawRecord
    from streamimporter.writer import BatchWriter

logger = logging.getLogger(__name__)

_CATEGORY_GROUPS: dict[StreamCategory, DocumentGroup] = {
    StreamCategory.STATISTICS: DocumentGroup.STATISTICS,
    StreamCategory.STATE: DocumentGroup.STATES,
}


def document_group(element: DecodedElement) -> DocumentGroup:
    """Return the destination group of a data element.

    Raises:
        MissingFieldError: If the element has no category.
    """
    if element.category is None:
        msg = f"{element.stream_name} element of {element.entity_id!r} has no category"
        raise MissingFieldError(msg)
    if element.category is StreamCategory.EVENT:
        return DocumentGroup.EVENTS if element.atomic else DocumentGroup.NONATOMIC_EVENTS
    return _CATEGORY_GROUPS[element.category]


class ConsumptionLoop:
    """Top-level driver moving records from Kafka into MongoDB.

    Attributes:
        index: Reference values of every match seen so far.
        wait_list: Elements waiting for their match metadata.
    """

    __slots__ = (
        "_consumer",
        "_decoder",
        "_poll_timeout",
        "_running",
        "_wait_list_warned",
        "_warn_size",
        "_writer",
        "index",
        "wait_list",
    )

    def __init__(
        self,
        consumer: SharedConsumer,
        decoder: RecordDecoder,
        writer: BatchWriter,
        poll_timeout: float,
        wait_list_warn_size: int = 10_000,
    ) -> None:
        """Wire the loop to its collaborators.

        Args:
            consumer: Shared Kafka consumer.
            decoder: Decoder for raw records.
            writer: Bulk writer for the destination collections.
            poll_timeout: Maximum wait of one poll, and the back-off
                used while no topic is subscribed, in seconds.
            wait_list_warn_size: Wait-list length that triggers a
                warning.
        """
        self._consumer = consumer
        self._decoder = decoder
        self._writer = writer
        self._poll_timeout = poll_timeout
        self._warn_size = wait_list_warn_size
        self._wait_list_warned = False
        self._running = True
        self.index = DependencyIndex()
        self.wait_list = WaitList()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Run iterations until :meth:`stop` is called."""
        logger.info("Start consumption loop")
        while self._running:
            self.run_once()
        logger.info("Consumption loop stopped")

    def stop(self) -> None:
        """Ask :meth:`run` to return after the current iteration."""
        self._running = False

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def run_once(self) -> DocumentBatch | None:
        """Perform one poll-dispatch-drain-flush iteration.

        Returns:
            The flushed batch, or ``None`` if nothing was polled because
            no topic is subscribed yet or the poll failed.
        """
        try:
            records = self._consumer.poll(self._poll_timeout)
        except NoSubscriptionError:
            logger.debug("No topic subscribed yet, retrying in %.1fs", self._poll_timeout)
            time.sleep(self._poll_timeout)
            return None
        except KafkaException as exc:
            logger.error("Poll failed: %s", exc)
            return None

        batch = DocumentBatch()
        for record in records:
            self.handle_record(record, batch)

        self.wait_list.drain(lambda element: self.dispatch(element, batch))
        self._check_wait_list()

        self._writer.flush(batch)
        return batch

    def handle_record(self, record: RawRecord, batch: DocumentBatch) -> None:
        """Decode *record* and dispatch the element.

        Records that cannot be decoded, or whose declared stream name
        differs from the topic they were read from, are dropped.
        """
        try:
            element = self._decoder.decode(record)
        except DecodeError:
            logger.info(
                "Caught exception during decoding record %s@%d",
                record.topic,
                record.sequence,
                exc_info=True,
            )
            return

        if element.stream_name != record.topic:
            logger.error(
                "Cannot handle element (%s) since its stream name does not match "
                "the name of the Kafka topic via which it was received (%s).",
                element,
                record.topic,
            )
            return

        self.dispatch(element, batch)

    def dispatch(self, element: DecodedElement, batch: DocumentBatch) -> None:
        """Route a decoded element.

        Metadata updates the dependency index and becomes a match
        document. A data element becomes a document if its match is
        known and is queued on the wait list otherwise. Elements that
        fail conversion are logged and dropped.
        """
        try:
            if isinstance(element, MatchMetadataElement):
                entry = element.dependency_entry()
                document = build_match_document(element)
                self.index.register(entry)
                batch.add(DocumentGroup.MATCHES, document.to_document())
                return

            entry = self.index.get(element.entity_id)
            if entry is None:
                self.wait_list.append(element)
                return

            group = document_group(element)
            batch.add(group, transform_element(element, entry).to_document())
        except (MissingFieldError, MetadataFormatError, PositionOutOfRangeError) as exc:
            logger.error("Caught exception during handling element %s: %s", element, exc)

    def _check_wait_list(self) -> None:
        """Warn once each time the wait list grows to the warn size."""
        size = len(self.wait_list)
        if size >= self._warn_size and not self._wait_list_warned:
            logger.warning(
                "Wait list holds %d elements whose match metadata is missing", size
            )
            self._wait_list_warned = True
        elif size < self._warn_size:
            self._wait_list_warned = False
