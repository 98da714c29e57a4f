"""Assembly of the stream importer process.

:class:`StreamImporter` owns the shared consumer, the subscription
manager thread, the consumption loop, and the MongoDB client, and
tears them down when the loop returns.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from pymongo import MongoClient

from streamimporter.consumer import SharedConsumer, create_kafka_consumer
from streamimporter.elements.json_decoder import JsonRecordDecoder
from streamimporter.loop import ConsumptionLoop
from streamimporter.subscription import SubscriptionManager
from streamimporter.writer import BatchWriter

if TYPE_CHECKING:
    from streamimporter.config import ImporterConfig
    from streamimporter.elements.base import RecordDecoder

logger = logging.getLogger(__name__)


class StreamImporter:
    """Runs the subscription manager and the consumption loop together.

    Example::

        importer = StreamImporter.from_config(load_config(path))
        signal.signal(signal.SIGTERM, lambda *_: importer.stop())
        importer.run()
    """

    def __init__(
        self,
        consumer: SharedConsumer,
        loop: ConsumptionLoop,
        subscription_manager: SubscriptionManager,
        mongo_client: Any | None = None,
        join_timeout: float = 10.0,
    ) -> None:
        """Wire an importer from ready-made components.

        Args:
            consumer: Shared consumer used by loop and manager.
            loop: Consumption loop.
            subscription_manager: Subscription manager.
            mongo_client: Client closed on shutdown, if any.
            join_timeout: Maximum wait in seconds for the subscription
                manager thread on shutdown.
        """
        self.consumer = consumer
        self.loop = loop
        self.subscription_manager = subscription_manager
        self._mongo_client = mongo_client
        self._join_timeout = join_timeout
        self._thread: threading.Thread | None = None

    @classmethod
    def from_config(
        cls,
        config: ImporterConfig,
        decoder: RecordDecoder | None = None,
    ) -> StreamImporter:
        """Build an importer talking to real Kafka and MongoDB servers.

        Args:
            config: Importer configuration.
            decoder: Record decoder. Defaults to
                :class:`~streamimporter.elements.json_decoder.JsonRecordDecoder`.

        Returns:
            A ready-to-run importer.
        """
        logger.info("Initializing Kafka consumer")
        consumer = SharedConsumer(
            create_kafka_consumer(config.kafka),
            max_records=config.kafka.max_poll_records,
        )
        manager = SubscriptionManager(
            consumer,
            interval=config.kafka.subscription_interval,
            forbidden_topics=config.kafka.forbidden_topics,
            metadata_timeout=config.kafka.metadata_timeout,
        )

        logger.info("Initializing MongoDB database %s", config.mongo.database)
        mongo_client: MongoClient[Any] = MongoClient(config.mongo.connection_string)
        writer = BatchWriter(
            mongo_client[config.mongo.database],
            ordered=config.mongo.ordered_inserts,
        )

        loop = ConsumptionLoop(
            consumer,
            decoder if decoder is not None else JsonRecordDecoder(),
            writer,
            poll_timeout=config.kafka.poll_timeout,
            wait_list_warn_size=config.wait_list_warn_size,
        )
        return cls(
            consumer,
            loop,
            manager,
            mongo_client=mongo_client,
            join_timeout=config.kafka.metadata_timeout,
        )

    def run(self) -> None:
        """Start the subscription manager and run the loop until stopped.

        On return the manager thread has been stopped and joined (for at
        most ``join_timeout`` seconds) before the consumer and MongoDB
        client are closed.
        """
        self._thread = threading.Thread(
            target=self.subscription_manager.run,
            name="subscription-manager",
            daemon=True,
        )
        self._thread.start()
        try:
            self.loop.run()
        finally:
            self.subscription_manager.stop()
            self._thread.join(timeout=self._join_timeout)
            if self._thread.is_alive():
                logger.warning(
                    "Subscription manager did not stop within %.1fs", self._join_timeout
                )
            self.consumer.close()
            if self._mongo_client is not None:
                self._mongo_client.close()
            logger.info("Closed stream importer")

    def stop(self) -> None:
        """Request shutdown; safe to call from a signal handler."""
        logger.info("Shutdown requested")
        self.loop.stop()
        self.subscription_manager.stop()
