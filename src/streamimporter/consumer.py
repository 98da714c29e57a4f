"""Thread-safe access to the shared Kafka consumer.

The confluent-kafka ``Consumer`` must not be used from two threads at
once, yet the consumption loop polls it while the subscription manager
lists topics and re-subscribes it. :class:`SharedConsumer` routes every
call through one re-entrant lock; callers that need several calls to
happen atomically hold :attr:`SharedConsumer.lock` around them.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import TYPE_CHECKING, Any

from confluent_kafka import Consumer, KafkaError

from streamimporter.elements.schemas import RawRecord
from streamimporter.exceptions import NoSubscriptionError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from streamimporter.config import KafkaConfig

logger = logging.getLogger(__name__)


def create_kafka_consumer(config: KafkaConfig) -> Consumer:
    """Create a consumer that reads every topic from the earliest offset.

    Each process joins its own consumer group
    (``<group_id_prefix>_<uuid4>``) so that it sees all records.

    Args:
        config: Kafka configuration.

    Returns:
        An unsubscribed confluent-kafka consumer.
    """
    group_id = f"{config.group_id_prefix}_{uuid.uuid4()}"
    logger.info("Creating Kafka consumer for %s (group %s)", config.broker_list, group_id)
    return Consumer(
        {
            "bootstrap.servers": config.broker_list,
            "group.id": group_id,
            "enable.auto.commit": True,
            "auto.offset.reset": "earliest",
        }
    )


def _decode_key(key: bytes | str | None) -> str | None:
    if key is None or isinstance(key, str):
        return key
    return key.decode("utf-8", errors="replace")


class SharedConsumer:
    """Lock-guarded wrapper around a Kafka consumer.

    Attributes:
        lock: Re-entrant lock serialising all access to the consumer.
    """

    __slots__ = ("_consumer", "_max_records", "_subscription", "lock")

    def __init__(self, consumer: Any, max_records: int = 500) -> None:
        """Wrap *consumer*.

        Args:
            consumer: A confluent-kafka ``Consumer`` (or an object with
                the same ``consume``/``list_topics``/``subscribe``/
                ``unsubscribe``/``close`` methods).
            max_records: Maximum number of records per poll.
        """
        self._consumer = consumer
        self._max_records = max_records
        self._subscription: tuple[str, ...] = ()
        self.lock = threading.RLock()

    @property
    def subscription(self) -> tuple[str, ...]:
        """Topics the consumer is currently subscribed to."""
        return self._subscription

    def poll(self, timeout: float) -> list[RawRecord]:
        """Fetch the next batch of records.

        Blocks for at most *timeout* seconds. Error messages delivered
        by the client are logged and skipped.

        Args:
            timeout: Maximum wait in seconds.

        Returns:
            Records in the order the client delivered them.

        Raises:
            NoSubscriptionError: If no topic has been subscribed yet.
            KafkaException: On client-level errors.
        """
        with self.lock:
            if not self._subscription:
                msg = "Consumer has no subscription yet"
                raise NoSubscriptionError(msg)
            messages = self._consumer.consume(num_messages=self._max_records, timeout=timeout)

        records: list[RawRecord] = []
        for message in messages:
            error = message.error()
            if error is not None:
                if error.code() != KafkaError._PARTITION_EOF:
                    logger.warning(
                        "Kafka error on %s[%s]: %s",
                        message.topic(),
                        message.partition(),
                        error,
                    )
                continue
            records.append(
                RawRecord(
                    topic=message.topic(),
                    key=_decode_key(message.key()),
                    sequence=message.offset(),
                    payload=message.value() or b"",
                )
            )
        return records

    def list_topics(self, timeout: float) -> set[str]:
        """Return the names of all topics known to the broker."""
        with self.lock:
            metadata = self._consumer.list_topics(timeout=timeout)
        return set(metadata.topics)

    def subscribe(self, topics: Iterable[str]) -> None:
        """Replace the subscription with *topics*.

        An empty topic list unsubscribes the consumer.
        """
        topic_list = list(topics)
        with self.lock:
            if topic_list:
                self._consumer.subscribe(topic_list)
            else:
                self._consumer.unsubscribe()
            self._subscription = tuple(topic_list)

    def close(self) -> None:
        """Close the underlying consumer."""
        with self.lock:
            self._consumer.close()
            self._subscription = ()
