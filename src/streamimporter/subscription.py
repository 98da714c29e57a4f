"""Periodic refresh of the consumer's topic subscription.

Streams appear as new Kafka topics while the importer runs. The
:class:`SubscriptionManager` lists the broker's topics on a fixed
interval, filters out internal ones, and re-subscribes the shared
consumer only when the resulting set differs from the current one,
since every subscribe triggers a consumer-group rebalance.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from confluent_kafka import KafkaException

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from streamimporter.consumer import SharedConsumer

logger = logging.getLogger(__name__)

RESERVED_PREFIX: str = "__"
RESERVED_INFIXES: tuple[str, ...] = ("changelog", "metrics")


def select_topics(topics: Iterable[str], forbidden: Iterable[str] = ()) -> list[str]:
    """Return the subscribable topics of *topics*, sorted by name.

    Excluded are internal topics (``__`` prefix), derived processing
    topics (containing ``changelog`` or ``metrics``), and every topic in
    *forbidden*.
    """
    forbidden_set = frozenset(forbidden)
    return sorted(
        topic
        for topic in topics
        if not topic.startswith(RESERVED_PREFIX)
        and not any(infix in topic for infix in RESERVED_INFIXES)
        and topic not in forbidden_set
    )


def topics_changed(current: Sequence[str], candidates: Sequence[str]) -> bool:
    """Return True if *candidates* differs from *current* ignoring order."""
    if len(current) != len(candidates):
        return True
    return set(current) != set(candidates)


class SubscriptionManager:
    """Keeps the shared consumer subscribed to all eligible topics.

    Example::

        manager = SubscriptionManager(consumer, interval=10.0)
        thread = threading.Thread(target=manager.run, daemon=True)
        thread.start()
        ...
        manager.stop()
    """

    __slots__ = (
        "_consumer",
        "_current",
        "_forbidden",
        "_interval",
        "_metadata_timeout",
        "_running",
    )

    def __init__(
        self,
        consumer: SharedConsumer,
        interval: float,
        forbidden_topics: Iterable[str] = (),
        metadata_timeout: float = 10.0,
    ) -> None:
        """Configure the manager.

        Args:
            consumer: Shared consumer to keep subscribed.
            interval: Seconds between two refreshes.
            forbidden_topics: Topics that are never subscribed.
            metadata_timeout: Maximum wait in seconds for a topic
                listing.
        """
        self._consumer = consumer
        self._interval = interval
        self._forbidden = tuple(forbidden_topics)
        self._metadata_timeout = metadata_timeout
        self._current: list[str] = []
        self._running = True
        logger.info("Forbidden topics: %s", " ".join(self._forbidden))

    @property
    def current_topics(self) -> list[str]:
        """Topics of the last subscription made by this manager."""
        return list(self._current)

    def refresh(self) -> bool:
        """Discover topics and re-subscribe if the eligible set changed.

        Listing and subscribing happen under the consumer lock so that
        no poll interleaves between them. Once :meth:`stop` has been
        called nothing is done, so a refresh racing the shutdown never
        touches a closed consumer.

        Returns:
            ``True`` if a new subscription was made.

        Raises:
            KafkaException: If the broker cannot be queried.
        """
        with self._consumer.lock:
            if not self._running:
                return False
            topics = self._consumer.list_topics(self._metadata_timeout)
            candidates = select_topics(topics, self._forbidden)
            if not topics_changed(self._current, candidates):
                return False
            self._consumer.subscribe(candidates)
            self._current = candidates

        logger.info("New subscription list: %s", " ".join(candidates))
        return True

    def run(self) -> None:
        """Refresh the subscription every interval until :meth:`stop`.

        The run flag is checked once per cycle; a sleep in progress is
        not cut short.
        """
        while self._running:
            try:
                self.refresh()
            except KafkaException as exc:
                logger.warning("Cannot refresh subscription: %s", exc)
            time.sleep(self._interval)
        logger.info("Subscription manager stopped")

    def stop(self) -> None:
        """Ask :meth:`run` to return after the current cycle."""
        self._running = False
