"""Per-match ordering dependencies.

Data elements of a match can only be timed once the match metadata has
been consumed. :class:`DependencyIndex` holds the reference values of
every match seen so far; :class:`WaitList` holds the elements that
arrived before their match metadata.

Neither structure evicts entries: reference values live for the whole
process and an element whose metadata never arrives stays queued.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from streamimporter.elements.schemas import DecodedElement, DependencyEntry


class DependencyIndex:
    """Registry mapping match ids to their reference values.

    Example::

        index = DependencyIndex()
        index.register(metadata.dependency_entry())
        entry = index.get(element.entity_id)
    """

    __slots__ = ("_entries",)

    def __init__(self) -> None:
        self._entries: dict[str, DependencyEntry] = {}

    def register(self, entry: DependencyEntry) -> None:
        """Store *entry*, replacing any earlier entry of the same match."""
        self._entries[entry.entity_id] = entry

    def get(self, entity_id: str | None) -> DependencyEntry | None:
        """Return the entry of *entity_id*, or ``None`` if unknown."""
        if entity_id is None:
            return None
        return self._entries.get(entity_id)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class WaitList:
    """FIFO queue of elements waiting for their match metadata."""

    __slots__ = ("_pending",)

    def __init__(self) -> None:
        self._pending: deque[DecodedElement] = deque()

    def append(self, element: DecodedElement) -> None:
        """Queue *element* at the tail."""
        self._pending.append(element)

    def drain(self, handler: Callable[[DecodedElement], None]) -> int:
        """Hand every currently queued element to *handler* once.

        The queue length is captured before draining and exactly that
        many elements are popped from the head. Elements the handler
        re-appends end up behind the snapshot and are left for the next
        drain.

        Args:
            handler: Called with each popped element, in FIFO order.

        Returns:
            The number of elements handed to *handler*.
        """
        count = len(self._pending)
        for _ in range(count):
            handler(self._pending.popleft())
        return count

    def __iter__(self) -> Iterator[DecodedElement]:
        return iter(tuple(self._pending))

    def __len__(self) -> int:
        return len(self._pending)
