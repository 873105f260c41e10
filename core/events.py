"""
Snapshot Event Streams.

Realtime collection subscriptions are modelled as a stream of ``Snapshot``
events consumed by a reducer, instead of callbacks that overwrite local
state. The stream is:

- lazy: nothing is read from the store until the first ``__anext__``
- infinite: it only ends when closed
- non-restartable: it can be iterated once; a closed stream stays closed

Usage:
    stream = store.subscribe("notifications")
    async for state in fold(stream, reduce_notifications, NotificationFeed()):
        ...
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, Tuple, TypeVar

logger = logging.getLogger(__name__)

S = TypeVar("S")


@dataclass(frozen=True)
class Snapshot:
    """The full result set of a subscribed query at one point in time."""
    collection: str
    sequence: int
    documents: Tuple[Dict[str, Any], ...]
    received_at: datetime


class StreamConsumedError(RuntimeError):
    """Raised when a second consumer tries to iterate a stream."""


class SnapshotStream:
    """Single-consumer async iterator over snapshot events."""

    def __init__(self, source: AsyncIterator[Snapshot]):
        self._source = source
        self._claimed = False
        self._closed = False

    def __aiter__(self) -> "SnapshotStream":
        if self._claimed:
            raise StreamConsumedError("Snapshot streams can only be iterated once")
        self._claimed = True
        return self

    async def __anext__(self) -> Snapshot:
        if self._closed:
            raise StopAsyncIteration
        return await self._source.__anext__()

    async def aclose(self):
        """Stop the stream and release the underlying subscription."""
        if self._closed:
            return
        self._closed = True
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()

    @property
    def closed(self) -> bool:
        return self._closed


async def fold(
    stream: SnapshotStream,
    reducer: Callable[[S, Snapshot], S],
    initial: S,
) -> AsyncIterator[S]:
    """Apply ``reducer`` to every event and yield each resulting state."""
    state = initial
    async for event in stream:
        new_state = reducer(state, event)
        if new_state is state:
            logger.debug(f"Snapshot {event.sequence} for {event.collection} ignored by reducer")
            continue
        state = new_state
        yield state
