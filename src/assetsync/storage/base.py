"""Abstract record store interface."""

import asyncio
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Optional

Predicate = Callable[[Any], bool]

_CLOSED = object()


@dataclass
class ChangeBatch:
    """One committed write as seen by a subscription.

    ``inserted`` and ``updated`` are indices into ``results``, which is the
    filtered collection snapshot right after the write.
    """

    results: list[Any]
    inserted: list[int] = field(default_factory=list)
    updated: list[int] = field(default_factory=list)

    def changed(self) -> list[Any]:
        """Inserted records followed by updated records."""
        return [self.results[i] for i in self.inserted] + [self.results[i] for i in self.updated]


class Subscription:
    """Cancellable feed of change batches for one collection.

    Batches are marshalled onto the loop that created the subscription, so
    writers may live on any thread. Iterating is lazy and may be restarted:
    each ``async for`` resumes from the next undelivered batch.
    """

    def __init__(
        self,
        collection: str,
        predicate: Optional[Predicate],
        loop: asyncio.AbstractEventLoop,
        on_cancel: Callable[["Subscription"], None],
    ):
        self.collection = collection
        self.predicate = predicate
        self._loop = loop
        self._on_cancel = on_cancel
        self._queue: asyncio.Queue = asyncio.Queue()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def matches(self, record: Any) -> bool:
        return self.predicate is None or self.predicate(record)

    def push(self, batch: ChangeBatch) -> None:
        if self._cancelled:
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, batch)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._on_cancel(self)
        self._loop.call_soon_threadsafe(self._queue.put_nowait, _CLOSED)

    def __aiter__(self) -> AsyncIterator[ChangeBatch]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ChangeBatch]:
        while True:
            batch = await self._queue.get()
            if batch is _CLOSED:
                return
            yield batch


class StoreWrite(AbstractContextManager):
    """Staged, all-or-nothing write against a record store."""

    @abstractmethod
    def put(self, collection: str, record: Any) -> None:
        """Insert or replace ``record`` (keyed by ``record.id``)."""
        pass


class RecordStore(ABC):
    """Abstract base class for the local record store."""

    @abstractmethod
    def get(self, collection: str, record_id: str) -> Optional[Any]:
        """Retrieve a record by id, or None."""
        pass

    @abstractmethod
    def query(self, collection: str, predicate: Optional[Predicate] = None) -> list[Any]:
        """List records of a collection, optionally filtered."""
        pass

    @abstractmethod
    def write(self) -> StoreWrite:
        """Open a transactional write.

        Changes staged on the returned context are applied when the block
        exits cleanly and discarded when it raises.

        Raises:
            StoreError: If the write cannot be committed
        """
        pass

    @abstractmethod
    def observe(self, collection: str, predicate: Optional[Predicate] = None) -> Subscription:
        """Subscribe to inserts and updates on a collection.

        Must be called from within a running event loop.
        """
        pass

    def put(self, collection: str, record: Any) -> None:
        """Write a single record in its own transaction."""
        with self.write() as batch:
            batch.put(collection, record)
