"""In-memory record store with change notifications."""

import asyncio
import copy
import logging
import threading
from typing import Any, Dict, Optional

from assetsync.core.exceptions import StoreError
from assetsync.storage.base import ChangeBatch, Predicate, RecordStore, StoreWrite, Subscription

logger = logging.getLogger(__name__)

UPLOADS = "uploads"
ASSETS = "assets"


class _MemoryWrite(StoreWrite):
    def __init__(self, store: "MemoryRecordStore"):
        self._store = store
        self._staged: list[tuple[str, Any]] = []

    def put(self, collection: str, record: Any) -> None:
        record_id = getattr(record, "id", None)
        if not record_id:
            raise StoreError(f"Record without id cannot be stored in '{collection}'")
        self._staged.append((collection, copy.deepcopy(record)))

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None and self._staged:
            self._store._commit(self._staged)
        return None


class MemoryRecordStore(RecordStore):
    """Thread-safe in-memory store for upload intents and assets.

    Records are stored as snapshots, so mutating an object after writing it
    has no effect until it is written again.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Any]] = {}
        self._subscriptions: list[Subscription] = []
        self._lock = threading.RLock()

    def get(self, collection: str, record_id: str) -> Optional[Any]:
        with self._lock:
            return self._collections.get(collection, {}).get(record_id)

    def query(self, collection: str, predicate: Optional[Predicate] = None) -> list[Any]:
        with self._lock:
            records = list(self._collections.get(collection, {}).values())
        if predicate is None:
            return records
        return [r for r in records if predicate(r)]

    def write(self) -> StoreWrite:
        return _MemoryWrite(self)

    def observe(self, collection: str, predicate: Optional[Predicate] = None) -> Subscription:
        subscription = Subscription(
            collection, predicate, asyncio.get_running_loop(), self._unsubscribe
        )
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug("Store subscription opened", extra={"collection": collection})
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _commit(self, staged: list[tuple[str, Any]]) -> None:
        with self._lock:
            # Apply to copies first so a failure leaves the store untouched
            pending = {name: dict(records) for name, records in self._collections.items()}
            inserted: Dict[str, list[str]] = {}
            updated: Dict[str, list[str]] = {}
            for collection, record in staged:
                records = pending.setdefault(collection, {})
                bucket = updated if record.id in records else inserted
                ids = bucket.setdefault(collection, [])
                if record.id not in ids:
                    ids.append(record.id)
                records[record.id] = record
            self._collections = pending

            for subscription in list(self._subscriptions):
                batch = self._batch_for(subscription, inserted, updated)
                if batch is not None:
                    subscription.push(batch)

    def _batch_for(
        self,
        subscription: Subscription,
        inserted: Dict[str, list[str]],
        updated: Dict[str, list[str]],
    ) -> Optional[ChangeBatch]:
        collection = subscription.collection
        inserted_ids = inserted.get(collection, [])
        updated_ids = [i for i in updated.get(collection, []) if i not in inserted_ids]
        if not inserted_ids and not updated_ids:
            return None

        results = [
            r for r in self._collections[collection].values() if subscription.matches(r)
        ]
        positions = {r.id: index for index, r in enumerate(results)}
        batch = ChangeBatch(
            results=results,
            inserted=[positions[i] for i in inserted_ids if i in positions],
            updated=[positions[i] for i in updated_ids if i in positions],
        )
        if not batch.inserted and not batch.updated:
            return None
        return batch
