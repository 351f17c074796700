"""Tests for the in-memory record store and its change feed."""

import asyncio
from dataclasses import dataclass

import pytest

from assetsync.core.exceptions import StoreError
from assetsync.storage.base import ChangeBatch


@dataclass
class Record:
    id: str
    owner: str = "user-1"
    value: int = 0


async def next_batch(subscription, timeout=1.0) -> ChangeBatch:
    iterator = subscription.__aiter__()
    return await asyncio.wait_for(iterator.__anext__(), timeout=timeout)


class TestMemoryRecordStore:
    """Tests for reads and writes."""

    def test_put_and_get(self, store):
        store.put("things", Record("a", value=1))

        assert store.get("things", "a") == Record("a", value=1)
        assert store.get("things", "missing") is None
        assert store.get("other", "a") is None

    def test_records_are_snapshots(self, store):
        record = Record("a", value=1)
        store.put("things", record)
        record.value = 99

        assert store.get("things", "a").value == 1

    def test_query_with_predicate(self, store):
        store.put("things", Record("a", owner="x"))
        store.put("things", Record("b", owner="y"))

        assert [r.id for r in store.query("things")] == ["a", "b"]
        assert [r.id for r in store.query("things", lambda r: r.owner == "y")] == ["b"]

    def test_write_is_all_or_nothing(self, store):
        with pytest.raises(RuntimeError):
            with store.write() as batch:
                batch.put("things", Record("a"))
                raise RuntimeError("abort")

        assert store.get("things", "a") is None

    def test_record_without_id_rejected(self, store):
        with pytest.raises(StoreError):
            store.put("things", Record(""))


class TestChangeFeed:
    """Tests for observe()."""

    @pytest.mark.asyncio
    async def test_insert_then_update(self, store):
        subscription = store.observe("things")

        store.put("things", Record("a"))
        batch = await next_batch(subscription)
        assert batch.inserted == [0]
        assert batch.updated == []
        assert [r.id for r in batch.changed()] == ["a"]

        store.put("things", Record("a", value=2))
        batch = await next_batch(subscription)
        assert batch.inserted == []
        assert batch.changed()[0].value == 2

        subscription.cancel()

    @pytest.mark.asyncio
    async def test_multi_record_write_is_one_batch(self, store):
        subscription = store.observe("things")

        with store.write() as batch:
            batch.put("things", Record("a"))
            batch.put("things", Record("b"))
            batch.put("ignored", Record("c"))

        changes = await next_batch(subscription)
        assert [r.id for r in changes.changed()] == ["a", "b"]
        assert len(changes.results) == 2
        subscription.cancel()

    @pytest.mark.asyncio
    async def test_predicate_filters_notifications(self, store):
        subscription = store.observe("things", lambda r: r.owner == "user-1")

        store.put("things", Record("other", owner="user-2"))
        store.put("things", Record("mine"))

        batch = await next_batch(subscription)
        assert [r.id for r in batch.changed()] == ["mine"]
        assert [r.id for r in batch.results] == ["mine"]
        subscription.cancel()

    @pytest.mark.asyncio
    async def test_writes_from_other_threads_are_delivered(self, store):
        subscription = store.observe("things")

        await asyncio.to_thread(store.put, "things", Record("a"))

        batch = await next_batch(subscription)
        assert batch.changed()[0].id == "a"
        subscription.cancel()

    @pytest.mark.asyncio
    async def test_cancel_ends_iteration(self, store):
        subscription = store.observe("things")
        received = []

        async def consume():
            async for batch in subscription:
                received.append(batch)

        task = asyncio.create_task(consume())
        store.put("things", Record("a"))
        await asyncio.sleep(0)
        subscription.cancel()
        await asyncio.wait_for(task, timeout=1.0)

        assert len(received) == 1
        assert subscription.cancelled
        store.put("things", Record("b"))
        assert subscription._queue.empty()
