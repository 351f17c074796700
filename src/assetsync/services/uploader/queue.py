"""Global FIFO that runs one upload at a time."""

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Optional

from assetsync.core.exceptions import StoreError
from assetsync.models.upload import UploadIntent, UploadStatus
from assetsync.storage.base import RecordStore
from assetsync.storage.memory import UPLOADS

logger = logging.getLogger(__name__)

UploadHandler = Callable[[UploadIntent], Awaitable[None]]


class UploadQueue:
    """Serializes uploads across all transactions.

    ``admit_next`` is the only way work starts: it runs once per submission
    and again after every handler completion, success or failure. A fatal
    store error halts the queue; nothing is admitted afterwards.
    """

    def __init__(self, store: RecordStore, handler: UploadHandler):
        self._store = store
        self._handler = handler
        self._pending: Deque[UploadIntent] = deque()
        self._active: Optional[UploadIntent] = None
        self._task: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._fatal: Optional[StoreError] = None
        self._closed = False

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def active(self) -> Optional[UploadIntent]:
        return self._active

    @property
    def halted(self) -> bool:
        return self._fatal is not None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def fatal_error(self) -> Optional[StoreError]:
        return self._fatal

    def enqueue(self, intent: UploadIntent) -> None:
        """Append to the tail without starting work."""
        self._pending.append(intent)
        self._idle.clear()

    def admit_next(self) -> Optional[UploadIntent]:
        """Start the head of the queue if nothing is running.

        Returns the admitted intent, or None when busy, empty, halted or
        closed.
        """
        if self._active is not None:
            return None
        if self.halted or self._closed or not self._pending:
            self._idle.set()
            return None

        intent = self._pending.popleft()
        intent.touch(UploadStatus.UPLOADING)
        try:
            self._store.put(UPLOADS, intent)
        except StoreError as e:
            self._halt(e)
            return None

        self._active = intent
        self._idle.clear()
        logger.info(
            "Upload admitted",
            extra={
                "intent_id": intent.id,
                "transaction_id": intent.transaction_id,
                "queued": len(self._pending),
            },
        )
        self._task = asyncio.create_task(self._run(intent), name=f"upload-{intent.id}")
        return intent

    async def wait_idle(self) -> None:
        """Wait until the queue is drained.

        Raises:
            StoreError: If the queue halted on a fatal store failure
        """
        await self._idle.wait()
        if self._fatal is not None:
            raise self._fatal

    async def close(self) -> list[UploadIntent]:
        """Stop admitting work and cancel the running upload.

        Returns the intents that were in flight or still queued, in queue
        order. None of them will run.
        """
        self._closed = True
        abandoned: list[UploadIntent] = []
        if self._active is not None:
            abandoned.append(self._active)
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        abandoned.extend(self._pending)
        self._pending.clear()
        self._active = None
        self._idle.set()
        if abandoned:
            logger.warning("Upload queue closed with pending work", extra={"abandoned": len(abandoned)})
        return abandoned

    async def _run(self, intent: UploadIntent) -> None:
        try:
            await self._handler(intent)
        except StoreError as e:
            self._halt(e)
            return
        except Exception:
            logger.exception("Upload handler raised", extra={"intent_id": intent.id})
        finally:
            self._active = None
        self.admit_next()

    def _halt(self, error: StoreError) -> None:
        self._fatal = error
        logger.critical(
            "Record store write failed, upload queue halted",
            extra={"queued": len(self._pending), "error": str(error)},
        )
        self._idle.set()
