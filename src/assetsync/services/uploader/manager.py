"""Upload orchestrator: transactions in, serialized uploads out."""

import asyncio
import logging
from typing import Optional, Sequence

from assetsync.core.config import Settings, settings as default_settings
from assetsync.core.exceptions import (
    CommitError,
    DuplicateTransaction,
    InvalidAsset,
    NoUploads,
    StoreError,
    SubmissionError,
    UploadCancelled,
    UploadError,
)
from assetsync.core.logging import transaction_id_context
from assetsync.models.events import AssetStart, AssetUploadEnd, TransactionStart, UploadCallback
from assetsync.models.upload import UploadIntent, UploadItem, UploadStatus
from assetsync.services.backend.client import BackendClient
from assetsync.services.media.transforms import MediaTransformer
from assetsync.services.uploader.bridge import EventBridge
from assetsync.services.uploader.pipeline import AssetUploadPipeline
from assetsync.services.uploader.queue import UploadQueue
from assetsync.services.uploader.registry import Transaction, TransactionRegistry
from assetsync.services.uploader.request_builder import build_upload_intent
from assetsync.storage.base import RecordStore, Subscription
from assetsync.storage.memory import ASSETS, UPLOADS
from assetsync.storage.object_store import ObjectStorageClient

logger = logging.getLogger(__name__)


class UploadManager:
    """Coordinates upload transactions against one record store.

    Construct it explicitly, ``await start()`` before submitting and
    ``await stop()`` on teardown. Any number of transactions may be active;
    their uploads share one global queue that runs a single pipeline at a
    time. All callbacks are delivered on the event loop that called
    ``start``.
    """

    def __init__(
        self,
        store: RecordStore,
        storage: Optional[ObjectStorageClient] = None,
        backend: Optional[BackendClient] = None,
        transformer: Optional[MediaTransformer] = None,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or default_settings
        self.user_id = user_id or self.settings.USER_ID
        self.session_id = session_id or self.settings.SESSION_ID
        self.store = store

        self.registry = TransactionRegistry()
        self.bridge = EventBridge(self.registry)
        self.transformer = transformer or MediaTransformer()
        self.storage = storage or ObjectStorageClient()
        self.storage.on_progress = self.bridge.on_transfer_progress
        self.backend = backend or BackendClient()
        self.pipeline = AssetUploadPipeline(store, self.storage, self.backend, self.transformer)
        self.queue = UploadQueue(store, self._process)

        self._subscription: Optional[Subscription] = None
        self._listener: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "UploadManager":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop(drain=exc_type is None)

    @property
    def running(self) -> bool:
        return self._listener is not None and not self._listener.done()

    async def start(self) -> None:
        """Subscribe to the asset change feed and start the listener task."""
        if self.running:
            return
        if self.queue.closed:
            raise RuntimeError("UploadManager cannot be restarted after stop()")
        user_id = self.user_id
        self._subscription = self.store.observe(ASSETS, lambda asset: asset.user_id == user_id)
        self._listener = asyncio.create_task(
            self.bridge.run(self._subscription), name="asset-change-listener"
        )
        logger.info(
            "Upload manager started",
            extra={"user_id": self.user_id, "session_id": self.session_id},
        )

    async def stop(self, drain: bool = True) -> None:
        """Stop listening; with ``drain`` wait for queued uploads first.

        Without ``drain`` the running upload is cancelled and every upload
        that did not finish is reported through ``AssetUploadError``.

        Raises:
            StoreError: If the queue had halted on a fatal store failure
        """
        try:
            if drain:
                await self.queue.wait_idle()
        finally:
            for intent in await self.queue.close():
                self._settle(intent, UploadCancelled("Upload manager stopped before the upload finished"))
            if self._subscription is not None:
                self._subscription.cancel()
                self._subscription = None
            if self._listener is not None:
                await self._listener
                self._listener = None
            await self.storage.aclose()
            await self.backend.aclose()
            logger.info("Upload manager stopped")

    async def upload_assets(
        self,
        items: Sequence[UploadItem],
        transaction_id: str,
        on_upload: UploadCallback,
    ) -> Transaction:
        """Submit ``items`` as one transaction.

        Items whose metadata cannot be extracted are reported through
        ``AssetUploadError`` and still count toward the transaction total.

        Raises:
            NoUploads: If ``items`` is empty
            DuplicateTransaction: If ``transaction_id`` is already active
            SubmissionError: If two items share an id
            StoreError: If the queue has halted or a record cannot be written
        """
        if self.queue.halted:
            raise self.queue.fatal_error
        if not self.running:
            raise RuntimeError("UploadManager.start() must be awaited before uploading")
        if not items:
            raise NoUploads("No uploads specified")
        if transaction_id in self.registry:
            raise DuplicateTransaction(f"Transaction {transaction_id} is already active")
        if len({item.id for item in items}) != len(items):
            raise SubmissionError("Upload items must have distinct ids")

        logger.info(
            "Starting upload request",
            extra={"transaction_id": transaction_id, "items": len(items)},
        )
        transaction = Transaction(transaction_id, on_upload)
        rejected: dict[str, InvalidAsset] = {}
        for item in items:
            try:
                intent = await asyncio.to_thread(
                    build_upload_intent,
                    item,
                    transaction_id,
                    self.user_id,
                    self.session_id,
                    self.transformer,
                    self.settings,
                )
            except InvalidAsset as e:
                intent = self._rejected_intent(item, transaction_id)
                rejected[intent.id] = e
            transaction.add(intent)

        transaction.start()
        self.registry.register(transaction)
        self.bridge.emit(transaction, TransactionStart(total=transaction.uploads_total, transaction=transaction))

        for intent in list(transaction.uploads.values()):
            if intent.id in rejected:
                self._fail(intent, rejected[intent.id])
            else:
                self.queue.enqueue(intent)

        self.queue.admit_next()
        return transaction

    async def wait_idle(self) -> None:
        """Wait until every queued upload has run."""
        await self.queue.wait_idle()

    async def _process(self, intent: UploadIntent) -> None:
        token = transaction_id_context.set(intent.transaction_id)
        try:
            owner = self.registry.find_owner(intent.id)
            if owner is not None:
                transaction, _ = owner
                self.bridge.emit(
                    transaction,
                    AssetStart(
                        index=transaction.index_of(intent.id),
                        total=transaction.uploads_total,
                        intent=intent,
                    ),
                )

            try:
                await self.pipeline.run(intent)
            except StoreError:
                raise
            except UploadError as e:
                self._fail(intent, e)
                return
            except Exception as e:
                logger.exception("Unexpected upload failure", extra={"intent_id": intent.id})
                self._fail(intent, e)
                return

            if owner is not None:
                self.bridge.emit(transaction, AssetUploadEnd(intent=intent))
            # Keep AssetCreated ahead of the next AssetStart
            observed = await self.bridge.wait_observed(intent.id, self.settings.ASSET_OBSERVE_TIMEOUT)
            if not observed:
                self._settle(intent, CommitError("Committed asset was not observed in the record store"))
        finally:
            transaction_id_context.reset(token)

    def _fail(self, intent: UploadIntent, error: Exception) -> None:
        logger.warning(
            "Upload failed",
            extra={
                "intent_id": intent.id,
                "transaction_id": intent.transaction_id,
                "error_type": type(error).__name__,
                "error": str(error),
            },
        )
        intent.error = str(error)
        intent.touch(UploadStatus.FAILURE)
        self.store.put(UPLOADS, intent)
        self.bridge.on_upload_failed(intent, error)

    def _settle(self, intent: UploadIntent, error: Exception) -> None:
        """Complete a member the change feed did not account for.

        A committed asset found in the store is delivered as created;
        anything else fails with ``error``.
        """
        if self.registry.find_owner(intent.id) is None:
            return
        asset = self.store.get(ASSETS, intent.id) if intent.status == UploadStatus.UPLOADED else None
        if asset is not None:
            logger.warning("Delivering committed asset from the store", extra={"intent_id": intent.id})
            self.bridge.on_asset_changed(asset)
        elif self.queue.halted:
            intent.error = str(error)
            intent.touch(UploadStatus.FAILURE)
            self.bridge.on_upload_failed(intent, error)
        else:
            self._fail(intent, error)

    def _rejected_intent(self, item: UploadItem, transaction_id: str) -> UploadIntent:
        return UploadIntent(
            id=item.id,
            user_id=self.user_id,
            session_id=self.session_id,
            transaction_id=transaction_id,
            local_path=item.path,
            content_type=item.content_type,
            caption=item.caption,
            expiration_hours=item.expiration_hours,
            no_cuts=item.no_cut,
        )
