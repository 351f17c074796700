"""Turns transfer progress and store changes into transaction events."""

import asyncio
import logging
from typing import Dict, Optional

from assetsync.core.logging import transaction_id_context
from assetsync.models.asset import FinalizedAsset
from assetsync.models.events import (
    AssetCreated,
    AssetProgress,
    AssetUploadError,
    TransactionEnd,
    UploadState,
)
from assetsync.models.upload import UploadIntent
from assetsync.services.uploader.registry import Completion, Transaction, TransactionRegistry
from assetsync.storage.base import Subscription

logger = logging.getLogger(__name__)


class EventBridge:
    """Delivers transaction-scoped events to client callbacks.

    Every method must be called on the orchestrator's event loop, which is
    the single context callbacks are delivered on. Notifications for
    intents whose transaction is already gone are ignored.
    """

    def __init__(self, registry: TransactionRegistry):
        self._registry = registry
        self._observed: Dict[str, asyncio.Event] = {}

    def emit(self, transaction: Transaction, state: UploadState) -> None:
        """Invoke the transaction callback; a failing callback is logged, not raised."""
        token = transaction_id_context.set(transaction.transaction_id)
        try:
            transaction.on_upload(transaction.transaction_id, state)
        except Exception:
            logger.exception(
                "Upload callback raised",
                extra={"event": state.kind},
            )
        finally:
            transaction_id_context.reset(token)

    def on_transfer_progress(self, upload_id: Optional[str], sent: int, total: int) -> None:
        if upload_id is None:
            return
        owner = self._registry.find_owner(upload_id)
        if owner is None:
            return
        transaction, intent = owner
        self.emit(transaction, AssetProgress(sent=sent, total=total, intent=intent))

    def on_upload_failed(self, intent: UploadIntent, error: Exception) -> None:
        completion = self._registry.complete(intent.id)
        if completion is None:
            logger.debug("Failure for inactive upload ignored", extra={"intent_id": intent.id})
            return
        self.emit(completion.transaction, AssetUploadError(error=error, intent=completion.intent))
        self._finish(completion)

    def on_asset_changed(self, asset: FinalizedAsset) -> None:
        completion = self._registry.complete(asset.id, asset)
        if completion is None:
            logger.debug("Change for inactive upload ignored", extra={"asset_id": asset.id})
            return
        self.emit(completion.transaction, AssetCreated(asset=asset, intent=completion.intent))
        self._finish(completion)
        waiter = self._observed.get(asset.id)
        if waiter is not None:
            waiter.set()

    async def run(self, subscription: Subscription) -> None:
        """Consume the asset change feed until the subscription is cancelled."""
        logger.info("Asset change listener started", extra={"collection": subscription.collection})
        async for batch in subscription:
            for asset in batch.changed():
                self.on_asset_changed(asset)
        logger.info("Asset change listener stopped", extra={"collection": subscription.collection})

    async def wait_observed(self, intent_id: str, timeout: float) -> bool:
        """Wait until the committed asset for ``intent_id`` has been delivered.

        Returns False on timeout, leaving the member unaccounted for.
        """
        if self._registry.find_owner(intent_id) is None:
            return True
        event = self._observed.setdefault(intent_id, asyncio.Event())
        try:
            await asyncio.wait_for(event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(
                "Committed asset not observed in time",
                extra={"intent_id": intent_id, "timeout": timeout},
            )
            return False
        finally:
            self._observed.pop(intent_id, None)

    def _finish(self, completion: Completion) -> None:
        if not completion.finished:
            return
        transaction = completion.transaction
        self.emit(
            transaction,
            TransactionEnd(
                total=transaction.uploads_total,
                assets=list(transaction.assets),
                transaction=transaction,
            ),
        )
