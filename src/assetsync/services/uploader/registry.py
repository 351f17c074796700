"""Registry of in-flight upload transactions."""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from assetsync.core.exceptions import DuplicateTransaction
from assetsync.models.asset import FinalizedAsset
from assetsync.models.events import UploadCallback
from assetsync.models.upload import UploadIntent

logger = logging.getLogger(__name__)


class Transaction:
    """A client-submitted batch of uploads sharing one callback."""

    def __init__(self, transaction_id: str, on_upload: UploadCallback):
        self.transaction_id = transaction_id
        self.on_upload = on_upload
        self.uploads: Dict[str, UploadIntent] = {}
        self.assets: list[FinalizedAsset] = []
        self.uploads_total = 0
        self.uploads_remaining = 0
        self._pending: set[str] = set()

    def __repr__(self) -> str:
        return (
            f"Transaction({self.transaction_id!r}, "
            f"remaining={self.uploads_remaining}/{self.uploads_total})"
        )

    @property
    def uploads_index(self) -> int:
        return self.uploads_total - self.uploads_remaining

    @property
    def member_ids(self) -> list[str]:
        return list(self.uploads)

    def add(self, intent: UploadIntent) -> None:
        self.uploads[intent.id] = intent

    def start(self) -> None:
        self.uploads_total = len(self.uploads)
        self.uploads_remaining = self.uploads_total
        self._pending = set(self.uploads)

    def index_of(self, intent_id: str) -> int:
        return self.member_ids.index(intent_id)

    def is_pending(self, intent_id: str) -> bool:
        return intent_id in self._pending

    def upload_complete(self, intent_id: str, asset: Optional[FinalizedAsset]) -> bool:
        """Account for one finished member; True when none remain."""
        self._pending.discard(intent_id)
        if asset is not None:
            self.assets.append(asset)
        self.uploads_remaining -= 1
        return self.uploads_remaining == 0


@dataclass
class Completion:
    """Outcome of completing one member of a transaction."""

    transaction: Transaction
    intent: UploadIntent
    finished: bool


class TransactionRegistry:
    """Maps transaction ids to active transactions.

    All mutations are serialized by one lock, so a transaction is removed
    exactly once even when sibling members complete from different contexts.
    """

    def __init__(self):
        self._transactions: Dict[str, Transaction] = {}
        self._owners: Dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._transactions)

    def __contains__(self, transaction_id: str) -> bool:
        with self._lock:
            return transaction_id in self._transactions

    def register(self, transaction: Transaction) -> None:
        """Add a started transaction.

        Raises:
            DuplicateTransaction: If the transaction id is already active or
                one of its members is already in flight elsewhere
        """
        with self._lock:
            if transaction.transaction_id in self._transactions:
                raise DuplicateTransaction(
                    f"Transaction {transaction.transaction_id} is already active"
                )
            clashing = [i for i in transaction.member_ids if i in self._owners]
            if clashing:
                raise DuplicateTransaction(
                    f"Uploads already in flight: {', '.join(clashing)}"
                )
            self._transactions[transaction.transaction_id] = transaction
            for intent_id in transaction.member_ids:
                self._owners[intent_id] = transaction.transaction_id

        logger.info(
            "Transaction registered",
            extra={
                "transaction_id": transaction.transaction_id,
                "uploads_total": transaction.uploads_total,
            },
        )

    def get(self, transaction_id: str) -> Optional[Transaction]:
        with self._lock:
            return self._transactions.get(transaction_id)

    def active(self) -> Iterable[Transaction]:
        with self._lock:
            return list(self._transactions.values())

    def find_owner(self, intent_id: str) -> Optional[tuple[Transaction, UploadIntent]]:
        """Transaction and intent owning ``intent_id``, or None if not in flight."""
        with self._lock:
            return self._find_owner(intent_id)

    def complete(self, intent_id: str, asset: Optional[FinalizedAsset] = None) -> Optional[Completion]:
        """Record one member as done and drop the transaction when it was the last.

        Returns None when the intent belongs to no active transaction, which
        callers treat as a duplicate notification.
        """
        with self._lock:
            owner = self._find_owner(intent_id)
            if owner is None:
                return None
            transaction, intent = owner
            del self._owners[intent_id]
            finished = transaction.upload_complete(intent_id, asset)
            if finished:
                del self._transactions[transaction.transaction_id]

        if finished:
            logger.info(
                "Transaction finished",
                extra={
                    "transaction_id": transaction.transaction_id,
                    "uploads_total": transaction.uploads_total,
                    "assets": len(transaction.assets),
                },
            )
        return Completion(transaction=transaction, intent=intent, finished=finished)

    def _find_owner(self, intent_id: str) -> Optional[tuple[Transaction, UploadIntent]]:
        transaction_id = self._owners.get(intent_id)
        if transaction_id is None:
            return None
        transaction = self._transactions.get(transaction_id)
        if transaction is None or not transaction.is_pending(intent_id):
            return None
        return transaction, transaction.uploads[intent_id]
