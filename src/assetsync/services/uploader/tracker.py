"""Keeps a progress snapshot per transaction from the callback stream."""

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Optional

from assetsync.core.config import settings

from assetsync.models.events import (
    AssetCreated,
    AssetProgress,
    AssetStart,
    AssetUploadError,
    TransactionEnd,
    TransactionStart,
    UploadState,
)


@dataclass
class TransactionSnapshot:
    """What a client can poll about one transaction."""

    transaction_id: str
    status: str = "pending"
    total: int = 0
    completed: int = 0
    failed: int = 0
    current_upload: Optional[str] = None
    bytes_sent: int = 0
    bytes_total: int = 0
    assets: list[dict] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)


class TransactionTracker:
    """Upload callback that records a snapshot per transaction.

    Only the most recent ``max_finished`` finished transactions are kept;
    older ones are evicted oldest first.
    """

    def __init__(self, max_finished: Optional[int] = None):
        self.max_finished = max_finished or settings.TRACKER_MAX_FINISHED
        self._snapshots: Dict[str, TransactionSnapshot] = {}
        self._finished: Deque[str] = deque()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)

    def __call__(self, transaction_id: str, state: UploadState) -> None:
        with self._lock:
            snapshot = self._snapshots.setdefault(
                transaction_id, TransactionSnapshot(transaction_id=transaction_id)
            )
            if isinstance(state, TransactionStart):
                # A reused transaction id starts from a clean snapshot
                if snapshot.status == "finished":
                    self._finished.remove(transaction_id)
                    snapshot = self._snapshots[transaction_id] = TransactionSnapshot(
                        transaction_id=transaction_id
                    )
                snapshot.status = "running"
                snapshot.total = state.total
            elif isinstance(state, AssetStart):
                snapshot.current_upload = state.intent.id
                snapshot.bytes_sent = 0
                snapshot.bytes_total = 0
            elif isinstance(state, AssetProgress):
                snapshot.bytes_sent = state.sent
                snapshot.bytes_total = state.total
            elif isinstance(state, AssetUploadError):
                snapshot.failed += 1
                snapshot.errors.append(
                    {
                        "upload_id": state.intent.id,
                        "error_type": type(state.error).__name__,
                        "message": str(state.error),
                    }
                )
            elif isinstance(state, AssetCreated):
                snapshot.completed += 1
                snapshot.assets.append(state.asset.model_dump(mode="json"))
            elif isinstance(state, TransactionEnd):
                snapshot.status = "finished"
                snapshot.current_upload = None
                self._evict(transaction_id)

    def get(self, transaction_id: str) -> Optional[TransactionSnapshot]:
        with self._lock:
            return self._snapshots.get(transaction_id)

    def _evict(self, transaction_id: str) -> None:
        self._finished.append(transaction_id)
        while len(self._finished) > self.max_finished:
            self._snapshots.pop(self._finished.popleft(), None)
