"""
Upload Orchestrator

Turns client transactions (ordered lists of local assets) into a globally
serialized sequence of uploads: metadata extraction, write-URL acquisition,
transfer of the original and its resized cuts, backend commit and local
store reconciliation. Progress and completion are reported per transaction
through a single callback.
"""

from assetsync.core.exceptions import (
    AssetSyncError,
    CommitError,
    DuplicateTransaction,
    InitError,
    InvalidAsset,
    NoUploads,
    StoreError,
    SubmissionError,
    TransferFailed,
    UploadCancelled,
    UploadError,
)
from assetsync.services.uploader.manager import UploadManager
from assetsync.services.uploader.registry import Transaction, TransactionRegistry
from assetsync.services.uploader.tracker import TransactionSnapshot, TransactionTracker

__all__ = [
    "AssetSyncError",
    "CommitError",
    "DuplicateTransaction",
    "InitError",
    "InvalidAsset",
    "NoUploads",
    "StoreError",
    "SubmissionError",
    "Transaction",
    "TransactionRegistry",
    "TransactionSnapshot",
    "TransactionTracker",
    "TransferFailed",
    "UploadCancelled",
    "UploadError",
    "UploadManager",
]
