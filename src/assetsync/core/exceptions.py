"""Exceptions raised by the upload orchestrator."""


class AssetSyncError(Exception):
    """Base exception for the upload orchestrator."""
    pass


class UploadError(AssetSyncError):
    """Per-asset failure, reported through the transaction callback."""
    pass


class InvalidAsset(UploadError):
    """Exception raised when metadata extraction yields no usable file."""
    pass


class TransferFailed(UploadError):
    """Exception raised when a PUT to a write URL fails."""
    pass


class InitError(UploadError):
    """Exception raised when the backend init-asset call fails."""
    pass


class CommitError(UploadError):
    """Exception raised when the backend create-asset call fails."""
    pass


class UploadCancelled(UploadError):
    """Exception raised for uploads abandoned by a shutdown without draining."""
    pass


class SubmissionError(AssetSyncError):
    """Submission-level failure, raised to the caller before any queueing."""
    pass


class NoUploads(SubmissionError):
    """Exception raised when a transaction contains no upload items."""
    pass


class DuplicateTransaction(SubmissionError):
    """Exception raised when a transaction id is already active."""
    pass


class StoreError(AssetSyncError):
    """Exception raised when the local record store cannot be written.

    The store is the single source of truth for what has been uploaded,
    so this is fatal for the orchestrator.
    """
    pass
