"""Transaction-scoped upload events delivered to client callbacks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, ClassVar

from assetsync.models.asset import FinalizedAsset
from assetsync.models.upload import UploadIntent

if TYPE_CHECKING:
    from assetsync.services.uploader.registry import Transaction


@dataclass(frozen=True)
class UploadState:
    """Base class of every event passed to an upload callback."""

    kind: ClassVar[str] = "state"

    @property
    def is_asset_terminal(self) -> bool:
        return False


@dataclass(frozen=True)
class TransactionStart(UploadState):
    kind: ClassVar[str] = "transaction_start"

    total: int
    transaction: Transaction


@dataclass(frozen=True)
class AssetStart(UploadState):
    kind: ClassVar[str] = "asset_start"

    index: int
    total: int
    intent: UploadIntent


@dataclass(frozen=True)
class AssetProgress(UploadState):
    kind: ClassVar[str] = "asset_progress"

    sent: int
    total: int
    intent: UploadIntent


@dataclass(frozen=True)
class AssetUploadError(UploadState):
    kind: ClassVar[str] = "asset_upload_error"

    error: Exception
    intent: UploadIntent

    @property
    def is_asset_terminal(self) -> bool:
        return True


@dataclass(frozen=True)
class AssetUploadEnd(UploadState):
    """Binary transfer and commit finished; the asset is not observed yet."""

    kind: ClassVar[str] = "asset_upload_end"

    intent: UploadIntent


@dataclass(frozen=True)
class AssetCreated(UploadState):
    kind: ClassVar[str] = "asset_created"

    asset: FinalizedAsset
    intent: UploadIntent

    @property
    def is_asset_terminal(self) -> bool:
        return True


@dataclass(frozen=True)
class TransactionEnd(UploadState):
    kind: ClassVar[str] = "transaction_end"

    total: int
    assets: list[FinalizedAsset]
    transaction: Transaction


UploadCallback = Callable[[str, UploadState], None]
