"""Per-asset upload pipeline: init, transfer, variants, commit."""

import asyncio
import logging
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Iterator

from PIL import Image

from assetsync.core.exceptions import InvalidAsset
from assetsync.models.upload import UploadIntent, UploadStatus
from assetsync.services.backend.client import BackendClient
from assetsync.services.media.transforms import MediaTransformer, MediaTransformError
from assetsync.storage.base import RecordStore
from assetsync.storage.memory import ASSETS, UPLOADS
from assetsync.storage.object_store import ObjectStorageClient

logger = logging.getLogger(__name__)

PREVIEW_MIME_TYPE = "image/png"


@contextmanager
def scoped_temp_file(path: Path) -> Iterator[Path]:
    """Yield ``path`` and delete it on exit, whatever happened inside."""
    try:
        yield path
    finally:
        try:
            path.unlink(missing_ok=True)
            logger.debug("Temporary file removed", extra={"path": str(path)})
        except OSError as e:
            logger.warning("Failed to remove temporary file", extra={"path": str(path), "error": str(e)})


class AssetUploadPipeline:
    """Runs every step for one admitted intent, stopping at the first failure.

    The finalized asset is written to the record store and never returned:
    observers learn about it from the store's change feed.
    """

    def __init__(
        self,
        store: RecordStore,
        storage: ObjectStorageClient,
        backend: BackendClient,
        transformer: MediaTransformer,
    ):
        self._store = store
        self._storage = storage
        self._backend = backend
        self._transformer = transformer

    async def run(self, intent: UploadIntent) -> None:
        """Upload ``intent`` end to end.

        Raises:
            InvalidAsset: If the source media cannot be decoded
            TransferFailed: If any PUT fails
            InitError: If write URLs cannot be obtained
            CommitError: If the backend refuses the asset
            StoreError: If the record store cannot be written
        """
        logger.info(
            "Starting asset upload",
            extra={"intent_id": intent.id, "content_type": intent.content_type},
        )
        # The video handed over by the picker is a temporary copy owned by us
        cleanup = scoped_temp_file(Path(intent.local_path)) if intent.is_video else nullcontext()
        with cleanup:
            if not intent.write_url:
                await self.initialize(intent)

            intent.touch(UploadStatus.UPLOADING)
            self._store.put(UPLOADS, intent)

            if intent.is_image:
                await self._upload_image(intent)
            elif intent.is_video:
                await self._upload_video(intent)
            else:
                await self._storage.put_file(intent.write_url, intent.local_path, upload_id=intent.id)

            await self.commit(intent)
        logger.info("Asset upload finished", extra={"intent_id": intent.id})

    async def initialize(self, intent: UploadIntent) -> None:
        """Fetch a content id and write URLs from the backend."""
        result = await self._backend.init_asset(
            intent.file_path, intent.expiration_hours, intent.content_type
        )
        urls = result.write_urls
        intent.content_id = result.content_id
        intent.write_url = urls.write_url
        intent.write_url_small = urls.write_url_small
        intent.write_url_medium = urls.write_url_medium
        intent.write_url_large = urls.write_url_large
        intent.write_url_video_preview = urls.write_url_video_preview
        intent.touch(UploadStatus.INITIALIZED)
        self._store.put(UPLOADS, intent)

    async def commit(self, intent: UploadIntent) -> None:
        """Create the asset on the backend and reconcile the local store."""
        result = await self._backend.create_asset(
            path=intent.file_path,
            content_id=intent.content_id,
            content_type=intent.content_type,
            expiration_hours=intent.expiration_hours,
            size=intent.size,
            duration=0.0,
            color=intent.color,
            x_res=intent.x_res,
            y_res=intent.y_res,
            caption=intent.caption,
            extra=Path(intent.local_path).name,
        )
        # Local mirror keyed by the intent, owned by the uploading user
        asset = result.asset.model_copy(update={"id": intent.id, "user_id": intent.user_id})

        intent.url = asset.url
        intent.url_small = asset.url_small
        intent.url_medium = asset.url_medium
        intent.url_large = asset.url_large
        intent.url_video_preview = asset.url_video_preview
        intent.touch(UploadStatus.UPLOADED)

        with self._store.write() as batch:
            batch.put(UPLOADS, intent)
            batch.put(ASSETS, asset)

    async def _upload_image(self, intent: UploadIntent) -> None:
        image = await self._decode(self._transformer.open_image, intent.local_path)
        data = await asyncio.to_thread(self._transformer.encode, image, intent.content_type)
        await self._storage.put_bytes(intent.write_url, data, intent.content_type, upload_id=intent.id)
        await self._upload_cuts(intent, image, intent.content_type)

    async def _upload_video(self, intent: UploadIntent) -> None:
        video_path = Path(intent.local_path)
        await self._storage.put_file(intent.write_url, video_path, upload_id=intent.id)
        preview = await self._decode(self._transformer.thumbnail, video_path)
        data = await asyncio.to_thread(self._transformer.encode, preview, PREVIEW_MIME_TYPE)
        await self._storage.put_bytes(
            intent.write_url_video_preview or "", data, PREVIEW_MIME_TYPE, upload_id=intent.id
        )
        await self._upload_cuts(intent, preview, PREVIEW_MIME_TYPE)

    async def _upload_cuts(self, intent: UploadIntent, image: Image.Image, mime_type: str) -> None:
        if intent.no_cuts:
            return

        cuts = [
            ("small", intent.small_cut_size, intent.write_url_small),
            ("medium", intent.medium_cut_size, intent.write_url_medium),
            ("large", intent.large_cut_size, intent.write_url_large),
        ]
        for name, size, write_url in cuts:
            logger.debug("Uploading cut", extra={"intent_id": intent.id, "cut": name, "cut_size": size})
            cut = await asyncio.to_thread(self._transformer.resize, image, size)
            data = await asyncio.to_thread(self._transformer.encode, cut, mime_type)
            await self._storage.put_bytes(write_url or "", data, mime_type, upload_id=intent.id)

    @staticmethod
    async def _decode(load, source) -> Image.Image:
        try:
            return await asyncio.to_thread(load, source)
        except MediaTransformError as e:
            raise InvalidAsset(str(e)) from e
