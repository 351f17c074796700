"""Turns client upload items into upload intents."""

import logging
from pathlib import Path
from typing import Optional

from assetsync.core.config import Settings, settings as default_settings
from assetsync.core.exceptions import InvalidAsset
from assetsync.models.upload import MediaKind, UploadIntent, UploadItem, UploadStatus, utcnow
from assetsync.services.media.transforms import MediaTransformer, MediaTransformError

logger = logging.getLogger(__name__)


def storage_file_name(path: Path) -> str:
    """Original filename with all whitespace removed."""
    return "".join(path.name.split())


def build_upload_intent(
    item: UploadItem,
    transaction_id: str,
    user_id: str,
    session_id: str,
    transformer: Optional[MediaTransformer] = None,
    settings: Optional[Settings] = None,
) -> UploadIntent:
    """Extract metadata for ``item`` and return a pending upload intent.

    Does not touch the network or the record store.

    Raises:
        InvalidAsset: If no usable file could be resolved for the item
    """
    transformer = transformer or MediaTransformer()
    settings = settings or default_settings
    source = Path(item.path)
    padding = 0 if item.no_cut else settings.VARIANT_SIZE_PADDING

    intent = UploadIntent(
        id=item.id,
        user_id=user_id,
        session_id=session_id,
        transaction_id=transaction_id,
        caption=item.caption,
        expiration_hours=item.expiration_hours,
        no_cuts=item.no_cut,
        small_cut_size=item.small_cut_size,
        medium_cut_size=item.medium_cut_size,
        large_cut_size=item.large_cut_size,
        original_size=item.original_size,
    )

    if item.kind == MediaKind.IMAGE:
        _extract_image(intent, item, source, transformer, padding)
    else:
        _extract_file(intent, item, source, transformer, padding)

    if not intent.file_path:
        raise InvalidAsset(f"No usable file for upload item {item.id}")

    now = utcnow()
    intent.created_at = now
    intent.updated_at = now
    intent.status = UploadStatus.PENDING

    logger.info(
        "Upload intent built",
        extra={
            "intent_id": intent.id,
            "transaction_id": transaction_id,
            "file_path": intent.file_path,
            "content_type": intent.content_type,
            "size_bytes": intent.size,
        },
    )
    return intent


def _extract_image(
    intent: UploadIntent,
    item: UploadItem,
    source: Path,
    transformer: MediaTransformer,
    padding: int,
) -> None:
    try:
        image = transformer.open_image(source)
        file_size = source.stat().st_size
    except (MediaTransformError, OSError) as e:
        logger.warning("Image metadata extraction failed", extra={"path": str(source), "error": str(e)})
        return

    file_name = storage_file_name(source)
    if not file_name:
        return

    intent.local_path = str(source)
    intent.size = file_size + padding
    intent.color = transformer.average_color(image)
    intent.x_res, intent.y_res = image.size
    intent.file_path = f"{item.kind.value}/{file_name}"
    intent.content_type = item.content_type or transformer.mime_type(file_name)


def _extract_file(
    intent: UploadIntent,
    item: UploadItem,
    source: Path,
    transformer: MediaTransformer,
    padding: int,
) -> None:
    if not source.is_file():
        logger.warning("Upload source is not a file", extra={"path": str(source)})
        return
    try:
        file_size = source.stat().st_size
    except OSError as e:
        logger.warning("File metadata extraction failed", extra={"path": str(source), "error": str(e)})
        return

    file_name = storage_file_name(source)
    if not file_name:
        return

    intent.local_path = str(source)
    intent.size = file_size + padding
    intent.file_path = f"{item.kind.value}/{file_name}"
    intent.content_type = item.content_type or transformer.mime_type(source.name)
