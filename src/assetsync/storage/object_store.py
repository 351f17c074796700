"""Object storage transport for pre-signed write URLs."""

import logging
import mimetypes
from pathlib import Path
from typing import AsyncIterator, Callable, Optional

import httpx

from assetsync.core.config import settings
from assetsync.core.exceptions import TransferFailed

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Optional[str], int, int], None]


class ObjectStorageClient:
    """Performs PUT requests against time-limited write URLs.

    Every transfer carries an explicit ``upload_id`` that is handed back to
    the progress callback, so callers can attribute progress to an upload
    without any per-connection state.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        on_progress: Optional[ProgressCallback] = None,
        chunk_size: Optional[int] = None,
    ):
        self._client = client or httpx.AsyncClient(timeout=settings.UPLOAD_TIMEOUT)
        self._owns_client = client is None
        self.on_progress = on_progress
        self.chunk_size = chunk_size or settings.UPLOAD_CHUNK_SIZE

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def put_bytes(
        self, url: str, data: bytes, mime_type: str, upload_id: Optional[str] = None
    ) -> int:
        """Upload an in-memory payload.

        Args:
            url: Pre-signed write URL
            data: Payload bytes
            mime_type: Content-Type header value
            upload_id: Identifier handed back to the progress callback

        Returns:
            HTTP status code (always 200)

        Raises:
            TransferFailed: If the URL is empty or the response is not 200
        """
        chunks = self._iter_bytes(data, upload_id)
        return await self._put(url, chunks, len(data), mime_type, upload_id)

    async def put_file(self, url: str, path: Path | str, upload_id: Optional[str] = None) -> int:
        """Stream a local file to a write URL.

        The Content-Type is guessed from the file name.

        Raises:
            TransferFailed: If the URL is empty, the file is unreadable or
                the response is not 200
        """
        path = Path(path)
        try:
            total = path.stat().st_size
        except OSError as e:
            raise TransferFailed(f"Cannot read {path}: {e}") from e
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        chunks = self._iter_file(path, total, upload_id)
        return await self._put(url, chunks, total, mime_type, upload_id)

    async def _put(
        self,
        url: str,
        chunks: AsyncIterator[bytes],
        total: int,
        mime_type: str,
        upload_id: Optional[str],
    ) -> int:
        if not url:
            raise TransferFailed("Write URL is empty")

        logger.debug(
            "Starting PUT",
            extra={"upload_id": upload_id, "size_bytes": total, "content_type": mime_type},
        )
        headers = {"Content-Type": mime_type, "Content-Length": str(total)}
        try:
            response = await self._client.put(url, content=chunks, headers=headers)
        except (httpx.HTTPError, OSError) as e:
            logger.warning(
                "PUT request failed",
                extra={"upload_id": upload_id, "error": str(e)},
            )
            raise TransferFailed(f"Upload request failed: {e}") from e

        if response.status_code != 200:
            logger.warning(
                "PUT rejected",
                extra={"upload_id": upload_id, "status_code": response.status_code},
            )
            raise TransferFailed(f"Upload rejected with status {response.status_code}")

        logger.debug("PUT completed", extra={"upload_id": upload_id, "size_bytes": total})
        return response.status_code

    async def _iter_bytes(self, data: bytes, upload_id: Optional[str]) -> AsyncIterator[bytes]:
        total = len(data)
        sent = 0
        for start in range(0, total, self.chunk_size):
            chunk = data[start:start + self.chunk_size]
            yield chunk
            sent += len(chunk)
            self._report(upload_id, sent, total)

    async def _iter_file(self, path: Path, total: int, upload_id: Optional[str]) -> AsyncIterator[bytes]:
        sent = 0
        with open(path, "rb") as f:
            while chunk := f.read(self.chunk_size):
                yield chunk
                sent += len(chunk)
                self._report(upload_id, sent, total)

    def _report(self, upload_id: Optional[str], sent: int, total: int) -> None:
        if self.on_progress is not None:
            self.on_progress(upload_id, sent, total)
