"""HTTP client for the asset backend RPC calls."""

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from assetsync.core.config import settings
from assetsync.core.exceptions import CommitError, InitError
from assetsync.models.asset import CreateAssetResult, InitAssetResult

logger = logging.getLogger(__name__)


class BackendClient:
    """Calls the init-asset and create-asset endpoints.

    A non-200 HTTP status, a non-200 ``statusCode`` in the payload, or a
    payload that does not parse are all hard failures for the call.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        max_attempts: Optional[int] = None,
    ):
        self.base_url = (base_url or settings.BACKEND_SERVICE_URL).rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=settings.REQUEST_TIMEOUT, headers=settings.backend_headers
        )
        self._owns_client = client is None
        self.max_attempts = max_attempts or settings.INIT_MAX_ATTEMPTS

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def init_asset(
        self, path: str, expiration_hours: float, content_type: str
    ) -> InitAssetResult:
        """Request a content id and write URLs for an asset.

        Connection-level failures are retried because init only issues URLs
        and has no side effect on stored objects.

        Raises:
            InitError: If the call fails or returns a malformed payload
        """
        payload = {
            "filePath": path,
            "expirationHours": expiration_hours,
            "contentType": content_type,
        }
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=1, min=1, max=8),
                retry=retry_if_exception_type(httpx.TransportError),
                reraise=True,
            ):
                with attempt:
                    body = await self._post("/api/v1/assets/init", payload)
        except (httpx.HTTPError, RetryError) as e:
            logger.error("init_asset request failed", extra={"file_path": path, "error": str(e)})
            raise InitError(f"init_asset request failed: {e}") from e

        try:
            result = InitAssetResult.model_validate(body)
        except ValidationError as e:
            raise InitError(f"Malformed init_asset response: {e}") from e

        if result.status_code != 200:
            logger.error(
                "init_asset rejected",
                extra={"file_path": path, "status_code": result.status_code},
            )
            raise InitError(f"init_asset returned status {result.status_code}")
        if result.write_urls is None or not result.write_urls.write_url:
            raise InitError("init_asset response has no write URL")

        logger.info(
            "Asset initialized",
            extra={"file_path": path, "content_id": result.content_id},
        )
        return result

    async def create_asset(
        self,
        path: str,
        content_id: Optional[int],
        content_type: str,
        expiration_hours: float,
        size: int,
        duration: float,
        color: str,
        x_res: int,
        y_res: int,
        caption: str,
        extra: str,
    ) -> CreateAssetResult:
        """Commit final metadata and return the public asset record.

        Never retried: a commit that reached the backend may have succeeded.

        Raises:
            CommitError: If the call fails or returns a malformed payload
        """
        payload = {
            "filePath": path,
            "contentId": content_id,
            "contentType": content_type,
            "expirationHours": expiration_hours,
            "size": size,
            "duration": duration,
            "color": color,
            "xRes": x_res,
            "yRes": y_res,
            "caption": caption,
            "extra": extra,
        }
        try:
            body = await self._post("/api/v1/assets", payload)
        except httpx.HTTPError as e:
            logger.error("create_asset request failed", extra={"file_path": path, "error": str(e)})
            raise CommitError(f"create_asset request failed: {e}") from e

        try:
            result = CreateAssetResult.model_validate(body)
        except ValidationError as e:
            raise CommitError(f"Malformed create_asset response: {e}") from e

        if result.status_code != 200:
            logger.error(
                "create_asset rejected",
                extra={"file_path": path, "status_code": result.status_code},
            )
            raise CommitError(f"create_asset returned status {result.status_code}")
        if result.asset is None:
            raise CommitError("create_asset response has no asset")

        return result

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> Any:
        response = await self._client.post(f"{self.base_url}{endpoint}", json=payload)
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            raise httpx.DecodingError(f"Response is not JSON: {e}", request=response.request) from e
