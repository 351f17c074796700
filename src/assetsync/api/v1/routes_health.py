"""Health check endpoint for AssetSync Engine."""

from fastapi import APIRouter, Request

from assetsync.core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint.

    Returns service status, name and version. Reports ``degraded`` when the
    upload queue has halted on a store failure.
    """
    manager = getattr(request.app.state, "upload_manager", None)
    halted = manager is not None and manager.queue.halted
    return {
        "status": "degraded" if halted else "ok",
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
    }
