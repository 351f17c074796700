"""Main application entrypoint for AssetSync Engine."""

from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI

from assetsync.api.v1 import routes_health
from assetsync.api.v1.routes_transactions import router as transactions_router
from assetsync.core.config import settings
from assetsync.core.logging import setup_logging
from assetsync.services.uploader import TransactionTracker, UploadManager
from assetsync.storage.memory import MemoryRecordStore

ManagerFactory = Callable[[], UploadManager]


def default_manager() -> UploadManager:
    return UploadManager(store=MemoryRecordStore())


def create_app(manager_factory: Optional[ManagerFactory] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        manager_factory: Builds the upload manager started by the lifespan

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    setup_logging()
    factory = manager_factory or default_manager

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        manager = factory()
        app.state.transaction_tracker = TransactionTracker()
        await manager.start()
        app.state.upload_manager = manager
        try:
            yield
        finally:
            app.state.upload_manager = None
            await manager.stop(drain=False)

    app = FastAPI(
        title=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
    )

    app.include_router(routes_health.router, tags=["health"])
    app.include_router(transactions_router)

    return app


# Export app instance for ASGI servers
app = create_app()


if __name__ == "__main__":
    import os

    import uvicorn

    port = int(os.getenv("PORT", "8080"))
    uvicorn.run(app, host="0.0.0.0", port=port)
