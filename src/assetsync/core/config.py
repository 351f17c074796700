"""Configuration management for AssetSync Engine."""

from uuid import uuid4

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    ENV: str = "local"
    SERVICE_NAME: str = "assetsync-engine"
    SERVICE_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Identity of the uploading client
    USER_ID: str = "anonymous"
    SESSION_ID: str = Field(default_factory=lambda: uuid4().hex)  # One per process

    # Backend RPC Configuration
    BACKEND_SERVICE_URL: str = "http://localhost:8080"
    BACKEND_API_KEY: str = ""
    REQUEST_TIMEOUT: int = 30  # seconds for init/create asset calls
    INIT_MAX_ATTEMPTS: int = 3  # connection-level retries for init_asset only

    # Object Storage Transport
    UPLOAD_TIMEOUT: int = 300  # seconds per PUT
    UPLOAD_CHUNK_SIZE: int = 65536  # 64KB progress granularity

    # Upload Defaults
    DEFAULT_EXPIRATION_HOURS: float = 168.0
    SMALL_CUT_SIZE: int = 300
    MEDIUM_CUT_SIZE: int = 600
    LARGE_CUT_SIZE: int = 900
    VARIANT_SIZE_PADDING: int = 1000  # bytes reserved for generated cuts

    # Orchestration
    ASSET_OBSERVE_TIMEOUT: float = 30.0  # seconds to wait for a commit to surface in the store
    TRACKER_MAX_FINISHED: int = 1000  # finished transaction snapshots kept for polling

    # Media Transforms
    FFMPEG_BINARY: str = "ffmpeg"
    VIDEO_THUMBNAIL_OFFSET_SECONDS: float = 0.0
    FFMPEG_TIMEOUT: int = 60

    @property
    def backend_headers(self) -> dict[str, str]:
        """Authorization headers for backend RPC calls."""
        if not self.BACKEND_API_KEY:
            return {}
        return {"Authorization": f"Bearer {self.BACKEND_API_KEY}"}


# Singleton settings instance
settings = Settings()
