"""Upload data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from assetsync.core.config import settings


class MediaKind(str, Enum):
    """Declared media kind of an upload item."""

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    UNKNOWN = "unknown"


class UploadStatus(str, Enum):
    """Upload intent status enumeration."""

    PENDING = "pending"  # Metadata extracted, waiting in the queue
    INITIALIZED = "initialized"  # Write URLs assigned by the backend
    UPLOADING = "uploading"  # Admitted by the queue
    UPLOADED = "uploaded"  # Transferred and committed
    FAILURE = "failure"  # Any step failed


class UploadItem(BaseModel):
    """Client request to upload one local asset."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Local file path of the asset")
    kind: MediaKind = MediaKind.UNKNOWN
    id: str = Field(default_factory=lambda: uuid4().hex)
    no_cut: bool = False
    small_cut_size: int = Field(default_factory=lambda: settings.SMALL_CUT_SIZE)
    medium_cut_size: int = Field(default_factory=lambda: settings.MEDIUM_CUT_SIZE)
    large_cut_size: int = Field(default_factory=lambda: settings.LARGE_CUT_SIZE)
    original_size: int = 0
    expiration_hours: float = Field(default_factory=lambda: settings.DEFAULT_EXPIRATION_HOURS)
    content_type: str = ""
    caption: str = ""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UploadIntent:
    """Persisted state of one asset upload."""

    id: str
    user_id: str
    session_id: str
    transaction_id: str
    file_path: str = ""
    local_path: str = ""
    content_type: str = ""
    size: int = 0
    color: str = "#000000"
    x_res: int = 0
    y_res: int = 0
    caption: str = ""
    expiration_hours: float = 168.0
    no_cuts: bool = False
    small_cut_size: int = 300
    medium_cut_size: int = 600
    large_cut_size: int = 900
    original_size: int = 0
    content_id: Optional[int] = None
    write_url: Optional[str] = None
    write_url_small: Optional[str] = None
    write_url_medium: Optional[str] = None
    write_url_large: Optional[str] = None
    write_url_video_preview: Optional[str] = None
    url: Optional[str] = None
    url_small: Optional[str] = None
    url_medium: Optional[str] = None
    url_large: Optional[str] = None
    url_video_preview: Optional[str] = None
    status: UploadStatus = UploadStatus.PENDING
    error: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_image(self) -> bool:
        return "image" in self.content_type

    @property
    def is_video(self) -> bool:
        return "video" in self.content_type

    def touch(self, status: Optional[UploadStatus] = None) -> None:
        """Bump updated_at and optionally move to a new status."""
        if status is not None:
            self.status = status
        self.updated_at = utcnow()
