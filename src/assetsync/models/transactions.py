"""Transaction API data models."""

from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from assetsync.models.upload import UploadItem


class CreateTransactionRequest(BaseModel):
    """Request model for submitting an upload transaction."""

    transaction_id: str = Field(default_factory=lambda: uuid4().hex)
    items: list[UploadItem]


class CreateTransactionResponse(BaseModel):
    """Response model for an accepted transaction."""

    transaction_id: str
    uploads_total: int
    upload_ids: list[str]


class UploadErrorInfo(BaseModel):
    upload_id: str
    error_type: str
    message: str


class TransactionStatusResponse(BaseModel):
    """Progress snapshot of a transaction."""

    transaction_id: str
    status: str
    total: int
    completed: int
    failed: int
    current_upload: Optional[str] = None
    bytes_sent: int = 0
    bytes_total: int = 0
    assets: list[dict] = Field(default_factory=list)
    errors: list[UploadErrorInfo] = Field(default_factory=list)
