"""Backend asset records and RPC payload models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FinalizedAsset(BaseModel):
    """Backend-confirmed asset with public read URLs."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field("", alias="_id")
    user_id: str = Field("", alias="userId")
    path: str = ""
    extra: Optional[str] = None
    expiration_hours: float = Field(24.0, alias="expirationHours")
    content_type: Optional[str] = Field(None, alias="contentType")
    size: Optional[int] = None
    duration: Optional[float] = None
    expiration: Optional[datetime] = None
    color: str = "#000000"
    x_res: int = Field(0, alias="xRes")
    y_res: int = Field(0, alias="yRes")
    caption: str = ""
    url: Optional[str] = None
    url_small: Optional[str] = Field(None, alias="urlSmall")
    url_medium: Optional[str] = Field(None, alias="urlMedium")
    url_large: Optional[str] = Field(None, alias="urlLarge")
    url_video_preview: Optional[str] = Field(None, alias="urlVideoPreview")
    status: str = "active"
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class WriteUrls(BaseModel):
    """Time-limited PUT endpoints returned by init-asset."""

    model_config = ConfigDict(populate_by_name=True)

    write_url: str = Field("", alias="writeUrl")
    write_url_small: Optional[str] = Field(None, alias="writeUrlSmall")
    write_url_medium: Optional[str] = Field(None, alias="writeUrlMedium")
    write_url_large: Optional[str] = Field(None, alias="writeUrlLarge")
    write_url_video_preview: Optional[str] = Field(None, alias="writeUrlVideoPreview")


class InitAssetResult(BaseModel):
    """Return object of the init-asset call."""

    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(..., alias="statusCode")
    content_id: Optional[int] = Field(None, alias="contentId")
    write_urls: Optional[WriteUrls] = Field(None, alias="writeUrls")


class CreateAssetResult(BaseModel):
    """Return object of the create-asset call."""

    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(..., alias="statusCode")
    asset: Optional[FinalizedAsset] = None
