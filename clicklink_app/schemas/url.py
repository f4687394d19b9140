from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime
from clicklink_app.schemas.analytics import AnalyticsResponse


class URLCreate(BaseModel):
    # Plain strings: the service validates them and answers 400, not 422
    original_url: Optional[str] = Field(None, description="The original URL to be shortened")
    custom_alias: Optional[str] = Field(None, description="Requested short code")
    title: Optional[str] = None
    expires_at: Optional[datetime] = None


class URLUpdate(BaseModel):
    """Fields an owner may change. Ownership and the short code are fixed."""
    original_url: Optional[str] = None
    title: Optional[str] = None
    is_active: Optional[bool] = None
    expires_at: Optional[datetime] = None


class URLResponse(BaseModel):
    """
    Serializes the SQLAlchemy URL model (from_attributes=True), including
    its aggregate row. Build it with from_url so short_url uses the
    running app's base_url.
    """
    id: int
    owner_id: Optional[int] = None
    original_url: str
    short_code: str
    custom_alias: Optional[str] = None
    title: Optional[str] = None
    is_active: bool
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    analytics: Optional[AnalyticsResponse] = None
    short_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_url(cls, url, base_url: str) -> "URLResponse":
        response = cls.model_validate(url)
        response.short_url = f"{base_url.rstrip('/')}/{response.short_code}"
        return response


class URLListResponse(BaseModel):
    urls: list[URLResponse]
