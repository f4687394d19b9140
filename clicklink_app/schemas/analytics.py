from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from datetime import datetime

from clicklink_app.models.enums import DeviceType


class AnalyticsResponse(BaseModel):
    url_id: int
    total_clicks: int
    last_clicked_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ClickResponse(BaseModel):
    id: int
    url_id: int
    occurred_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referer: Optional[str] = None
    device_type: DeviceType
    country: Optional[str] = None
    city: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ClickHistory(BaseModel):
    clicks: List[ClickResponse]
    total: int
    limit: int
    offset: int

    model_config = ConfigDict(from_attributes=True)


class DeviceCount(BaseModel):
    device_type: DeviceType
    count: int


class LocationCount(BaseModel):
    value: str
    count: int


class DailyClickCount(BaseModel):
    date: str  # YYYY-MM-DD (UTC)
    count: int


class AnalyticsSummary(BaseModel):
    analytics: AnalyticsResponse
    device_stats: List[DeviceCount]
    country_stats: List[LocationCount]
    city_stats: List[LocationCount]
    clicks_by_date: List[DailyClickCount]

    model_config = ConfigDict(from_attributes=True)


class DashboardURL(BaseModel):
    id: int
    short_code: str
    title: Optional[str] = None
    original_url: str
    total_clicks: int


class Dashboard(BaseModel):
    total_urls: int
    active_urls: int
    total_clicks: int
    recent_clicks: int
    top_urls: List[DashboardURL]
