from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from clicklink_app.config import Settings
from clicklink_app.exceptions import NotFoundError
from clicklink_app.models.analytics import URLAnalytics
from clicklink_app.schemas.analytics import (
    AnalyticsResponse,
    AnalyticsSummary,
    ClickHistory,
    ClickResponse,
    DailyClickCount,
    Dashboard,
    DashboardURL,
    DeviceCount,
    LocationCount,
)
from clicklink_app.storage import AggregateStore, ClickEventLog, URLStore
from clicklink_app.utils.clock import ensure_utc, utcnow


class AnalyticsService:
    """
    Read-only projections over url_clicks and url_analytics.

    Ownership checks happen in the API layer; every method here assumes the
    caller may see the URL.
    """

    def __init__(self, db: Session, settings: Settings, clock=utcnow):
        self.settings = settings
        self.clock = clock
        self.urls = URLStore(db)
        self.clicks = ClickEventLog(db)
        self.aggregates = AggregateStore(db)

    def get_aggregate(self, url_id: int) -> URLAnalytics:
        aggregate = self.aggregates.get(url_id)
        if aggregate is None:
            raise NotFoundError("Analytics not found")
        return aggregate

    def get_click_history(self, url_id: int, limit: int = 100, offset: int = 0) -> ClickHistory:
        clicks = self.clicks.history(url_id, limit=limit, offset=offset)
        return ClickHistory(
            clicks=[ClickResponse.model_validate(click) for click in clicks],
            total=self.clicks.count(url_id),
            limit=limit,
            offset=offset,
        )

    def get_device_breakdown(self, url_id: int):
        counts = self.clicks.counts_by_device(url_id)
        return [
            DeviceCount(device_type=device, count=count)
            for device, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        ]

    def get_top_countries(self, url_id: int, limit: Optional[int] = None):
        if limit is None:
            limit = self.settings.analytics_top_n
        return [LocationCount(value=v, count=n) for v, n in self.clicks.top_values(url_id, "country", limit)]

    def get_top_cities(self, url_id: int, limit: Optional[int] = None):
        if limit is None:
            limit = self.settings.analytics_top_n
        return [LocationCount(value=v, count=n) for v, n in self.clicks.top_values(url_id, "city", limit)]

    def get_daily_clicks(self, url_id: int, days: Optional[int] = None):
        """
        Click counts per UTC day, newest first.

        The window is `days` whole calendar days ending today, so the oldest
        bucket starts at UTC midnight. days=0 gives an empty window.
        """
        if days is None:
            days = self.settings.analytics_trailing_days
        today = ensure_utc(self.clock()).replace(hour=0, minute=0, second=0, microsecond=0)
        since = today - timedelta(days=days - 1)
        return [DailyClickCount(date=day, count=n) for day, n in self.clicks.daily_counts(url_id, since)]

    def get_summary(self, url_id: int) -> AnalyticsSummary:
        return AnalyticsSummary(
            analytics=AnalyticsResponse.model_validate(self.get_aggregate(url_id)),
            device_stats=self.get_device_breakdown(url_id),
            country_stats=self.get_top_countries(url_id),
            city_stats=self.get_top_cities(url_id),
            clicks_by_date=self.get_daily_clicks(url_id),
        )

    def get_dashboard(self, owner_id: int) -> Dashboard:
        urls = self.urls.list_by_owner(owner_id)

        def clicks_of(url):
            return url.analytics.total_clicks if url.analytics else 0

        since = self.clock() - timedelta(days=self.settings.dashboard_recent_days)
        top = sorted(urls, key=clicks_of, reverse=True)[:self.settings.dashboard_top_urls]

        return Dashboard(
            total_urls=len(urls),
            active_urls=sum(1 for url in urls if url.is_active),
            total_clicks=sum(clicks_of(url) for url in urls),
            recent_clicks=self.clicks.count_for_urls([url.id for url in urls], since=since),
            top_urls=[
                DashboardURL(
                    id=url.id,
                    short_code=url.short_code,
                    title=url.title,
                    original_url=url.original_url,
                    total_clicks=clicks_of(url),
                )
                for url in top
            ],
        )
