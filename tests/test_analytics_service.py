from datetime import datetime, timedelta, timezone

import pytest

from clicklink_app.exceptions import NotFoundError
from clicklink_app.models import ClickEvent, DeviceType
from clicklink_app.services.analytics_service import AnalyticsService
from clicklink_app.services.creation_service import CreationService
from clicklink_app.storage import AggregateStore

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def add_click(db_session, url_id, occurred_at, device=DeviceType.DESKTOP, country=None, city=None):
    db_session.add(ClickEvent(
        url_id=url_id,
        occurred_at=occurred_at,
        device_type=device,
        country=country,
        city=city,
    ))
    AggregateStore(db_session).increment(url_id, occurred_at)
    db_session.commit()


@pytest.fixture
def service(db_session, test_settings):
    return AnalyticsService(db_session, test_settings, clock=lambda: NOW)


@pytest.fixture
def url(db_session, test_settings):
    return CreationService(db_session, test_settings).create("https://example.com/", owner_id=1)


class TestAggregate:
    def test_fresh_url_has_zero_clicks(self, service, url):
        aggregate = service.get_aggregate(url.id)

        assert aggregate.total_clicks == 0
        assert aggregate.last_clicked_at is None

    def test_unknown_url_is_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.get_aggregate(12345)


class TestClickHistory:
    def test_newest_first_with_paging(self, db_session, service, url):
        for hours in range(5):
            add_click(db_session, url.id, NOW - timedelta(hours=hours))

        page = service.get_click_history(url.id, limit=2, offset=1)

        assert page.total == 5
        assert page.limit == 2 and page.offset == 1
        assert [c.occurred_at.replace(tzinfo=timezone.utc) for c in page.clicks] == [
            NOW - timedelta(hours=1),
            NOW - timedelta(hours=2),
        ]

    def test_empty_history(self, service, url):
        page = service.get_click_history(url.id)

        assert page.total == 0
        assert page.clicks == []


class TestBreakdowns:
    def test_device_breakdown(self, db_session, service, url):
        for device in [DeviceType.MOBILE, DeviceType.MOBILE, DeviceType.DESKTOP, DeviceType.OTHER]:
            add_click(db_session, url.id, NOW, device=device)

        breakdown = service.get_device_breakdown(url.id)

        assert [(d.device_type, d.count) for d in breakdown] == [
            (DeviceType.MOBILE, 2),
            (DeviceType.DESKTOP, 1),
            (DeviceType.OTHER, 1),
        ]

    def test_top_countries_skip_nulls_and_respect_limit(self, db_session, service, url):
        for country in ["TH", "TH", "TH", "US", "US", "JP", None, None, None, None]:
            add_click(db_session, url.id, NOW, country=country)

        top = service.get_top_countries(url.id, limit=2)

        assert [(c.value, c.count) for c in top] == [("TH", 3), ("US", 2)]

    def test_top_cities(self, db_session, service, url):
        for city in ["Bangkok", "Osaka", "Bangkok"]:
            add_click(db_session, url.id, NOW, city=city)

        top = service.get_top_cities(url.id)

        assert [(c.value, c.count) for c in top] == [("Bangkok", 2), ("Osaka", 1)]


class TestDailyClicks:
    def test_buckets_by_day_inside_window(self, db_session, service, url):
        add_click(db_session, url.id, NOW - timedelta(hours=1))
        add_click(db_session, url.id, NOW - timedelta(hours=2))
        add_click(db_session, url.id, NOW - timedelta(days=1))
        add_click(db_session, url.id, NOW - timedelta(days=45))  # outside 30 days

        daily = service.get_daily_clicks(url.id)

        assert [(d.date, d.count) for d in daily] == [("2026-10-19", 2), ("2026-10-18", 1)]

    def test_custom_window(self, db_session, service, url):
        add_click(db_session, url.id, NOW - timedelta(days=3))

        assert service.get_daily_clicks(url.id, days=2) == []

    def test_oldest_bucket_is_a_whole_day(self, db_session, service, url):
        add_click(db_session, url.id, datetime(2026, 10, 18, 0, 30, tzinfo=timezone.utc))
        add_click(db_session, url.id, datetime(2026, 10, 17, 23, 30, tzinfo=timezone.utc))

        daily = service.get_daily_clicks(url.id, days=2)

        assert [(d.date, d.count) for d in daily] == [("2026-10-18", 1)]

    def test_zero_days_is_empty(self, db_session, service, url):
        add_click(db_session, url.id, NOW)

        assert service.get_daily_clicks(url.id, days=0) == []


def test_summary_combines_projections(db_session, service, url):
    add_click(db_session, url.id, NOW, device=DeviceType.TABLET, country="DE", city="Berlin")

    summary = service.get_summary(url.id)

    assert summary.analytics.total_clicks == 1
    assert summary.device_stats[0].device_type == DeviceType.TABLET
    assert summary.country_stats[0].value == "DE"
    assert summary.city_stats[0].value == "Berlin"
    assert summary.clicks_by_date[0].count == 1


def test_dashboard(db_session, test_settings, service):
    creator = CreationService(db_session, test_settings)
    busy = creator.create("https://busy.example.com/", owner_id=1, title="Busy")
    quiet = creator.create("https://quiet.example.com/", owner_id=1)
    creator.create("https://someone-else.example.com/", owner_id=2)
    quiet.is_active = False
    db_session.commit()

    for _ in range(3):
        add_click(db_session, busy.id, NOW - timedelta(days=1))
    add_click(db_session, quiet.id, NOW - timedelta(days=10))

    dashboard = service.get_dashboard(owner_id=1)

    assert dashboard.total_urls == 2
    assert dashboard.active_urls == 1
    assert dashboard.total_clicks == 4
    assert dashboard.recent_clicks == 3
    assert [(u.short_code, u.total_clicks) for u in dashboard.top_urls] == [
        (busy.short_code, 3),
        (quiet.short_code, 1),
    ]
    assert dashboard.top_urls[0].title == "Busy"
