import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from clicklink_app.exceptions import GoneError, InternalError, NotFoundError
from clicklink_app.hit_processor.aggregate_worker import AggregateWorker
from clicklink_app.models import ClickEvent, DeviceType, URLAnalytics
from clicklink_app.services.creation_service import CreationService
from clicklink_app.services.geolocation import GeoLocator, GeoResult
from clicklink_app.services.redirect_service import ClickContext, RedirectService


def storage_error():
    return OperationalError("INSERT ...", {}, Exception("database is locked"))


def click_count(db_session, url_id):
    return db_session.execute(
        select(func.count(ClickEvent.id)).where(ClickEvent.url_id == url_id)
    ).scalar_one()


def total_clicks(db_session, url_id):
    db_session.expire_all()
    return db_session.get(URLAnalytics, url_id).total_clicks


@pytest.fixture
def create_url(db_session, test_settings):
    def _create(original_url="https://example.com/page", **kwargs):
        return CreationService(db_session, test_settings).create(original_url, **kwargs)
    return _create


@pytest.fixture
def redirect_service(db_session, test_settings, queue):
    return RedirectService(db_session, test_settings, queue=queue)


class TestResolve:
    """Test the redirect state machine"""

    def test_returns_original_url_and_records_click(self, db_session, create_url, redirect_service):
        url = create_url("https://example.com/page")
        context = ClickContext(
            ip_address="203.0.113.9",
            user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64)",
            referer="https://twitter.com",
        )

        result = redirect_service.resolve(url.short_code, context)

        assert result == "https://example.com/page"
        click = db_session.execute(select(ClickEvent)).scalar_one()
        assert click.url_id == url.id
        assert click.ip_address == "203.0.113.9"
        assert click.referer == "https://twitter.com"
        assert click.device_type == DeviceType.DESKTOP
        assert click.country is None and click.city is None

    def test_aggregate_tracks_each_click(self, db_session, create_url, redirect_service):
        url = create_url()

        redirect_service.resolve(url.short_code)
        db_session.expire_all()
        aggregate = db_session.get(URLAnalytics, url.id)
        assert aggregate.total_clicks == 1
        assert aggregate.last_clicked_at is not None

        redirect_service.resolve(url.short_code)
        assert total_clicks(db_session, url.id) == 2

    def test_unknown_code_is_not_found(self, redirect_service):
        with pytest.raises(NotFoundError):
            redirect_service.resolve("nope42")

    def test_inactive_url_is_gone_without_side_effects(self, db_session, create_url, redirect_service):
        url = create_url()
        url.is_active = False
        db_session.commit()

        with pytest.raises(GoneError):
            redirect_service.resolve(url.short_code)

        assert click_count(db_session, url.id) == 0
        assert total_clicks(db_session, url.id) == 0

    def test_expired_url_is_gone(self, db_session, create_url, redirect_service):
        url = create_url(expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))

        with pytest.raises(GoneError):
            redirect_service.resolve(url.short_code)

        assert click_count(db_session, url.id) == 0

    def test_expiry_uses_injected_clock(self, db_session, create_url, test_settings, queue):
        expires = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)
        url = create_url(expires_at=expires)

        before = RedirectService(db_session, test_settings, queue=queue,
                                 clock=lambda: expires - timedelta(seconds=1))
        after = RedirectService(db_session, test_settings, queue=queue,
                                clock=lambda: expires + timedelta(seconds=1))

        assert before.resolve(url.short_code) == url.original_url
        with pytest.raises(GoneError):
            after.resolve(url.short_code)

    def test_missing_user_agent_is_other(self, db_session, create_url, redirect_service):
        url = create_url()

        redirect_service.resolve(url.short_code, ClickContext())

        click = db_session.execute(select(ClickEvent)).scalar_one()
        assert click.device_type == DeviceType.OTHER
        assert click.user_agent is None

    def test_geolocator_fills_location(self, db_session, create_url, test_settings, queue):
        class FixedGeoLocator(GeoLocator):
            def locate(self, ip_address):
                return GeoResult(country="NL", city="Amsterdam")

        url = create_url()
        service = RedirectService(db_session, test_settings, queue=queue, geolocator=FixedGeoLocator())

        service.resolve(url.short_code, ClickContext(ip_address="198.51.100.4"))

        click = db_session.execute(select(ClickEvent)).scalar_one()
        assert (click.country, click.city) == ("NL", "Amsterdam")

    def test_broken_geolocator_does_not_lose_click(self, db_session, create_url, test_settings, queue):
        class BrokenGeoLocator(GeoLocator):
            def locate(self, ip_address):
                raise RuntimeError("lookup service down")

        url = create_url()
        service = RedirectService(db_session, test_settings, queue=queue, geolocator=BrokenGeoLocator())

        assert service.resolve(url.short_code) == url.original_url
        assert click_count(db_session, url.id) == 1


class TestRecordClickFailures:
    """Step 5: one retry, then InternalError"""

    def test_transient_failure_is_retried_once(self, db_session, create_url, redirect_service, monkeypatch):
        url = create_url()
        original_append = redirect_service.clicks.append
        calls = []

        def flaky_append(event):
            calls.append(event)
            if len(calls) == 1:
                raise storage_error()
            return original_append(event)

        monkeypatch.setattr(redirect_service.clicks, "append", flaky_append)

        assert redirect_service.resolve(url.short_code) == url.original_url
        assert len(calls) == 2
        assert click_count(db_session, url.id) == 1
        assert total_clicks(db_session, url.id) == 1

    def test_persistent_failure_surfaces_internal_error(self, db_session, create_url, redirect_service, monkeypatch):
        url = create_url()
        calls = []

        def broken_append(event):
            calls.append(event)
            raise storage_error()

        monkeypatch.setattr(redirect_service.clicks, "append", broken_append)

        with pytest.raises(InternalError):
            redirect_service.resolve(url.short_code)

        assert len(calls) == 2
        assert click_count(db_session, url.id) == 0
        assert total_clicks(db_session, url.id) == 0


class TestAggregateUpdate:
    """Step 6 never fails the redirect"""

    def test_failed_inline_increment_is_queued(
        self, db_session, database, create_url, redirect_service, queue, test_settings, monkeypatch
    ):
        url = create_url()

        def broken_increment(url_id, clicked_at, amount=1):
            raise storage_error()

        monkeypatch.setattr(redirect_service.aggregates, "increment", broken_increment)

        assert redirect_service.resolve(url.short_code) == url.original_url
        assert click_count(db_session, url.id) == 1
        assert total_clicks(db_session, url.id) == 0
        assert queue.get_queue_length(test_settings.queue_name) == 1

        worker = AggregateWorker(queue=queue, database=database, settings=test_settings)
        assert worker.drain() == 1

        assert total_clicks(db_session, url.id) == 1
        assert queue.get_queue_length(test_settings.queue_name) == 0

    def test_queued_mode_defers_to_worker(self, db_session, database, create_url, queue, test_settings):
        settings = test_settings.model_copy(update={"aggregate_update_mode": "queued"})
        url = create_url()
        service = RedirectService(db_session, settings, queue=queue)

        for _ in range(3):
            service.resolve(url.short_code)

        assert click_count(db_session, url.id) == 3
        assert total_clicks(db_session, url.id) == 0

        AggregateWorker(queue=queue, database=database, settings=settings).drain()

        db_session.expire_all()
        aggregate = db_session.get(URLAnalytics, url.id)
        assert aggregate.total_clicks == 3
        assert aggregate.last_clicked_at is not None

    def test_queued_mode_falls_back_to_inline_without_queue(self, db_session, create_url, test_settings):
        settings = test_settings.model_copy(update={"aggregate_update_mode": "queued"})
        url = create_url()
        service = RedirectService(db_session, settings, queue=None)

        service.resolve(url.short_code)

        assert total_clicks(db_session, url.id) == 1

    @pytest.mark.parametrize("mode", ["inline", "queued"])
    def test_lost_increment_is_logged_as_error(self, db_session, create_url, test_settings, monkeypatch, caplog, mode):
        settings = test_settings.model_copy(update={"aggregate_update_mode": mode})
        url = create_url()
        service = RedirectService(db_session, settings, queue=None)

        def broken_increment(url_id, clicked_at, amount=1):
            raise storage_error()

        monkeypatch.setattr(service.aggregates, "increment", broken_increment)

        with caplog.at_level(logging.WARNING, logger="clicklink_app.services.redirect_service"):
            assert service.resolve(url.short_code) == url.original_url

        errors = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
        assert any("behind by one click" in message for message in errors)
        assert click_count(db_session, url.id) == 1


class TestConcurrency:
    """Concurrent redirects never lose increments"""

    @pytest.mark.parametrize("mode", ["inline", "queued"])
    def test_concurrent_redirects_count_exactly(self, database, test_settings, queue, mode):
        settings = test_settings.model_copy(update={"aggregate_update_mode": mode})
        setup = database.session()
        url = CreationService(setup, settings).create("https://example.com/hot")
        url_id, short_code = url.id, url.short_code
        setup.close()

        requests = 40

        def visit(i):
            db = database.session()
            try:
                service = RedirectService(db, settings, queue=queue)
                return service.resolve(
                    short_code,
                    ClickContext(ip_address=f"10.0.0.{i % 250}", user_agent="Mozilla/5.0 Mobile"),
                )
            finally:
                db.close()

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(visit, range(requests)))

        assert results == ["https://example.com/hot"] * requests

        if mode == "queued":
            AggregateWorker(queue=queue, database=database, settings=settings).drain()

        check = database.session()
        try:
            assert click_count(check, url_id) == requests
            assert total_clicks(check, url_id) == requests
        finally:
            check.close()
