"""
Redirect pipeline.

Per request:
    Lookup -> ActiveCheck -> ExpiryCheck -> Classify -> RecordClick
    -> UpdateAggregate -> original URL

Lookup and the two checks are read-only and never retried. RecordClick must
land in the click log or the redirect fails; it gets one retry on a storage
error. UpdateAggregate never fails the redirect: if it cannot run inline the
increment is handed to the queue for the aggregate worker.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clicklink_app.config import Settings
from clicklink_app.exceptions import GoneError, InternalError, NotFoundError
from clicklink_app.models.click import ClickEvent
from clicklink_app.queue.models import AggregateIncrement
from clicklink_app.queue.strategies import QueuePublishError, QueueStrategy
from clicklink_app.services.device import classify_device
from clicklink_app.services.geolocation import GeoLocator, NullGeoLocator
from clicklink_app.storage import AggregateStore, ClickEventLog, URLStore
from clicklink_app.utils.clock import utcnow

logger = logging.getLogger(__name__)

RECORD_CLICK_ATTEMPTS = 2  # first try + one retry


class AggregateUpdateMode(Enum):
    INLINE = "inline"
    QUEUED = "queued"


@dataclass(frozen=True)
class ClickContext:
    """Request metadata captured for the click log"""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referer: Optional[str] = None


class RedirectService:
    def __init__(
        self,
        db: Session,
        settings: Settings,
        queue: Optional[QueueStrategy] = None,
        geolocator: Optional[GeoLocator] = None,
        clock=utcnow,
    ):
        self.db = db
        self.settings = settings
        self.queue = queue
        self.geolocator = geolocator or NullGeoLocator()
        self.clock = clock
        self.urls = URLStore(db)
        self.clicks = ClickEventLog(db)
        self.aggregates = AggregateStore(db)
        self.mode = AggregateUpdateMode(settings.aggregate_update_mode)

    def resolve(self, short_code: str, context: ClickContext = ClickContext()) -> str:
        """
        Resolve short_code for a visitor and record the click.

        Returns:
            The original URL to redirect to

        Raises:
            NotFoundError: no such short code
            GoneError: the link is inactive or expired
            InternalError: the click could not be recorded
        """
        try:
            url = self.urls.get_by_short_code(short_code)
        except SQLAlchemyError as e:
            logger.exception("Lookup failed for %s", short_code)
            raise InternalError(str(e)) from e

        if url is None:
            logger.debug("Redirect miss: %s", short_code)
            raise NotFoundError()

        if not url.is_active:
            logger.debug("Redirect to inactive URL: %s", short_code)
            raise GoneError("URL is inactive")

        now = self.clock()
        if url.is_expired(now):
            logger.debug("Redirect to expired URL: %s", short_code)
            raise GoneError("URL has expired")

        url_id = url.id
        original_url = url.original_url

        click_id = self._record_click(url_id, context, now)
        self._update_aggregate(url_id, click_id, now)

        return original_url

    def _record_click(self, url_id: int, context: ClickContext, now: datetime) -> int:
        device_type = classify_device(context.user_agent)
        geo = self._locate(context.ip_address)

        for attempt in range(1, RECORD_CLICK_ATTEMPTS + 1):
            event = ClickEvent(
                url_id=url_id,
                occurred_at=now,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                referer=context.referer,
                device_type=device_type,
                country=geo.country,
                city=geo.city,
            )
            try:
                self.clicks.append(event)
                self.db.commit()
                return event.id
            except SQLAlchemyError as e:
                self.db.rollback()
                if attempt == RECORD_CLICK_ATTEMPTS:
                    logger.error("Could not record click for url %s: %s", url_id, e)
                    raise InternalError(str(e)) from e
                logger.warning("Recording click for url %s failed, retrying: %s", url_id, e)

    def _locate(self, ip_address: Optional[str]):
        try:
            return self.geolocator.locate(ip_address)
        except Exception:
            # location stays empty
            logger.exception("Geolocation failed for %s", ip_address)
            return NullGeoLocator().locate(ip_address)

    def _update_aggregate(self, url_id: int, click_id: int, now: datetime) -> None:
        message = AggregateIncrement(url_id=url_id, click_id=click_id, clicked_at=now)

        if self.mode == AggregateUpdateMode.QUEUED:
            applied = self._enqueue(message) or self._increment_inline(message, fallback=False)
        else:
            applied = self._increment_inline(message, fallback=True)

        if not applied:
            logger.error("Aggregate for url %s is behind by one click (click %s)", url_id, click_id)

    def _increment_inline(self, message: AggregateIncrement, fallback: bool) -> bool:
        try:
            updated = self.aggregates.increment(message.url_id, message.clicked_at)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Inline aggregate update failed for url %s: %s", message.url_id, e)
            return fallback and self._enqueue(message)

        if not updated:
            logger.error("No aggregate row for url %s", message.url_id)
        return updated

    def _enqueue(self, message: AggregateIncrement) -> bool:
        if self.queue is None:
            return False
        try:
            self.queue.publish(self.settings.queue_name, message)
        except QueuePublishError as e:
            logger.error("Could not enqueue aggregate increment for url %s: %s", message.url_id, e)
            return False
        return True
