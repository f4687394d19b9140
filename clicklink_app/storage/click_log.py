"""
Append-only click event log and the read-side projections over it.

This is the source of truth for analytics; url_analytics is derived from it.
"""

from datetime import datetime
from typing import Dict, List, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clicklink_app.models.click import ClickEvent


class ClickEventLog:
    """Insert-only writes plus grouped reads over url_clicks"""

    def __init__(self, db: Session):
        self.db = db

    def append(self, event: ClickEvent) -> ClickEvent:
        """Add a click to the caller's transaction and flush it"""
        self.db.add(event)
        self.db.flush()
        return event

    def count(self, url_id: int, since: datetime = None) -> int:
        query = select(func.count(ClickEvent.id)).where(ClickEvent.url_id == url_id)
        if since is not None:
            query = query.where(ClickEvent.occurred_at >= since)
        return self.db.execute(query).scalar_one()

    def count_for_urls(self, url_ids: List[int], since: datetime = None) -> int:
        if not url_ids:
            return 0
        query = select(func.count(ClickEvent.id)).where(ClickEvent.url_id.in_(url_ids))
        if since is not None:
            query = query.where(ClickEvent.occurred_at >= since)
        return self.db.execute(query).scalar_one()

    def history(self, url_id: int, limit: int = 100, offset: int = 0) -> List[ClickEvent]:
        """Newest first"""
        return list(self.db.execute(
            select(ClickEvent)
            .where(ClickEvent.url_id == url_id)
            .order_by(ClickEvent.occurred_at.desc(), ClickEvent.id.desc())
            .limit(limit)
            .offset(offset)
        ).scalars())

    def counts_by_device(self, url_id: int) -> Dict[str, int]:
        rows = self.db.execute(
            select(ClickEvent.device_type, func.count(ClickEvent.id))
            .where(ClickEvent.url_id == url_id)
            .group_by(ClickEvent.device_type)
        ).all()
        return {device.value: count for device, count in rows}

    def top_values(self, url_id: int, column_name: str, limit: int = 10) -> List[Tuple[str, int]]:
        """Most frequent non-null values of `country` or `city`"""
        if column_name not in ("country", "city"):
            raise ValueError(f"Cannot group clicks by {column_name!r}")
        column = getattr(ClickEvent, column_name)
        count = func.count(ClickEvent.id).label("count")
        rows = self.db.execute(
            select(column, count)
            .where(ClickEvent.url_id == url_id, column.isnot(None))
            .group_by(column)
            .order_by(count.desc(), column)
            .limit(limit)
        ).all()
        return [(value, n) for value, n in rows]

    def daily_counts(self, url_id: int, since: datetime) -> List[Tuple[str, int]]:
        """(YYYY-MM-DD, count) per day since `since`, newest day first"""
        day = func.date(ClickEvent.occurred_at).label("day")
        rows = self.db.execute(
            select(day, func.count(ClickEvent.id))
            .where(ClickEvent.url_id == url_id, ClickEvent.occurred_at >= since)
            .group_by(day)
            .order_by(day.desc())
        ).all()
        return [(str(d), n) for d, n in rows]
