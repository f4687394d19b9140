"""
Per-URL running totals.

Increments are single UPDATE statements evaluated by the database
(`total_clicks = total_clicks + n`), so concurrent redirects never lose
updates. Nothing here reads a counter and writes it back.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from clicklink_app.models.analytics import URLAnalytics


class AggregateStore:
    """Operations on url_analytics rows"""

    def __init__(self, db: Session):
        self.db = db

    def initialize(self, url_id: int) -> URLAnalytics:
        """Create the zeroed row for a new URL inside the caller's transaction"""
        row = URLAnalytics(url_id=url_id, total_clicks=0, last_clicked_at=None)
        self.db.add(row)
        self.db.flush()
        return row

    def get(self, url_id: int) -> Optional[URLAnalytics]:
        return self.db.get(URLAnalytics, url_id)

    def increment(self, url_id: int, clicked_at: datetime, amount: int = 1) -> bool:
        """
        Atomically add `amount` clicks and stamp last_clicked_at.

        last_clicked_at is last-writer-wins at the storage layer.

        Returns:
            True if an aggregate row was updated
        """
        result = self.db.execute(
            update(URLAnalytics)
            .where(URLAnalytics.url_id == url_id)
            .values(
                total_clicks=URLAnalytics.total_clicks + amount,
                last_clicked_at=clicked_at,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
