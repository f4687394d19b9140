from sqlalchemy import Column, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from clicklink_app.database.connection import Base


class URLAnalytics(Base):
    """
    Running totals for one URL (1:1).

    A cache of what can be derived from url_clicks; it may lag behind the
    click log if an increment failed and is still waiting in the queue.
    """
    __tablename__ = "url_analytics"

    url_id = Column(Integer, ForeignKey("urls.id", ondelete="CASCADE"), primary_key=True)
    total_clicks = Column(Integer, default=0, nullable=False)
    last_clicked_at = Column(DateTime(timezone=True), nullable=True)

    url = relationship("URL", back_populates="analytics")

    __table_args__ = (
        CheckConstraint("total_clicks >= 0", name="ck_url_analytics_total_clicks_non_negative"),
    )
