from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from clicklink_app.database.connection import Base
from clicklink_app.utils.clock import ensure_utc, utcnow


class URL(Base):
    """
    A shortened link.

    A link that is inactive or past `expires_at` still exists (owners can
    manage it and read its analytics) but no longer redirects.

    Deleting a URL removes its clicks and its aggregate row: the foreign keys
    are ON DELETE CASCADE and the ORM relationships cascade as well.
    """
    __tablename__ = "urls"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    owner_id = Column(Integer, nullable=True, index=True)  # None = anonymous
    original_url = Column(Text, nullable=False)
    # unique=True is the authoritative guard against duplicate codes
    short_code = Column(String(32), unique=True, nullable=False, index=True)
    custom_alias = Column(String(32), nullable=True)
    title = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    analytics = relationship(
        "URLAnalytics",
        back_populates="url",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    clicks = relationship(
        "ClickEvent",
        back_populates="url",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def is_expired(self, now=None) -> bool:
        if self.expires_at is None:
            return False
        now = now or utcnow()
        return now > ensure_utc(self.expires_at)

    def __repr__(self):
        return f"<URL {self.short_code} -> {self.original_url}>"
