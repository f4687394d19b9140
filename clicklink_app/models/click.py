from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Index
from sqlalchemy.orm import relationship
from clicklink_app.database.connection import Base
from clicklink_app.models.enums import DeviceType


class ClickEvent(Base):
    """
    One successful redirect.

    Rows are written once by the redirect pipeline and never updated or
    deleted by it. country/city are filled only by a geolocation lookup.
    """
    __tablename__ = "url_clicks"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    url_id = Column(Integer, ForeignKey("urls.id", ondelete="CASCADE"), nullable=False, index=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False, index=True)
    ip_address = Column(String(45), nullable=True)  # IPv4 or IPv6
    user_agent = Column(String(512), nullable=True)
    referer = Column(String(2048), nullable=True)
    device_type = Column(
        Enum(DeviceType, name="device_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=DeviceType.OTHER,
    )
    country = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)

    url = relationship("URL", back_populates="clicks")

    __table_args__ = (
        Index("ix_url_clicks_url_id_occurred_at", "url_id", "occurred_at"),
    )

    def __repr__(self):
        return f"<ClickEvent {self.id} for url {self.url_id}>"
