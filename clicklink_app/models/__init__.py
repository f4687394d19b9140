"""
Database models for the URL shortener.

- URL: the short link itself
- ClickEvent: append-only log of redirects (source of truth for analytics)
- URLAnalytics: one cached aggregate row per URL
"""

from .enums import DeviceType
from .url import URL
from .click import ClickEvent
from .analytics import URLAnalytics

__all__ = ["DeviceType", "URL", "ClickEvent", "URLAnalytics"]
