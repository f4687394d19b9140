"""
Storage layer.

Each store wraps one SQLAlchemy session; services decide where the
transaction boundaries are.
"""

from .url_store import URLStore, ShortCodeTakenError
from .click_log import ClickEventLog
from .aggregate_store import AggregateStore

__all__ = [
    "URLStore",
    "ShortCodeTakenError",
    "ClickEventLog",
    "AggregateStore",
]
