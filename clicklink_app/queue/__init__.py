"""
Message queue module for deferred aggregate increments.
Implements Strategy Pattern for flexible queue backends.
"""

from .strategies import QueueStrategy, QueuePublishError, QueueUnavailableError, RedisStreamQueue, InMemoryQueue
from .factory import QueueFactory, QueueBackend
from .models import AggregateIncrement

__all__ = [
    "QueueStrategy",
    "QueuePublishError",
    "QueueUnavailableError",
    "RedisStreamQueue",
    "InMemoryQueue",
    "QueueFactory",
    "QueueBackend",
    "AggregateIncrement",
]
