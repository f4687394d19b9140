"""
Factory for creating queue instances.
"""

from enum import Enum
import logging

from .strategies import QueueStrategy, QueueUnavailableError, RedisStreamQueue, InMemoryQueue
from clicklink_app.config import Settings

logger = logging.getLogger(__name__)


class QueueBackend(Enum):
    """Available queue backends"""
    REDIS_STREAMS = "redis_streams"
    MEMORY = "memory"


class QueueFactory:
    """
    Builds the queue for a given Settings object.

    The application creates one instance at startup and keeps it on
    app.state; nothing is cached at module level.

    An unreachable Redis raises QueueUnavailableError.
    """

    @staticmethod
    def create(settings: Settings) -> QueueStrategy:
        backend = QueueBackend(settings.queue_backend)

        if backend == QueueBackend.REDIS_STREAMS:
            import redis

            try:
                redis_client = redis.from_url(
                    settings.redis_url,
                    decode_responses=False,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                )

                # Test connection immediately
                redis_client.ping()

            except redis.RedisError as e:
                logger.error("Redis connection failed: %s", e)
                raise QueueUnavailableError(f"Redis at {settings.redis_url} is unreachable") from e

            logger.info("Redis stream queue initialized")
            return RedisStreamQueue(redis_client, settings.queue_consumer_group)

        logger.info("In-memory queue initialized")
        return InMemoryQueue()
