"""
Queue strategies using Strategy Pattern.
Allows switching between different queue backends (Redis Streams, In-Memory).

The queue carries AggregateIncrement messages with at-least-once delivery:
a consumed message stays pending until it is acknowledged.
"""

from abc import ABC, abstractmethod
from typing import Dict, List
from collections import deque
import itertools
import logging
import socket
import threading

from .models import AggregateIncrement

logger = logging.getLogger(__name__)


class QueuePublishError(Exception):
    """A message could not be handed to the queue backend"""


class QueueUnavailableError(Exception):
    """The configured queue backend cannot be reached"""


class QueueStrategy(ABC):
    """
    Abstract base class for queue strategies.

    This is the Strategy Pattern interface - allows multiple queue implementations
    without changing the service/worker code.
    """

    @abstractmethod
    def publish(self, queue_name: str, message: AggregateIncrement) -> str:
        """
        Publish a message to the queue.

        Returns:
            The backend's message id

        Raises:
            QueuePublishError: if the message was not stored
        """
        pass

    @abstractmethod
    def consume(self, queue_name: str, batch_size: int = 1, block_time: int = 1000) -> List[AggregateIncrement]:
        """
        Consume up to batch_size messages. Each returned message has
        message_id set and stays pending until acked.

        Args:
            queue_name: Name of the queue
            batch_size: Maximum number of messages to retrieve
            block_time: Time to wait for messages (milliseconds)
        """
        pass

    @abstractmethod
    def ack(self, queue_name: str, message_ids: List[str]) -> None:
        """Acknowledge messages (mark as processed)."""
        pass

    @abstractmethod
    def get_queue_length(self, queue_name: str) -> int:
        """Number of messages not yet acknowledged"""
        pass

    def close(self) -> None:
        """Release backend resources"""


class RedisStreamQueue(QueueStrategy):
    """
    Redis Streams implementation for message queue.

    How it works:
    1. Producer publishes messages using XADD
    2. Consumer reads messages using XREADGROUP
    3. Consumer acknowledges messages using XACK
    4. On restart a consumer first re-reads its own pending (unacked) entries
    """

    def __init__(self, redis_client, consumer_group: str = "aggregate_workers", consumer_name: str = None):
        """
        Args:
            redis_client: redis.Redis instance (decode_responses=False)
            consumer_group: Name of consumer group for workers
            consumer_name: Stable name of this consumer within the group
        """
        self.redis = redis_client
        self.consumer_group = consumer_group
        self.consumer_name = consumer_name or f"worker-{socket.gethostname()}"
        self._initialized_streams = set()

    def _ensure_stream_exists(self, queue_name: str):
        if queue_name in self._initialized_streams:
            return

        import redis

        try:
            # MKSTREAM creates the stream if it doesn't exist yet
            self.redis.xgroup_create(
                name=queue_name,
                groupname=self.consumer_group,
                id='0',
                mkstream=True
            )
            logger.info("Created Redis stream %s (group %s)", queue_name, self.consumer_group)
        except redis.ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise

        self._initialized_streams.add(queue_name)

    def publish(self, queue_name: str, message: AggregateIncrement) -> str:
        import redis

        try:
            self._ensure_stream_exists(queue_name)
            message_id = self.redis.xadd(queue_name, {'data': message.model_dump_json()})
        except redis.RedisError as e:
            raise QueuePublishError(str(e)) from e

        return message_id.decode('utf-8') if isinstance(message_id, bytes) else message_id

    def consume(self, queue_name: str, batch_size: int = 1, block_time: int = 1000) -> List[AggregateIncrement]:
        self._ensure_stream_exists(queue_name)

        # '0' returns this consumer's pending entries; '>' only new ones
        messages = self.redis.xreadgroup(
            groupname=self.consumer_group,
            consumername=self.consumer_name,
            streams={queue_name: '0'},
            count=batch_size,
        )
        if not self._has_entries(messages):
            messages = self.redis.xreadgroup(
                groupname=self.consumer_group,
                consumername=self.consumer_name,
                streams={queue_name: '>'},
                count=batch_size,
                block=block_time
            )

        events = []
        for _stream, stream_messages in messages or []:
            for message_id, message_data in stream_messages:
                message_id = message_id.decode('utf-8') if isinstance(message_id, bytes) else message_id
                try:
                    event = AggregateIncrement.model_validate_json(message_data[b'data'])
                except (KeyError, ValueError):
                    # Poison message: drop it so it isn't redelivered forever
                    logger.exception("Dropping unparsable message %s", message_id)
                    self.ack(queue_name, [message_id])
                    continue
                event.message_id = message_id
                events.append(event)

        return events

    @staticmethod
    def _has_entries(messages) -> bool:
        return any(entries for _stream, entries in messages or [])

    def ack(self, queue_name: str, message_ids: List[str]) -> None:
        if not message_ids:
            return
        self.redis.xack(queue_name, self.consumer_group, *message_ids)
        self.redis.xdel(queue_name, *message_ids)

    def get_queue_length(self, queue_name: str) -> int:
        import redis

        try:
            return self.redis.xlen(queue_name)
        except redis.ResponseError:
            return 0

    def close(self) -> None:
        self.redis.close()


class InMemoryQueue(QueueStrategy):
    """
    In-memory queue implementation using Python deque.

    Good for development and testing. Not persistent and not shared between
    processes, so the worker must run in the same process to drain it.
    Thread-safe: redirects publish from FastAPI's thread pool.
    """

    def __init__(self):
        self._queues: Dict[str, deque] = {}
        self._pending: Dict[str, Dict[str, AggregateIncrement]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _get_queue(self, queue_name: str) -> deque:
        if queue_name not in self._queues:
            self._queues[queue_name] = deque()
            self._pending[queue_name] = {}
        return self._queues[queue_name]

    def publish(self, queue_name: str, message: AggregateIncrement) -> str:
        with self._lock:
            message_id = f"mem-{next(self._ids)}"
            self._get_queue(queue_name).append(
                message.model_copy(update={"message_id": message_id})
            )
        return message_id

    def consume(self, queue_name: str, batch_size: int = 1, block_time: int = 1000) -> List[AggregateIncrement]:
        """block_time is ignored (no blocking in this simple implementation)"""
        with self._lock:
            queue = self._get_queue(queue_name)
            pending = self._pending[queue_name]

            # Unacked messages are redelivered first
            messages = list(pending.values())[:batch_size]
            while queue and len(messages) < batch_size:
                message = queue.popleft()
                pending[message.message_id] = message
                messages.append(message)

            return messages

    def ack(self, queue_name: str, message_ids: List[str]) -> None:
        with self._lock:
            pending = self._pending.get(queue_name, {})
            for message_id in message_ids:
                pending.pop(message_id, None)

    def get_queue_length(self, queue_name: str) -> int:
        with self._lock:
            return len(self._get_queue(queue_name)) + len(self._pending[queue_name])
