"""
Aggregate Worker

Drains AggregateIncrement messages that the redirect path queued instead of
(or after failing) updating url_analytics inline.

Architecture:
- Consumes messages from queue in batches
- Groups them per URL and applies one atomic increment per URL
- Acknowledges only after the database commit (at-least-once)

Runs either as its own process (main()) next to a shared Redis stream, or
as a background thread inside the API process when the queue is in-memory.
"""

import logging
import signal
import sys
import threading
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from clicklink_app.config import Settings
from clicklink_app.database.connection import Database
from clicklink_app.queue.models import AggregateIncrement
from clicklink_app.queue.strategies import QueueStrategy
from clicklink_app.storage import AggregateStore
from clicklink_app.utils.clock import ensure_utc

logger = logging.getLogger(__name__)


class AggregateWorker:
    """
    Batch processor for queued aggregate increments.

    A failed batch is not acknowledged, so the queue hands it out again.
    """

    def __init__(self, queue: QueueStrategy, database: Database, settings: Settings):
        self.queue = queue
        self.database = database
        self.settings = settings
        self.running = False
        self.processed_count = 0
        self._wakeup = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_forever(self):
        """Start the worker loop until stop() or a signal"""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)
        self.running = True
        self._run_loop()

    def start_background(self) -> threading.Thread:
        """Run the worker loop in a daemon thread; pair with shutdown()"""
        self.running = True
        self._wakeup.clear()
        self._thread = threading.Thread(target=self._run_loop, name="aggregate-worker", daemon=True)
        self._thread.start()
        return self._thread

    def shutdown(self, timeout: Optional[float] = None):
        """
        Stop the background thread, wait for it, then apply whatever is
        still queued so an in-memory queue is empty when the process exits.
        """
        self.stop()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        try:
            self.drain()
        except SQLAlchemyError:
            logger.exception(
                "Could not apply %d queued increments at shutdown",
                self.queue.get_queue_length(self.settings.queue_name),
            )

    def _run_loop(self):
        logger.info(
            "Aggregate worker started (queue=%s, batch size=%d)",
            self.settings.queue_name, self.settings.queue_batch_size,
        )

        while self.running:
            try:
                processed = self.process_once()
            except Exception:
                # Keep the loop alive; the batch stays pending for retry
                logger.exception("Error processing batch")
                processed = 0

            if not processed:
                self._wakeup.wait(self.settings.queue_worker_interval)

        logger.info("Aggregate worker stopped")

    def process_once(self) -> int:
        """
        Consume one batch, apply it, ack it.

        Returns:
            Number of messages applied

        Raises:
            SQLAlchemyError: if the batch could not be committed (not acked)
        """
        messages = self.queue.consume(
            self.settings.queue_name,
            batch_size=self.settings.queue_batch_size,
            block_time=1000,
        )
        if not messages:
            return 0

        self._apply(messages)

        message_ids = [msg.message_id for msg in messages if msg.message_id]
        self.queue.ack(self.settings.queue_name, message_ids)

        self.processed_count += len(messages)
        logger.info("Applied %d increments. Total: %d", len(messages), self.processed_count)
        return len(messages)

    def drain(self) -> int:
        """Process batches until the queue is empty"""
        total = 0
        while True:
            processed = self.process_once()
            if not processed:
                return total
            total += processed

    def _apply(self, messages: List[AggregateIncrement]):
        grouped = group_increments(messages)

        db = self.database.session()
        try:
            aggregates = AggregateStore(db)
            for url_id, (count, newest) in grouped.items():
                if not aggregates.increment(url_id, newest, amount=count):
                    # URL deleted since the click; nothing left to count
                    logger.warning("No aggregate row for url %s, dropping %d increments", url_id, count)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

    def _signal_handler(self, signum, frame):
        logger.info("Received signal %s. Shutting down gracefully...", signum)
        self.stop()

    def stop(self):
        self.running = False
        self._wakeup.set()


def group_increments(messages: List[AggregateIncrement]) -> Dict[int, Tuple[int, datetime]]:
    """url_id -> (number of clicks, newest clicked_at)"""
    grouped: Dict[int, List] = defaultdict(lambda: [0, None])
    for message in messages:
        entry = grouped[message.url_id]
        entry[0] += 1
        clicked_at = ensure_utc(message.clicked_at)
        if entry[1] is None or clicked_at > entry[1]:
            entry[1] = clicked_at
    return {url_id: (count, newest) for url_id, (count, newest) in grouped.items()}


def main():
    """
    Main entry point for the aggregate worker.

    Usage:
        python -m clicklink_app.hit_processor.aggregate_worker
    """
    from clicklink_app.config import settings
    from clicklink_app.queue.factory import QueueFactory

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info("Environment: %s, queue backend: %s", settings.environment, settings.queue_backend)

    database = Database(settings.database_url, busy_timeout=settings.database_busy_timeout)
    database.create_all()
    queue = QueueFactory.create(settings)

    worker = AggregateWorker(queue=queue, database=database, settings=settings)
    try:
        worker.run_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception:
        logger.exception("Fatal error")
        sys.exit(1)
    finally:
        queue.close()
        database.dispose()


if __name__ == "__main__":
    main()
