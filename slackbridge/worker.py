"""Queue worker process (``python -m slackbridge.worker``).

Reads the stream through the consumer group and hands each entry to the
Consumer. Entries are acked once the Consumer reaches a terminal outcome.
An entry whose processing raised unexpectedly stays pending; after
``claim_idle_ms`` any worker reclaims it, and after ``max_deliveries``
attempts it is acked and dropped.
"""

from __future__ import annotations

import functools
import logging
import signal
import threading

import redis

from slackbridge.bus import DATA_FIELD, StreamQueue, build_queue
from slackbridge.channels.slack import SlackResponder, build_reply
from slackbridge.config import Settings, configure_logging, load_settings
from slackbridge.consumer import Consumer
from slackbridge.lookup import AirtableLookup

logger = logging.getLogger(__name__)

# Back-off after a Redis error in the read loop
_ERROR_PAUSE_SECONDS = 1.0


class Worker:
    def __init__(
        self,
        queue: StreamQueue,
        consumer: Consumer,
        *,
        consumer_name: str,
        read_count: int = 10,
        block_ms: int = 5000,
        claim_idle_ms: int = 60_000,
        max_deliveries: int = 5,
    ):
        self._queue = queue
        self._consumer = consumer
        self._name = consumer_name
        self._read_count = read_count
        self._block_ms = block_ms
        self._claim_idle_ms = claim_idle_ms
        self._max_deliveries = max_deliveries

    def process(self, entry_id: str, fields: dict[str, str]) -> bool:
        """Handle one stream entry. Returns True if it was acked."""
        try:
            outcome = self._consumer.on_message(fields.get(DATA_FIELD, ""))
        except Exception:
            logger.exception("Unexpected error processing %s, leaving it pending", entry_id)
            return False
        self._queue.ack(entry_id)
        logger.debug("Acked %s (%s)", entry_id, outcome.value)
        return True

    def _reclaim(self) -> list[tuple[str, dict[str, str]]]:
        claimed = self._queue.claim_stale(
            self._name, min_idle_ms=self._claim_idle_ms, count=self._read_count
        )
        retry = []
        for entry_id, fields in claimed:
            deliveries = self._queue.delivery_count(entry_id)
            if deliveries > self._max_deliveries:
                logger.error(
                    "Dropping %s after %d deliveries", entry_id, deliveries
                )
                self._queue.ack(entry_id)
            else:
                retry.append((entry_id, fields))
        return retry

    def run_once(self) -> int:
        """Process reclaimed entries, then one batch of new ones.

        Returns the number of entries handed to the consumer.
        """
        entries = self._reclaim()
        entries += self._queue.read_batch(
            self._name, count=self._read_count, block_ms=self._block_ms
        )
        for entry_id, fields in entries:
            self.process(entry_id, fields)
        return len(entries)

    def run(self, stop: threading.Event) -> None:
        self._queue.ensure_group()
        logger.info("Worker %s consuming %s", self._name, self._queue.stream)
        while not stop.is_set():
            try:
                self.run_once()
            except redis.RedisError:
                logger.warning("Queue read failed, retrying", exc_info=True)
                stop.wait(_ERROR_PAUSE_SECONDS)
        logger.info("Worker %s stopped", self._name)


def build_worker(settings: Settings, queue: StreamQueue | None = None) -> Worker:
    settings.require_lookup()
    lookup = AirtableLookup(
        settings.airtable_api_key,
        settings.airtable_base_id,
        settings.airtable_table_id,
        settings.airtable_view_id,
        api_url=settings.airtable_api_url,
        timeout=settings.http_timeout_seconds,
    )
    consumer = Consumer(
        lookup,
        SlackResponder(timeout=settings.http_timeout_seconds),
        functools.partial(
            build_reply,
            table_id=settings.airtable_table_id,
            view_id=settings.airtable_view_id,
        ),
    )
    return Worker(
        queue or build_queue(settings, blocking_reads=True),
        consumer,
        consumer_name=settings.consumer_name,
        read_count=settings.read_count,
        block_ms=settings.read_block_ms,
        claim_idle_ms=settings.claim_idle_ms,
        max_deliveries=settings.max_deliveries,
    )


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    worker = build_worker(settings)

    stop = threading.Event()

    def _shutdown(signum, frame):
        logger.info("Received signal %d, shutting down", signum)
        stop.set()

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)
    worker.run(stop)


if __name__ == "__main__":
    main()
