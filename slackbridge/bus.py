"""Redis Streams work queue: publish + consume for deferred lookups.

One stream ("{namespace}:{topic}") and one consumer group. The enqueue side
publishes with XADD and treats the returned entry ID as the queue's
acknowledgment; the worker reads with XREADGROUP, acks with XACK, and
reclaims entries abandoned by a dead consumer with XAUTOCLAIM.

Unlike a fire-and-forget event bus, publish failures raise: a slash command
must never be told "hang tight" for work that was not accepted.
"""

from __future__ import annotations

import logging

import redis
from redis.backoff import NoBackoff
from redis.retry import Retry

from slackbridge.config import Settings
from slackbridge.errors import DispatchFailure
from slackbridge.models import DeferredMessage

logger = logging.getLogger(__name__)

# Stream entry field holding the serialized DeferredMessage
DATA_FIELD = "data"


def redis_client(settings: Settings, *, blocking_reads: bool = False) -> redis.Redis:
    """Build the Redis client for either side of the queue.

    On the publish side, connect plus one round trip must finish inside
    publish_timeout_seconds, the deadline the HTTP handler enforces, so each
    socket timeout gets half of it and the client does not retry. The
    worker's client also has to outlive a blocking XREADGROUP.
    """
    if blocking_reads:
        return redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=settings.publish_timeout_seconds,
            socket_timeout=settings.publish_timeout_seconds + settings.read_block_ms / 1000,
        )
    step = settings.publish_timeout_seconds / 2
    return redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=step,
        socket_timeout=step,
        retry=Retry(NoBackoff(), 0),
    )


class StreamQueue:
    """Single-topic work queue on a Redis Stream."""

    def __init__(self, client: redis.Redis, stream: str, group: str):
        self._redis = client
        self._stream = stream
        self._group = group

    @property
    def stream(self) -> str:
        return self._stream

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish(self, message: DeferredMessage) -> str:
        """Append a message and wait for Redis to accept it.

        Returns the stream entry ID. Raises DispatchFailure if the entry was
        not durably accepted.
        """
        try:
            entry_id = self._redis.xadd(self._stream, {DATA_FIELD: message.to_json()})
        except redis.RedisError as exc:
            logger.error("Queue publish failed: stream=%s error=%s", self._stream, exc)
            raise DispatchFailure(f"unable to publish message: {exc}") from exc
        if not entry_id:
            raise DispatchFailure("unable to publish message: no entry id returned")
        logger.debug("Published %s to %s", entry_id, self._stream)
        return entry_id

    # ------------------------------------------------------------------
    # Consumer group management
    # ------------------------------------------------------------------

    def ensure_group(self) -> None:
        """Create the consumer group (idempotent).

        Uses ``mkstream=True`` so the worker can start before anything has
        been published.
        """
        try:
            self._redis.xgroup_create(self._stream, self._group, id="0", mkstream=True)
            logger.info("Consumer group '%s' created on %s", self._group, self._stream)
        except redis.ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise

    # ------------------------------------------------------------------
    # Consuming
    # ------------------------------------------------------------------

    def read_batch(
        self,
        consumer_name: str,
        *,
        count: int = 10,
        block_ms: int = 5000,
    ) -> list[tuple[str, dict[str, str]]]:
        """Read new entries for this consumer.

        Returns list of (entry_id, fields_dict) tuples.
        """
        result = self._redis.xreadgroup(
            self._group,
            consumer_name,
            {self._stream: ">"},
            count=count,
            block=block_ms,
        )
        if not result:
            return []
        # result is [(stream_name, [(entry_id, fields), ...])]
        return list(result[0][1])

    def claim_stale(
        self,
        consumer_name: str,
        *,
        min_idle_ms: int = 60_000,
        count: int = 10,
    ) -> list[tuple[str, dict[str, str]]]:
        """Take over entries another consumer read but never acknowledged."""
        # XAUTOCLAIM returns (next_start_id, [(entry_id, fields), ...], deleted_ids)
        response = self._redis.xautoclaim(
            self._stream,
            self._group,
            consumer_name,
            min_idle_time=min_idle_ms,
            count=count,
        )
        entries = [(entry_id, fields) for entry_id, fields in response[1] if fields]
        if entries:
            logger.info(
                "Claimed %d stale messages from %s (idle > %dms)",
                len(entries), self._stream, min_idle_ms,
            )
        return entries

    def delivery_count(self, entry_id: str) -> int:
        """How many times the group has delivered this entry."""
        pending = self._redis.xpending_range(
            self._stream, self._group, min=entry_id, max=entry_id, count=1
        )
        if not pending:
            return 0
        return int(pending[0].get("times_delivered", 0))

    def ack(self, *entry_ids: str) -> int:
        """Acknowledge processed entries. Returns the number acknowledged."""
        if not entry_ids:
            return 0
        return self._redis.xack(self._stream, self._group, *entry_ids)


def build_queue(
    settings: Settings,
    client: redis.Redis | None = None,
    *,
    blocking_reads: bool = False,
) -> StreamQueue:
    return StreamQueue(
        client or redis_client(settings, blocking_reads=blocking_reads),
        stream=settings.stream_key,
        group=settings.consumer_group,
    )
