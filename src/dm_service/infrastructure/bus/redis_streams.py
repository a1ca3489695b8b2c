"""Redis Streams consumer-group reader."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

OnStreamEventCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]


class RedisStreamConsumer:
    """XREADGROUP-based consumer for a single stream + consumer group.

    An entry is acknowledged only after the callback returns. Failed entries
    stay pending under this consumer and are replayed, so the consumer name
    must be stable across restarts.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        stream: str,
        group: str,
        consumer: str,
        callback: OnStreamEventCallback,
        *,
        batch_size: int = 10,
        block_ms: int = 5000,
        error_backoff: float = 5.0,
        max_deliveries: int = 5,
    ) -> None:
        self._redis = redis
        self._stream = stream
        self._group = group
        self._consumer = consumer
        self._callback = callback
        self._batch_size = batch_size
        self._block_ms = block_ms
        self._error_backoff = error_backoff
        self._max_deliveries = max(1, max_deliveries)
        self._failures: dict[str, int] = {}
        # Start by replaying whatever a previous run left unacknowledged.
        self._replay_pending = True
        self._task: asyncio.Task[None] | None = None

    async def ensure_group(self) -> None:
        try:
            await self._redis.xgroup_create(
                self._stream, self._group, id="0", mkstream=True
            )
            logger.info("Created consumer group %s on %s", self._group, self._stream)
        except aioredis.ResponseError as e:
            if "BUSYGROUP" in str(e):
                logger.debug("Consumer group %s already exists", self._group)
            else:
                raise

    async def start(self) -> None:
        await self.ensure_group()
        self._task = asyncio.create_task(self._consume(), name="redis-stream-consumer")
        logger.info("Stream consumer started: stream=%s group=%s", self._stream, self._group)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Stream consumer stopped")

    async def process_entries(self, entries: list[Any]) -> int:
        """Dispatch one XREADGROUP reply. Returns the number of acknowledged entries.

        A failed entry stays pending and is re-read from this consumer's
        pending list; after ``max_deliveries`` failures it is acknowledged
        and dropped.
        """
        acked = 0
        for _stream_name, messages in entries:
            for msg_id, fields in messages:
                if not fields:
                    # Trimmed from the stream while still pending.
                    await self._redis.xack(self._stream, self._group, msg_id)
                    acked += 1
                    continue
                event_type = fields.get("event_type", "unknown")
                try:
                    await self._callback(event_type, fields)
                except Exception:
                    failures = self._failures.get(msg_id, 0) + 1
                    if failures < self._max_deliveries:
                        logger.exception(
                            "Error processing stream message %s (delivery %d/%d)",
                            msg_id, failures, self._max_deliveries,
                        )
                        self._failures[msg_id] = failures
                        self._replay_pending = True
                        continue
                    logger.exception("Dropping stream message %s after %d failed deliveries", msg_id, failures)
                self._failures.pop(msg_id, None)
                await self._redis.xack(self._stream, self._group, msg_id)
                acked += 1
        return acked

    async def read_once(self) -> int:
        """Read and dispatch one batch. Returns how many of its entries are still pending.

        While a replay is due the consumer's own pending entries (id ``0``)
        are read instead of new ones, until that list comes back empty.
        """
        replaying = self._replay_pending
        self._replay_pending = False
        entries = await self._redis.xreadgroup(
            groupname=self._group,
            consumername=self._consumer,
            streams={self._stream: "0" if replaying else ">"},
            count=self._batch_size,
            block=None if replaying else self._block_ms,
        )
        ids = [msg_id for _stream_name, messages in entries or [] for msg_id, _fields in messages]
        if not ids:
            return 0
        if replaying:
            self._replay_pending = True
        await self.process_entries(entries)
        return sum(1 for msg_id in ids if msg_id in self._failures)

    async def _consume(self) -> None:
        while True:
            try:
                if await self.read_once():
                    await asyncio.sleep(self._error_backoff)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Stream consumer error, retrying in %.0fs", self._error_backoff)
                await asyncio.sleep(self._error_backoff)
