"""Outbox worker: polls pending outbox records and sends new-message notifications."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

import redis.asyncio as aioredis

from dm_service.application.ports.presence import PresenceTracker
from dm_service.application.ports.uow_factory import UoWFactory
from dm_service.application.repositories.outbox import OutboxRecord
from dm_service.application.uow import UnitOfWork
from dm_service.config import settings
from dm_service.domain.value_objects.enums import EventType
from dm_service.infrastructure.db.uow import OwnedSessionUoW
from dm_service.infrastructure.notify.smtp_transport import build_transport
from dm_service.infrastructure.presence.redis_presence import RedisPresenceTracker
from dm_service.log_config import setup_logging
from dm_service.services.notification_dispatcher import (
    NotificationDispatcher,
    handle_message_created,
)

logger = logging.getLogger(__name__)

BASE_DELAY_SECONDS = 5
MAX_DELAY_SECONDS = 300

OutboxHandler = Callable[
    [dict[str, Any], UnitOfWork, PresenceTracker, NotificationDispatcher],
    Awaitable[None],
]

HANDLERS: dict[str, OutboxHandler] = {
    EventType.MESSAGE_CREATED: handle_message_created,
}


def _calc_backoff(attempts: int, now: datetime) -> datetime:
    delay = min(BASE_DELAY_SECONDS * (2 ** attempts), MAX_DELAY_SECONDS)
    return now + timedelta(seconds=delay)


def build_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(
        build_transport(settings),
        timeout=settings.NOTIFY_TIMEOUT_SECONDS,
        max_attempts=settings.NOTIFY_MAX_ATTEMPTS,
        retry_delay=settings.NOTIFY_RETRY_DELAY_SECONDS,
        app_name=settings.APP_NAME,
        app_base_url=settings.APP_BASE_URL,
    )


async def run_outbox_worker() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    presence = RedisPresenceTracker(redis, settings.PRESENCE_TTL_SECONDS)
    dispatcher = build_dispatcher()

    logger.info(
        "Outbox worker started (poll=%.1fs, batch=%d, max_attempts=%d)",
        settings.OUTBOX_POLL_INTERVAL,
        settings.OUTBOX_BATCH_SIZE,
        settings.OUTBOX_MAX_ATTEMPTS,
    )

    try:
        while True:
            try:
                await process_batch(OwnedSessionUoW, presence, dispatcher)
            except Exception:
                logger.exception("Outbox worker loop error")
            await asyncio.sleep(settings.OUTBOX_POLL_INTERVAL)
    finally:
        await dispatcher.aclose()
        await redis.aclose()


async def process_batch(
    uow_factory: UoWFactory,
    presence: PresenceTracker,
    dispatcher: NotificationDispatcher,
    *,
    batch_size: int | None = None,
    max_attempts: int | None = None,
) -> int:
    """Claim one batch of due records and settle each on its own. Returns the number marked sent.

    The claim is committed before any delivery starts, so no row lock is held
    while notifications go out and a crash can repeat at most the record in
    flight.
    """
    batch_size = batch_size or settings.OUTBOX_BATCH_SIZE
    max_attempts = max_attempts or settings.OUTBOX_MAX_ATTEMPTS
    now = datetime.now(timezone.utc)

    async with uow_factory() as uow:
        batch = await uow.outbox.fetch_pending(
            batch_size,
            now,
            claim_until=now + timedelta(seconds=settings.OUTBOX_CLAIM_TTL_SECONDS),
        )
        await uow.commit()
    if not batch:
        return 0

    sent = 0
    for record in batch:
        if await _process_record(record, uow_factory, presence, dispatcher, max_attempts, now):
            sent += 1

    if sent:
        logger.info("Processed %d outbox records", sent)
    return sent


async def _process_record(
    record: OutboxRecord,
    uow_factory: UoWFactory,
    presence: PresenceTracker,
    dispatcher: NotificationDispatcher,
    max_attempts: int,
    now: datetime,
) -> bool:
    handler = HANDLERS.get(record.event_type)
    if record.attempts >= max_attempts or handler is None:
        if handler is None:
            logger.error("No handler for outbox event %s (record %d)", record.event_type, record.id)
        else:
            logger.warning("Outbox record %d exceeded max attempts, giving up", record.id)
        async with uow_factory() as uow:
            await uow.outbox.mark_dead(record.id)
            await uow.commit()
        return False

    try:
        async with uow_factory() as lookup_uow:
            await handler(record.payload, lookup_uow, presence, dispatcher)
    except Exception:
        logger.exception("Failed to handle outbox record %d", record.id)
        async with uow_factory() as uow:
            await uow.outbox.mark_failed(record.id, _calc_backoff(record.attempts, now))
            await uow.commit()
        return False

    async with uow_factory() as uow:
        await uow.outbox.mark_sent([record.id])
        await uow.commit()
    return True


def main() -> None:
    setup_logging(settings.LOG_LEVEL)
    asyncio.run(run_outbox_worker())


if __name__ == "__main__":
    main()
