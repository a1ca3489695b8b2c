"""Consumer for identity and job-posting events via Redis Streams.

Keeps the local profile and context-title mirrors used for inbox
enrichment and notification addressing up to date.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import redis.asyncio as aioredis

from dm_service.application.uow import UnitOfWork
from dm_service.config import settings
from dm_service.domain.entities.profile import ContextSummary, ParticipantProfile
from dm_service.domain.value_objects.enums import ParticipantRole
from dm_service.infrastructure.bus.redis_streams import RedisStreamConsumer
from dm_service.infrastructure.db.uow import OwnedSessionUoW
from dm_service.log_config import setup_logging

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


async def _handle_event(event_type: str, fields: dict[str, Any]) -> None:
    async with OwnedSessionUoW() as uow:
        await handle_event(event_type, fields, uow)


async def handle_event(event_type: str, fields: dict[str, Any], uow: UnitOfWork) -> None:
    """Dispatch a stream event to the appropriate handler."""
    if event_type in ("user.created", "user.updated"):
        await _handle_user_upserted(fields, uow)
    elif event_type in ("job.created", "job.updated"):
        await _handle_job_upserted(fields, uow)
    else:
        logger.debug("Ignoring unknown event: %s", event_type)


def profile_from_fields(fields: dict[str, Any]) -> ParticipantProfile:
    role_raw = fields.get("role") or fields.get("user_type")
    return ParticipantProfile(
        participant_id=str(fields["user_id"]),
        email=fields.get("email") or None,
        full_name=fields.get("full_name") or None,
        organization_name=fields.get("organization_name") or fields.get("practice_name") or None,
        avatar_url=fields.get("avatar_url") or None,
        is_verified=str(fields.get("is_verified", "")).lower() in _TRUE_VALUES,
        role=ParticipantRole(role_raw) if role_raw in ParticipantRole.__members__.values() else None,
    )


async def _handle_user_upserted(fields: dict[str, Any], uow: UnitOfWork) -> None:
    profile = profile_from_fields(fields)
    await uow.directory_w.upsert_profile(profile)
    await uow.commit()
    logger.debug("Profile %s mirrored", profile.participant_id)


async def _handle_job_upserted(fields: dict[str, Any], uow: UnitOfWork) -> None:
    title = fields.get("title")
    if not title:
        logger.warning("Job event without title for %s, skipping", fields.get("job_id"))
        return
    context = ContextSummary(context_ref=str(fields["job_id"]), title=title)
    await uow.directory_w.upsert_context(context)
    await uow.commit()
    logger.debug("Context %s mirrored", context.context_ref)


async def run_consumer() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    consumer_name = settings.DIRECTORY_EVENTS_CONSUMER

    consumer = RedisStreamConsumer(
        redis=redis,
        stream=settings.DIRECTORY_EVENTS_STREAM,
        group=settings.DIRECTORY_EVENTS_GROUP,
        consumer=consumer_name,
        callback=_handle_event,
    )
    await consumer.start()
    logger.info("Directory events consumer started (%s)", consumer_name)

    try:
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass
    finally:
        await consumer.stop()
        await redis.aclose()


def main() -> None:
    setup_logging(settings.LOG_LEVEL)
    asyncio.run(run_consumer())


if __name__ == "__main__":
    main()
