"""Seed development data: two profiles, a job context and a short thread."""
from __future__ import annotations

import asyncio
import logging

from dm_service.domain.entities.profile import ContextSummary, ParticipantProfile
from dm_service.domain.value_objects.enums import ParticipantRole
from dm_service.infrastructure.db.uow import OwnedSessionUoW
from dm_service.services import conversation_service, message_service

logger = logging.getLogger(__name__)


async def seed() -> None:
    async with OwnedSessionUoW() as uow:
        await uow.directory_w.upsert_profile(
            ParticipantProfile(
                participant_id="alice",
                email="alice@example.com",
                full_name="Alice Moreau",
                organization_name="Bright Smile Dental",
                is_verified=True,
                role=ParticipantRole.REQUESTER,
            )
        )
        await uow.directory_w.upsert_profile(
            ParticipantProfile(
                participant_id="bob",
                email="bob@example.com",
                full_name="Bob Okafor",
                role=ParticipantRole.PROVIDER,
            )
        )
        await uow.directory_w.upsert_context(
            ContextSummary(context_ref="job-42", title="Locum dentist, two weeks in June")
        )
        await uow.commit()

        conv, _created = await conversation_service.find_or_create("alice", "bob", "job-42", uow)

        thread = [
            ("alice", "Hi Bob, are you available for the June locum?"),
            ("bob", "Yes, next week works for me."),
            ("alice", "Great, I'll send over the details."),
        ]
        for sender_id, content in thread:
            await message_service.append(conv.id, sender_id, content, uow)

        logger.info("Seeded conversation %s with %d messages", conv.id, len(thread))


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
