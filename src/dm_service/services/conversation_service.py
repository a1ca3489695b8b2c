from __future__ import annotations

import logging
import uuid

from dm_service.application.dto.principal import Principal
from dm_service.application.exceptions import ValidationError
from dm_service.application.policies.permissions import assert_conversation_access
from dm_service.application.ports.clock import Clock, SystemClock
from dm_service.application.uow import UnitOfWork
from dm_service.domain.entities.conversation import Conversation
from dm_service.domain.value_objects.ids import canonical_pair

logger = logging.getLogger(__name__)

_clock = SystemClock()


async def find_or_create(
    participant_a: str,
    participant_b: str,
    context_ref: str | None,
    uow: UnitOfWork,
    *,
    clock: Clock = _clock,
) -> tuple[Conversation, bool]:
    """Return the single conversation between two participants, creating it if absent.

    The pair is unordered: ``(a, b)`` and ``(b, a)`` resolve to the same row.
    ``context_ref`` is only recorded when the conversation is created; an
    existing conversation is returned unchanged.

    Returns (conversation, created).
    """
    if not participant_a or not participant_b:
        raise ValidationError("Both participants are required")
    if participant_a == participant_b:
        raise ValidationError("Cannot start a conversation with yourself")

    low, high = canonical_pair(participant_a, participant_b)
    existing = await uow.conversations.get_by_pair(low, high)
    if existing is not None:
        return existing, False

    now = clock.now()
    conversation, created = await uow.conversations_w.create_if_not_exists(
        Conversation(
            id=uuid.uuid4(),
            participant_low=low,
            participant_high=high,
            context_ref=context_ref or None,
            last_activity_at=now,
            created_at=now,
        )
    )
    if not created:
        # Lost the race against a concurrent creation for the same pair.
        logger.info("Conversation for %s/%s created concurrently, reusing %s", low, high, conversation.id)
        return conversation, False

    await uow.read_state_w.ensure(conversation.id, low)
    await uow.read_state_w.ensure(conversation.id, high)
    await uow.commit()
    logger.info("Created conversation %s between %s and %s", conversation.id, low, high)
    return conversation, True


async def find_or_create_for_principal(
    principal: Principal,
    other_participant_id: str,
    context_ref: str | None,
    uow: UnitOfWork,
) -> Conversation:
    conversation, _created = await find_or_create(
        principal.participant_id, other_participant_id, context_ref, uow,
    )
    return conversation


async def get_conversation(
    conversation_id: uuid.UUID,
    principal: Principal,
    uow: UnitOfWork,
) -> Conversation:
    conversation = await uow.conversations.get_by_id(conversation_id)
    return assert_conversation_access(principal.participant_id, conversation)
