from __future__ import annotations

import logging
import uuid
from datetime import datetime

from dm_service.application.policies.permissions import assert_conversation_access
from dm_service.application.ports.clock import Clock, SystemClock
from dm_service.application.uow import UnitOfWork

logger = logging.getLogger(__name__)

_clock = SystemClock()


async def mark_read(
    conversation_id: uuid.UUID,
    participant_id: str,
    uow: UnitOfWork,
    *,
    as_of: datetime | None = None,
    clock: Clock = _clock,
) -> int:
    """Stamp every unread incoming message with the read time.

    The cached counter is decremented by exactly the number of messages
    stamped, in the same transaction, so a message appended concurrently stays
    counted until a later call stamps it. Returns the number of messages
    marked; zero is a no-op.
    """
    conversation = await uow.conversations.get_by_id(conversation_id)
    assert_conversation_access(participant_id, conversation)

    as_of = as_of or clock.now()
    marked = await uow.messages_w.mark_read(conversation_id, participant_id, as_of)
    if not marked:
        return 0

    await uow.read_state_w.apply_read(conversation_id, participant_id, marked, as_of)
    await uow.commit()
    logger.debug("%s read %d message(s) in %s", participant_id, marked, conversation_id)
    return marked


async def current_unread(
    uow: UnitOfWork,
    conversation_id: uuid.UUID,
    participant_id: str,
) -> int:
    """Counter lookup without access checks, recounting when no counter row exists."""
    state = await uow.read_state.get(conversation_id, participant_id)
    if state is None:
        return await uow.messages.count_unread(conversation_id, participant_id)
    return max(state.unread_count, 0)


async def unread_count(
    conversation_id: uuid.UUID,
    participant_id: str,
    uow: UnitOfWork,
) -> int:
    conversation = await uow.conversations.get_by_id(conversation_id)
    assert_conversation_access(participant_id, conversation)
    return await current_unread(uow, conversation_id, participant_id)
