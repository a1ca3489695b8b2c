from __future__ import annotations

import logging
import uuid

from dm_service.application.dto.message import SendMessageDTO
from dm_service.application.dto.principal import Principal
from dm_service.application.exceptions import ValidationError
from dm_service.application.policies.permissions import assert_conversation_access
from dm_service.application.ports.clock import Clock, SystemClock
from dm_service.application.uow import UnitOfWork
from dm_service.domain.entities.message import Message
from dm_service.domain.events.message_created import MessageCreated
from dm_service.domain.value_objects.enums import EventType

logger = logging.getLogger(__name__)

_clock = SystemClock()


async def append(
    conversation_id: uuid.UUID,
    sender_id: str,
    content: str | None,
    uow: UnitOfWork,
    *,
    client_msg_id: uuid.UUID | None = None,
    clock: Clock = _clock,
) -> tuple[Message, bool]:
    """Append a message to a conversation idempotently.

    The message, the conversation's ``last_activity_at`` bump, the recipient's
    unread counter and the notification outbox record are written in one
    transaction. ``created_at`` never precedes the conversation's last
    activity, so the log stays non-decreasing; equal timestamps are ordered
    by the store-assigned ``seq``.

    Returns (message, created). If a message with the same client_msg_id
    already exists the existing one is returned with created=False.
    """
    content = (content or "").strip()
    if not content:
        raise ValidationError("Message content must not be empty")

    conversation = await uow.conversations.get_by_id(conversation_id)
    conversation = assert_conversation_access(sender_id, conversation)
    recipient_id = conversation.other_participant(sender_id)

    created_at = max(clock.now(), conversation.last_activity_at)
    msg = Message(
        id=uuid.uuid4(),
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        client_msg_id=client_msg_id or uuid.uuid4(),
        created_at=created_at,
    )

    msg, created = await uow.messages_w.create_if_not_exists(msg)

    if created:
        await uow.conversations_w.touch_last_activity_at(conversation_id, msg.created_at)
        await uow.read_state_w.increment_unread(conversation_id, recipient_id)
        await uow.outbox.add(
            EventType.MESSAGE_CREATED,
            MessageCreated.from_message(msg, recipient_id).to_payload(),
            dedup_key=f"{EventType.MESSAGE_CREATED}:{msg.id}",
        )
        await uow.commit()
        logger.debug("Message %s appended to conversation %s", msg.id, conversation_id)
    else:
        logger.debug("Duplicate send %s in conversation %s", msg.client_msg_id, conversation_id)

    return msg, created


async def send_message(
    dto: SendMessageDTO,
    principal: Principal,
    uow: UnitOfWork,
) -> tuple[Message, bool]:
    return await append(
        dto.conversation_id,
        principal.participant_id,
        dto.content,
        uow,
        client_msg_id=dto.client_msg_id,
    )


async def list_ordered(conversation_id: uuid.UUID, uow: UnitOfWork) -> list[Message]:
    """Full history ascending by ``(created_at, seq)``. Every call re-reads the log."""
    return await uow.messages.list_messages(conversation_id)


async def list_messages(
    conversation_id: uuid.UUID,
    principal: Principal,
    cursor: str | None,
    limit: int | None,
    uow: UnitOfWork,
) -> list[Message]:
    conversation = await uow.conversations.get_by_id(conversation_id)
    assert_conversation_access(principal.participant_id, conversation)
    if cursor is None and limit is None:
        return await list_ordered(conversation_id, uow)
    return await uow.messages.list_messages(
        conversation_id, cursor=cursor, limit=limit,
    )
