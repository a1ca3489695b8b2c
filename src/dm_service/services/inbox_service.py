"""Inbox view: a participant's conversations with per-row enrichment."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from dm_service.application.dto.conversation import ConversationView, LastMessagePreview
from dm_service.application.ports.uow_factory import UoWFactory
from dm_service.application.uow import UnitOfWork
from dm_service.domain.entities.conversation import Conversation
from dm_service.services.read_state_service import current_unread

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def list_for_participant(
    participant_id: str,
    uow: UnitOfWork,
    uow_factory: UoWFactory,
    *,
    search: str | None = None,
    concurrency: int = 8,
    timeout: float = 3.0,
) -> list[ConversationView]:
    """Conversations of ``participant_id``, most recent activity first, enriched.

    Enrichment runs concurrently, one unit of work per conversation, at most
    ``concurrency`` at a time. Each lookup is bounded by ``timeout`` and a
    failed lookup only defaults its own field.
    """
    conversations = await uow.conversations.list_for_participant(participant_id)
    if not conversations:
        return []

    limiter = asyncio.Semaphore(max(1, concurrency))

    async def _bounded(conversation: Conversation) -> ConversationView:
        async with limiter:
            try:
                return await _enrich(conversation, participant_id, uow_factory, timeout)
            except Exception:
                logger.warning(
                    "Inbox enrichment failed for conversation %s", conversation.id, exc_info=True,
                )
                return ConversationView(
                    conversation=conversation,
                    other_participant_id=conversation.other_participant(participant_id),
                )

    async with asyncio.TaskGroup() as tg:
        tasks = [tg.create_task(_bounded(c)) for c in conversations]

    views = [t.result() for t in tasks]
    if search and search.strip():
        needle = search.strip()
        views = [v for v in views if v.matches(needle)]
    return views


async def _enrich(
    conversation: Conversation,
    participant_id: str,
    uow_factory: UoWFactory,
    timeout: float,
) -> ConversationView:
    other_id = conversation.other_participant(participant_id)

    async with uow_factory() as uow:
        profile = await _guarded(
            "profile", conversation, timeout, lambda: uow.directory.get_profile(other_id), None,
        )
        context_title = None
        if conversation.context_ref:
            context_title = await _guarded(
                "context", conversation, timeout, lambda: _context_title(uow, conversation), None,
            )
        last_message = await _guarded(
            "last_message", conversation, timeout, lambda: _last_message(uow, conversation), None,
        )
        unread = await _guarded(
            "unread", conversation, timeout,
            lambda: current_unread(uow, conversation.id, participant_id), 0,
        )

    return ConversationView(
        conversation=conversation,
        other_participant_id=other_id,
        other_participant=profile,
        context_title=context_title,
        last_message=last_message,
        unread_count=unread,
    )


async def _guarded(
    field: str,
    conversation: Conversation,
    timeout: float,
    fetch: Callable[[], Awaitable[T]],
    default: T,
) -> T:
    try:
        async with asyncio.timeout(timeout):
            return await fetch()
    except Exception:
        logger.warning(
            "Inbox enrichment %r failed for conversation %s", field, conversation.id, exc_info=True,
        )
        return default


async def _context_title(uow: UnitOfWork, conversation: Conversation) -> str | None:
    context = await uow.directory.get_context(conversation.context_ref)  # type: ignore[arg-type]
    return context.title if context is not None else None


async def _last_message(uow: UnitOfWork, conversation: Conversation) -> LastMessagePreview | None:
    message = await uow.messages.get_latest(conversation.id)
    if message is None:
        return None
    return LastMessagePreview(
        content=message.content,
        sender_id=message.sender_id,
        created_at=message.created_at,
    )
