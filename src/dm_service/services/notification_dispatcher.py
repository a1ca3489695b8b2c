"""Fire-and-forget e-mail notification for new messages."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from dm_service.application.exceptions import NotificationDeliveryError
from dm_service.application.ports.notification import NotificationTransport
from dm_service.application.ports.presence import PresenceTracker
from dm_service.application.uow import UnitOfWork
from dm_service.domain.entities.message import Message
from dm_service.domain.events.message_created import MessageCreated

logger = logging.getLogger(__name__)


def compose_new_message_email(
    content: str,
    *,
    sender_name: str,
    context_title: str | None,
    app_name: str,
    app_base_url: str,
) -> tuple[str, str]:
    """Return (subject, body) for a new-message notification."""
    subject = f"New message from {sender_name}"
    lines = [
        f"You have received a new message from {sender_name}:",
        "",
        f'"{content}"',
        "",
    ]
    if context_title:
        lines += [f"Regarding: {context_title}", ""]
    lines += [
        f"Reply on {app_name}: {app_base_url.rstrip('/')}/messages",
        "",
        f"Best regards,\n{app_name} Team",
    ]
    return subject, "\n".join(lines)


class NotificationDispatcher:
    """Delivers new-message notifications without ever failing the sender.

    Each attempt is bounded by ``timeout`` seconds. Only attempts the
    transport rejected outright are retried, up to ``max_attempts`` in
    total; a timeout ends delivery without a retry. The final failure is
    logged and swallowed.
    """

    def __init__(
        self,
        transport: NotificationTransport,
        *,
        timeout: float,
        max_attempts: int,
        retry_delay: float,
        app_name: str,
        app_base_url: str,
    ) -> None:
        self._transport = transport
        self._timeout = timeout
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay
        self._app_name = app_name
        self._app_base_url = app_base_url
        self._tasks: set[asyncio.Task[None]] = set()

    async def notify_new_message(
        self,
        message: Message | MessageCreated,
        recipient_contact: str,
        *,
        sender_name: str,
        context_title: str | None = None,
    ) -> None:
        subject, body = compose_new_message_email(
            message.content,
            sender_name=sender_name,
            context_title=context_title,
            app_name=self._app_name,
            app_base_url=self._app_base_url,
        )
        message_id = message.message_id if isinstance(message, MessageCreated) else message.id
        try:
            await self._deliver(recipient_contact, subject, body, message_id)
        except Exception:
            logger.exception("Unexpected error notifying about message %s", message_id)

    def dispatch(
        self,
        message: Message | MessageCreated,
        recipient_contact: str,
        *,
        sender_name: str,
        context_title: str | None = None,
    ) -> asyncio.Task[None]:
        """Schedule ``notify_new_message`` in the background and return at once."""
        task = asyncio.create_task(
            self.notify_new_message(
                message,
                recipient_contact,
                sender_name=sender_name,
                context_title=context_title,
            ),
            name="dm-notify",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def aclose(self, timeout: float | None = None) -> None:
        """Wait for background deliveries, cancelling what is left after ``timeout``."""
        if not self._tasks:
            return
        pending = set(self._tasks)
        _done, still_pending = await asyncio.wait(pending, timeout=timeout or self._timeout)
        for task in still_pending:
            task.cancel()

    async def _deliver(
        self,
        recipient_contact: str,
        subject: str,
        body: str,
        message_id: Any,
    ) -> None:
        for attempt in range(1, self._max_attempts + 1):
            try:
                async with asyncio.timeout(self._timeout):
                    await self._transport.send(recipient_contact, subject, body)
            except TimeoutError:
                # The transport may still finish the send after we stop
                # waiting, so a timed-out attempt is never repeated.
                logger.warning(
                    "Notification for message %s timed out after %.1fs, outcome unknown",
                    message_id, self._timeout,
                )
                return
            except NotificationDeliveryError as exc:
                logger.warning(
                    "Notification for message %s failed (attempt %d/%d): %s",
                    message_id, attempt, self._max_attempts, exc,
                )
                if attempt < self._max_attempts:
                    await asyncio.sleep(self._retry_delay * attempt)
                continue
            logger.info("Notified %s about message %s", recipient_contact, message_id)
            return

        logger.error(
            "Giving up notifying %s about message %s after %d attempt(s)",
            recipient_contact, message_id, self._max_attempts,
        )


async def handle_message_created(
    payload: dict[str, Any],
    uow: UnitOfWork,
    presence: PresenceTracker,
    dispatcher: NotificationDispatcher,
) -> None:
    """Resolve the recipient of a ``dm.message_created`` event and notify them if offline."""
    event = MessageCreated.from_payload(payload)

    if await _is_online(presence, event.recipient_id):
        logger.debug("Recipient %s online, skipping e-mail for %s", event.recipient_id, event.message_id)
        return

    recipient = await uow.directory.get_profile(event.recipient_id)
    if recipient is None or not recipient.email:
        logger.info("No contact for %s, skipping e-mail for %s", event.recipient_id, event.message_id)
        return

    sender = await uow.directory.get_profile(event.sender_id)
    sender_name = sender.display_name if sender is not None else event.sender_id

    context_title = None
    conversation = await uow.conversations.get_by_id(event.conversation_id)
    if conversation is not None and conversation.context_ref:
        context = await uow.directory.get_context(conversation.context_ref)
        context_title = context.title if context is not None else None

    await dispatcher.notify_new_message(
        event,
        recipient.email,
        sender_name=sender_name,
        context_title=context_title,
    )


async def _is_online(presence: PresenceTracker, participant_id: str) -> bool:
    try:
        return await presence.is_online(participant_id)
    except Exception:
        # Unknown presence counts as offline.
        logger.warning("Presence lookup failed for %s", participant_id, exc_info=True)
        return False
