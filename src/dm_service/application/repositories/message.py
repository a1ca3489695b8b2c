from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from dm_service.domain.entities.message import Message


class MessageReader(Protocol):
    async def list_messages(
        self,
        conversation_id: UUID,
        *,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> list[Message]:
        """Messages ascending by ``(created_at, seq)``."""
        ...

    async def get_latest(self, conversation_id: UUID) -> Message | None: ...

    async def count_unread(self, conversation_id: UUID, participant_id: str) -> int:
        """Recount incoming messages without ``read_at``."""
        ...


class MessageWriter(Protocol):
    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        """Insert message. Return (message, created). If conflict on client_msg_id → return existing."""
        ...

    async def get_by_client_msg_id(
        self,
        conversation_id: UUID,
        sender_id: str,
        client_msg_id: UUID,
    ) -> Message | None: ...

    async def mark_read(
        self,
        conversation_id: UUID,
        reader_id: str,
        as_of: datetime,
    ) -> int:
        """Stamp ``read_at`` on unread messages not sent by ``reader_id``. Return rows stamped."""
        ...
